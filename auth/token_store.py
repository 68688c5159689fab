from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from auth.models import Credentials, TokenPair
from storefront.constants import ACCESS_TOKEN_KEY, LOGGER, REFRESH_TOKEN_KEY


class KeyValueStorage(ABC):
    @abstractmethod
    def get_item(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class MemoryStorage(KeyValueStorage):
    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage(KeyValueStorage):
    def __init__(self, path: str | Path = ".tokens.json") -> None:
        self._path = Path(path)

    def get_item(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        items = self._read_all()
        if items.pop(key, None) is not None:
            self._write_all(items)

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except ValueError as error:
            LOGGER.warning("Ignoring unreadable token storage file %s: %s", self._path, error)
            return {}
        if not isinstance(raw, dict):
            LOGGER.warning("Ignoring token storage file %s: expected a top-level JSON object", self._path)
            return {}
        return raw

    def _write_all(self, payload: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()


class TokenStore:
    """Access and refresh tokens kept in a key-value storage backend.

    Reads and writes never raise. Without a backend every read is ``None``
    and every write is a no-op; backend errors are logged and swallowed.
    """

    def __init__(self, storage: KeyValueStorage | None = None) -> None:
        self._storage = storage

    def get_access_token(self) -> str | None:
        return self._get(ACCESS_TOKEN_KEY)

    def set_access_token(self, token: str) -> None:
        self._set(ACCESS_TOKEN_KEY, token)

    def get_refresh_token(self) -> str | None:
        return self._get(REFRESH_TOKEN_KEY)

    def set_refresh_token(self, token: str) -> None:
        self._set(REFRESH_TOKEN_KEY, token)

    def set_tokens(self, pair: TokenPair) -> None:
        self.set_access_token(pair.access_token)
        self.set_refresh_token(pair.refresh_token)

    def credentials(self) -> Credentials:
        return Credentials(
            access_token=self.get_access_token(),
            refresh_token=self.get_refresh_token(),
        )

    def is_authenticated(self) -> bool:
        return bool(self.get_access_token())

    def clear(self) -> None:
        if self._storage is None:
            return
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY):
            try:
                self._storage.remove_item(key)
            except (OSError, ValueError, RuntimeError) as error:
                LOGGER.warning("Failed to remove %s from token storage: %s", key, error)

    def _get(self, key: str) -> str | None:
        if self._storage is None:
            return None
        try:
            return self._storage.get_item(key)
        except (OSError, ValueError, RuntimeError) as error:
            LOGGER.warning("Failed to read %s from token storage: %s", key, error)
            return None

    def _set(self, key: str, value: str) -> None:
        if self._storage is None:
            return
        try:
            self._storage.set_item(key, value)
        except (OSError, ValueError, RuntimeError) as error:
            LOGGER.warning("Failed to write %s to token storage: %s", key, error)
