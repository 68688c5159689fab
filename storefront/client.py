from __future__ import annotations

import json
from typing import Any

import httpx

from auth.models import TokenPair
from auth.token_store import TokenStore

from .constants import DEFAULT_BASE_PATH, LOGGER
from .coordinator import LogoutFn, RefreshCoordinator, RefreshTokenFn
from .errors import (
    AuthenticationFailedError,
    HttpError,
    InvalidResponseError,
    NetworkError,
    is_unauthorized,
)
from .executor import RequestExecutor, decode_json
from .models import OriginalRequest


def _encode_json(data: Any) -> bytes | None:
    if data is None:
        return None
    return json.dumps(data).encode("utf-8")


class ApiGateway:
    """Authenticated entry point to the storefront REST API.

    ``request`` and its verb helpers refresh an expired access token on 401
    and replay the call; ``upload`` does not.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_store: TokenStore,
        *,
        base_path: str = DEFAULT_BASE_PATH,
        refresh_token_fn: RefreshTokenFn | None = None,
        logout_fn: LogoutFn | None = None,
        refresh_timeout: float | None = 10.0,
        max_auth_retries: int = 1,
    ) -> None:
        self.client = client
        self.token_store = token_store
        self.executor = RequestExecutor(client, token_store, base_path=base_path)
        self.coordinator = RefreshCoordinator(
            token_store,
            refresh_token_fn=refresh_token_fn,
            logout_fn=logout_fn,
            refresh_timeout=refresh_timeout,
        )
        self.max_auth_retries = max(0, max_auth_retries)

    def bind_auth(self, *, refresh_token_fn: RefreshTokenFn, logout_fn: LogoutFn) -> None:
        self.coordinator.refresh_token_fn = refresh_token_fn
        self.coordinator.logout_fn = logout_fn

    # -- tokens ----------------------------------------------------------------

    def is_authenticated(self) -> bool:
        return self.token_store.is_authenticated()

    def set_tokens(self, pair: TokenPair) -> None:
        self.token_store.set_tokens(pair)

    def clear_tokens(self) -> None:
        self.token_store.clear()

    # -- requests --------------------------------------------------------------

    async def request(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
        allow_refresh: bool = True,
    ) -> Any:
        original = OriginalRequest(
            endpoint=endpoint,
            method=method,
            headers=dict(headers or {}),
            body=body,
        )
        return await self._send(original, allow_refresh=allow_refresh)

    async def _send(
        self,
        original: OriginalRequest,
        *,
        allow_refresh: bool,
        access_token: str | None = None,
        attempt: int = 0,
    ) -> Any:
        sent_token = access_token or self.token_store.get_access_token()
        try:
            return await self.executor.execute(original, access_token=sent_token)
        except (HttpError, NetworkError, InvalidResponseError) as error:
            if not (allow_refresh and is_unauthorized(error)):
                LOGGER.error("API request failed: %s", error)
                raise
            if attempt >= self.max_auth_retries:
                LOGGER.error(
                    "API request failed: %s (still unauthorized after %s token refresh(es))",
                    error,
                    attempt,
                )
                raise

        # A 401 for a token that has since been replaced needs a replay, not a refresh.
        stored_token = self.token_store.get_access_token()
        if not self.coordinator.is_refreshing and stored_token and stored_token != sent_token:
            LOGGER.info("Replaying %s with the already refreshed access token", original.endpoint)
            token = stored_token
        else:
            token = await self.coordinator.acquire_token(original.endpoint)
        return await self._send(
            original,
            allow_refresh=allow_refresh,
            access_token=token,
            attempt=attempt + 1,
        )

    async def get(self, endpoint: str) -> Any:
        return await self.request(endpoint, method="GET")

    async def post(self, endpoint: str, data: Any = None) -> Any:
        return await self.request(endpoint, method="POST", body=_encode_json(data))

    async def patch(self, endpoint: str, data: Any = None) -> Any:
        return await self.request(endpoint, method="PATCH", body=_encode_json(data))

    async def delete(self, endpoint: str) -> Any:
        return await self.request(endpoint, method="DELETE")

    async def upload(self, endpoint: str, files: Any, data: dict | None = None) -> Any:
        headers = {}
        token = self.token_store.get_access_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            try:
                response = await self.client.post(
                    self.executor.url_for(endpoint),
                    files=files,
                    data=data,
                    headers=headers,
                )
            except httpx.TransportError as error:
                raise NetworkError(f"Network error during upload to {endpoint}: {error}") from error

            if not response.is_success:
                if response.status_code == 401:
                    self.token_store.clear()
                    raise AuthenticationFailedError()
                raise HttpError(response.status_code)

            return decode_json(response, f"upload to {endpoint}")
        except (HttpError, NetworkError, InvalidResponseError) as error:
            LOGGER.error("Upload failed: %s", error)
            raise

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "ApiGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
