from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import AnyHttpUrl, ValidationError

from .constants import DEFAULT_BASE_PATH, DEFAULT_BASE_URL, LOGGER


@dataclass
class GatewaySettings:
    base_url: str
    base_path: str
    timeout: float
    refresh_timeout: float
    max_auth_retries: int
    token_store_path: str | None
    debug: bool


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a number.")


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    from dotenv import load_dotenv

    load_dotenv(env_path, override=True)


def validate_env() -> None:
    base_url = os.getenv("STOREFRONT_API_BASE_URL", DEFAULT_BASE_URL).strip()
    try:
        AnyHttpUrl(base_url)
    except ValidationError as error:
        raise RuntimeError(
            "STOREFRONT_API_BASE_URL must be an absolute http(s) URL (for example: "
            "https://shop.example.com)."
        ) from error

    base_path = os.getenv("STOREFRONT_API_PATH", DEFAULT_BASE_PATH).strip()
    if base_path and not base_path.startswith("/"):
        raise RuntimeError("STOREFRONT_API_PATH must start with '/'.")

    if _get_env_int("STOREFRONT_MAX_AUTH_RETRIES", 1) < 0:
        raise RuntimeError("STOREFRONT_MAX_AUTH_RETRIES must not be negative.")
    if _get_env_float("STOREFRONT_REFRESH_TIMEOUT", 10.0) <= 0:
        raise RuntimeError("STOREFRONT_REFRESH_TIMEOUT must be positive.")


def load_settings() -> GatewaySettings:
    token_store_path = os.getenv("STOREFRONT_TOKEN_STORE_PATH", ".tokens.json").strip()
    return GatewaySettings(
        base_url=os.getenv("STOREFRONT_API_BASE_URL", DEFAULT_BASE_URL).strip(),
        base_path=os.getenv("STOREFRONT_API_PATH", DEFAULT_BASE_PATH).strip().rstrip("/"),
        timeout=_get_env_float("STOREFRONT_API_TIMEOUT", 30.0),
        refresh_timeout=_get_env_float("STOREFRONT_REFRESH_TIMEOUT", 10.0),
        max_auth_retries=_get_env_int("STOREFRONT_MAX_AUTH_RETRIES", 1),
        token_store_path=token_store_path or None,
        debug=is_truthy(os.getenv("STOREFRONT_API_DEBUG", "1")),
    )


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("STOREFRONT_API_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
