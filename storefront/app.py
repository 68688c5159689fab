from __future__ import annotations

import asyncio
import json
import sys

import httpx

from auth.service import AuthService
from auth.token_store import FileStorage, MemoryStorage, TokenStore

from .client import ApiGateway
from .constants import ME_ENDPOINT
from .env import GatewaySettings, load_env, load_settings, setup_logging, validate_env
from .http import build_event_hooks


def build_token_store(settings: GatewaySettings) -> TokenStore:
    if settings.token_store_path:
        return TokenStore(FileStorage(settings.token_store_path))
    return TokenStore(MemoryStorage())


def create_gateway(
    settings: GatewaySettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[ApiGateway, AuthService]:
    if settings is None:
        load_env()
        setup_logging()
        validate_env()
        settings = load_settings()

    client = httpx.AsyncClient(
        base_url=settings.base_url,
        timeout=settings.timeout,
        transport=transport or httpx.AsyncHTTPTransport(),
        event_hooks=build_event_hooks(settings.debug),
    )
    gateway = ApiGateway(
        client,
        build_token_store(settings),
        base_path=settings.base_path,
        refresh_timeout=settings.refresh_timeout,
        max_auth_retries=settings.max_auth_retries,
    )
    return gateway, AuthService(gateway)


async def fetch(endpoint: str) -> object:
    gateway, _ = create_gateway()
    async with gateway:
        return await gateway.get(endpoint)


def main() -> None:
    endpoint = sys.argv[1] if len(sys.argv) > 1 else ME_ENDPOINT
    result = asyncio.run(fetch(endpoint))
    if isinstance(result, httpx.Response):
        print(result.text)
        return
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
