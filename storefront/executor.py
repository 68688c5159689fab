from __future__ import annotations

from typing import Any

import httpx

from auth.token_store import TokenStore

from .constants import DEFAULT_BASE_PATH
from .errors import HttpError, InvalidResponseError, NetworkError
from .models import OriginalRequest

DEFAULT_HEADERS = {"Content-Type": "application/json"}


class RequestExecutor:
    """Issues a single HTTP call with the current bearer token attached."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_store: TokenStore,
        *,
        base_path: str = DEFAULT_BASE_PATH,
    ) -> None:
        self._client = client
        self._token_store = token_store
        self.base_path = base_path.rstrip("/")

    def url_for(self, endpoint: str) -> str:
        return f"{self.base_path}{endpoint}"

    def build_headers(self, request: OriginalRequest, access_token: str | None = None) -> httpx.Headers:
        headers = httpx.Headers(DEFAULT_HEADERS)
        headers.update(request.headers)

        token = access_token or self._token_store.get_access_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def execute(self, request: OriginalRequest, *, access_token: str | None = None) -> Any:
        outgoing = self._client.build_request(
            request.method,
            self.url_for(request.endpoint),
            headers=self.build_headers(request, access_token),
            content=request.body,
        )
        try:
            response = await self._client.send(outgoing, stream=True)
        except httpx.TransportError as error:
            raise NetworkError(
                f"Network error during {request.method} {request.endpoint}: {error}"
            ) from error

        try:
            if not response.is_success:
                raise HttpError(response.status_code, await read_error_body(response))
            try:
                await response.aread()
            except httpx.TransportError as error:
                raise NetworkError(
                    f"Network error reading {request.method} {request.endpoint}: {error}"
                ) from error
        finally:
            await response.aclose()

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            return decode_json(response, f"{request.method} {request.endpoint}")
        return response


async def read_error_body(response: httpx.Response) -> str | None:
    try:
        body = await response.aread()
    except (httpx.HTTPError, httpx.StreamError):
        return None
    text = body.decode("utf-8", errors="replace")
    return text or None


def decode_json(response: httpx.Response, context: str) -> Any:
    try:
        return response.json()
    except ValueError as error:
        raise InvalidResponseError(f"Invalid JSON response from {context}: {error}") from error
