from __future__ import annotations

import asyncio
from collections import deque
from typing import Awaitable, Callable

from auth.models import TokenPair
from auth.token_store import TokenStore

from .constants import LOGGER
from .errors import NoRefreshTokenError, RefreshFailedError, RefreshTimeoutError
from .models import PendingRequest

RefreshTokenFn = Callable[[str], Awaitable[TokenPair]]
LogoutFn = Callable[[], None]


class RefreshCoordinator:
    """Single-flight access token refresh with a FIFO queue of waiters.

    The first caller to report a 401 while idle becomes the refresher. Callers
    reporting a 401 while a refresh is in flight are queued and released, in
    arrival order, with either the new access token or the refresh error.
    Only the refresher mutates ``is_refreshing`` and drains the queue.
    """

    def __init__(
        self,
        token_store: TokenStore,
        *,
        refresh_token_fn: RefreshTokenFn | None = None,
        logout_fn: LogoutFn | None = None,
        refresh_timeout: float | None = 10.0,
    ) -> None:
        self._token_store = token_store
        self.refresh_token_fn = refresh_token_fn
        self.logout_fn = logout_fn or token_store.clear
        self.refresh_timeout = refresh_timeout
        self.is_refreshing = False
        self._waiters: deque[PendingRequest] = deque()

    @property
    def waiter_count(self) -> int:
        return len(self._waiters)

    async def acquire_token(self, endpoint: str) -> str:
        """Return a fresh access token, refreshing or waiting as needed."""
        if self.is_refreshing:
            pending = PendingRequest(
                endpoint=endpoint,
                future=asyncio.get_running_loop().create_future(),
            )
            self._waiters.append(pending)
            LOGGER.info(
                "Queued %s behind in-flight token refresh (%s waiting)",
                endpoint,
                len(self._waiters),
            )
            return await pending.future

        self.is_refreshing = True
        LOGGER.info("Access token rejected for %s; refreshing", endpoint)
        try:
            pair = await self._refresh()
        except asyncio.CancelledError:
            self._fail_waiters(RefreshFailedError("Token refresh was cancelled."))
            raise
        except RefreshFailedError as error:
            LOGGER.warning("Token refresh failed: %s", error)
            self._fail_waiters(error)
            self._logout()
            raise
        else:
            self._token_store.set_tokens(pair)
            released = self._release_waiters(pair.access_token)
            LOGGER.info("Token refresh succeeded; released %s waiting request(s)", released)
            return pair.access_token
        finally:
            self.is_refreshing = False

    async def _refresh(self) -> TokenPair:
        refresh_token = self._token_store.get_refresh_token()
        if not refresh_token:
            raise NoRefreshTokenError()
        if self.refresh_token_fn is None:
            raise RefreshFailedError("No token refresh handler configured.")

        try:
            if self.refresh_timeout is None:
                return await self.refresh_token_fn(refresh_token)
            return await asyncio.wait_for(
                self.refresh_token_fn(refresh_token),
                timeout=self.refresh_timeout,
            )
        except asyncio.TimeoutError as error:
            raise RefreshTimeoutError(self.refresh_timeout) from error
        except RefreshFailedError:
            raise
        except Exception as error:
            raise RefreshFailedError(f"Refresh token failed: {error}") from error

    def _release_waiters(self, token: str) -> int:
        released = 0
        while self._waiters:
            if self._waiters.popleft().release(token):
                released += 1
        return released

    def _fail_waiters(self, error: BaseException) -> None:
        while self._waiters:
            self._waiters.popleft().fail(error)

    def _logout(self) -> None:
        try:
            self.logout_fn()
        except Exception as error:
            LOGGER.error("Logout after failed token refresh raised: %s", error)
            self._token_store.clear()
