from __future__ import annotations

import asyncio
from dataclasses import dataclass, field


@dataclass
class OriginalRequest:
    endpoint: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None


@dataclass
class PendingRequest:
    endpoint: str
    future: asyncio.Future

    def release(self, token: str) -> bool:
        if self.future.done():
            return False
        self.future.set_result(token)
        return True

    def fail(self, error: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True
