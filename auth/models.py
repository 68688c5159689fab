from __future__ import annotations

from dataclasses import dataclass

from storefront.errors import RefreshFailedError


@dataclass
class Credentials:
    access_token: str | None
    refresh_token: str | None


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str

    @classmethod
    def from_payload(cls, payload: dict) -> "TokenPair":
        if not isinstance(payload, dict):
            raise RefreshFailedError("Token response must be a JSON object.")

        access_token = payload.get("accessToken")
        refresh_token = payload.get("refreshToken")

        if not isinstance(access_token, str) or not access_token:
            raise RefreshFailedError("Token response missing accessToken.")
        if not isinstance(refresh_token, str) or not refresh_token:
            raise RefreshFailedError("Token response missing refreshToken.")

        return cls(access_token=access_token, refresh_token=refresh_token)

    @staticmethod
    def in_payload(payload) -> bool:
        return (
            isinstance(payload, dict)
            and bool(payload.get("accessToken"))
            and bool(payload.get("refreshToken"))
        )
