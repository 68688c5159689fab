from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from auth.models import TokenPair
from storefront.constants import (
    LOGGER,
    LOGIN_ENDPOINT,
    ME_ENDPOINT,
    REFRESH_ENDPOINT,
    REGISTER_ENDPOINT,
)
from storefront.errors import AuthServiceError, GatewayError, RefreshFailedError

if TYPE_CHECKING:
    from storefront.client import ApiGateway


class AuthService:
    """Session operations backed by the gateway.

    Constructing the service binds it to the gateway as the refresh and
    logout handler used by the refresh coordinator.
    """

    def __init__(self, gateway: "ApiGateway") -> None:
        self.gateway = gateway
        gateway.bind_auth(refresh_token_fn=self.refresh_token, logout_fn=self.logout)

    async def login(self, email: str, password: str) -> Any:
        try:
            response = await self.gateway.post(
                LOGIN_ENDPOINT,
                {"email": email, "password": password},
            )
        except GatewayError as error:
            raise AuthServiceError(f"Login failed: {error}") from error

        if TokenPair.in_payload(response):
            self.gateway.set_tokens(TokenPair.from_payload(response))
        return response

    async def register(self, user_data: dict) -> Any:
        try:
            response = await self.gateway.post(REGISTER_ENDPOINT, user_data)
        except GatewayError as error:
            raise AuthServiceError(f"Registration failed: {error}") from error

        if TokenPair.in_payload(response):
            self.gateway.set_tokens(TokenPair.from_payload(response))
        return response

    def logout(self) -> None:
        self.gateway.clear_tokens()
        LOGGER.info("Logged out; local credentials cleared")

    async def refresh_token(self, refresh_token: str) -> TokenPair:
        # A 401 here must fail the refresh, never start another one.
        try:
            response = await self.gateway.request(
                REFRESH_ENDPOINT,
                method="POST",
                body=json.dumps({"refreshToken": refresh_token}).encode("utf-8"),
                allow_refresh=False,
            )
        except GatewayError as error:
            raise RefreshFailedError(f"Refresh token failed: {error}") from error
        return TokenPair.from_payload(response)

    async def forgot_password(self, email: str) -> Any:
        return await self._call(
            "Forgot password failed",
            self.gateway.post("/users/forgot-password", {"email": email}),
        )

    async def reset_password(self, email: str, code: str, new_password: str) -> Any:
        return await self._call(
            "Reset password failed",
            self.gateway.post(
                "/users/reset-password",
                {"email": email, "code": code, "password": new_password},
            ),
        )

    async def update_password(self, current_password: str, new_password: str) -> Any:
        return await self._call(
            "Update password failed",
            self.gateway.post(
                "/users/update-password",
                {"currentPassword": current_password, "newPassword": new_password},
            ),
        )

    async def get_me(self) -> Any:
        return await self._call("Get user failed", self.gateway.get(ME_ENDPOINT))

    async def update_me(self, user_data: dict) -> Any:
        return await self._call("Update profile failed", self.gateway.patch(ME_ENDPOINT, user_data))

    def is_authenticated(self) -> bool:
        return self.gateway.is_authenticated()

    async def _call(self, context: str, awaitable) -> Any:
        try:
            return await awaitable
        except GatewayError as error:
            raise AuthServiceError(f"{context}: {error}") from error
