from __future__ import annotations


class GatewayError(RuntimeError):
    """Base class for every failure raised by the request gateway."""


class HttpError(GatewayError):
    def __init__(self, status_code: int, body: str | None = None, message: str | None = None) -> None:
        if message is None:
            message = f"HTTP error! status: {status_code}"
            if body:
                message += f" - {body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthenticationFailedError(HttpError):
    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(401, message=message)


class NetworkError(GatewayError):
    pass


class RefreshFailedError(GatewayError):
    pass


class NoRefreshTokenError(RefreshFailedError):
    def __init__(self, message: str = "No refresh token available") -> None:
        super().__init__(message)


class RefreshTimeoutError(RefreshFailedError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Token refresh timed out after {timeout}s")
        self.timeout = timeout


class AuthServiceError(GatewayError):
    pass


class InvalidResponseError(GatewayError):
    pass


def is_unauthorized(error: BaseException) -> bool:
    return isinstance(error, HttpError) and error.status_code == 401
