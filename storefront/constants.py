from __future__ import annotations

import logging

LOGGER = logging.getLogger("storefront.api")
APP_VERSION = "0.1.0"

DEFAULT_BASE_URL = "http://localhost:5173"
DEFAULT_BASE_PATH = "/api"

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"

LOGIN_ENDPOINT = "/auth-sessions/email"
REFRESH_ENDPOINT = "/auth-sessions/refresh"
REGISTER_ENDPOINT = "/users"
ME_ENDPOINT = "/users/me"
