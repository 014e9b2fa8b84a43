"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_gateway() returns the AuthGateway built at startup (app.state.gateway).
bearer_token() extracts the raw token from "Authorization: Bearer <token>".
client_key() identifies the caller for rate limiting (remote address).
limit_auth_attempts() applies the "auth" rate-limit policy; route decorators
list it under dependencies= so it runs before the request body is validated,
which keeps rejected attempts from reaching any store.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request
from slowapi.util import get_remote_address

from auth.gateway import AuthGateway
from auth.ratelimit import AUTH

_BEARER_PREFIX = "Bearer "


def get_gateway(request: Request) -> AuthGateway:
    return request.app.state.gateway


def bearer_token(request: Request) -> str | None:
    """Return the bearer token, or None when the header is absent or empty.

    The token is returned byte-for-byte; only surrounding whitespace is
    dropped.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(_BEARER_PREFIX):
        return None
    token = auth_header[len(_BEARER_PREFIX) :].strip()
    return token or None


def client_key(request: Request) -> str:
    """Rate-limit identity. Falls back to 127.0.0.1 when the client is unknown."""
    return get_remote_address(request)


def limit_auth_attempts(request: Request) -> None:
    """Raise RateLimited once the caller has used up the auth policy."""
    get_gateway(request).throttle(client_key(request), AUTH)
