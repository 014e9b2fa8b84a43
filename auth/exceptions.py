"""
auth/exceptions.py -- Error taxonomy for the auth core.

Every failure the core can report is an AuthError subclass carrying a stable
machine-readable code and the HTTP status the API layer maps it to. The
messages are the user-facing strings the web client displays.

Token-side failures (MissingToken, MalformedToken, BadSignature,
SessionNotFound, SessionExpired) all surface as 401 so callers cannot tell a
forged token from a revoked one.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for expected auth failures. Never used for internal faults."""

    code: str = "auth_error"
    status_code: int = 400
    message: str = "คำขอไม่ถูกต้อง"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationFailed(AuthError):
    code = "validation_failed"
    status_code = 400
    message = "ข้อมูลไม่ถูกต้อง"

    def __init__(self, errors: list[dict] | None = None, message: str | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class DuplicateEmail(AuthError):
    code = "duplicate_email"
    status_code = 409
    message = "อีเมลนี้มีผู้ใช้แล้ว"


class BadCredential(AuthError):
    """Unknown email and wrong password both raise this, with one message."""

    code = "bad_credentials"
    status_code = 401
    message = "อีเมลหรือรหัสผ่านไม่ถูกต้อง"


class RateLimited(AuthError):
    code = "rate_limited"
    status_code = 429
    message = "Too many requests from this IP, please try again later."

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class MissingToken(AuthError):
    code = "missing_token"
    status_code = 401
    message = "ไม่มี token"


class MalformedToken(AuthError):
    code = "malformed_token"
    status_code = 401
    message = "Token ไม่ถูกต้อง"


class BadSignature(AuthError):
    code = "bad_signature"
    status_code = 401
    message = "Token ไม่ถูกต้อง"


class SessionNotFound(AuthError):
    """No session row for the token: never issued here, or logged out."""

    code = "session_not_found"
    status_code = 401
    message = "Token หมดอายุ"


class SessionExpired(AuthError):
    code = "session_expired"
    status_code = 401
    message = "Token หมดอายุ"


class UserNotFound(AuthError):
    code = "user_not_found"
    status_code = 404
    message = "ไม่พบผู้ใช้"


class InvalidVerificationCode(AuthError):
    code = "invalid_verification_code"
    status_code = 400
    message = "รหัสยืนยันไม่ถูกต้อง"
