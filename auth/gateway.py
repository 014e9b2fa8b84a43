"""
auth/gateway.py -- Auth Gateway: the operations the HTTP layer calls.

Orchestrates CredentialStore, TokenService, SessionRegistry, and RateLimiter
into register, login, logout, whoami, stats, and verify_email. Every expected
failure is raised as an AuthError subclass; api/main.py maps those to
responses. Nothing here knows about HTTP.

Token state machine:
  Unauthenticated --login--> Active --logout | expiry--> Unauthenticated

Login is atomic from the caller's view: if anything fails after the session
row is written, the row is removed before the error propagates.

Registration does not log the user in, so a failure between creating the
user and handing back the verification code leaves nothing half-open.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import secrets
import string
import threading
from dataclasses import dataclass

from auth.credentials import CredentialStore, normalize_email
from auth.exceptions import BadCredential, InvalidVerificationCode, MissingToken, SessionNotFound, UserNotFound
from auth.models import User
from auth.ratelimit import RateLimiter
from auth.sessions import SessionRegistry
from auth.tokens import TokenService

logger = logging.getLogger("condoswift.auth")

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_CODE_LENGTH = 6


@dataclass(frozen=True)
class RegisterResult:
    user: User
    verification_code: str


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: User


def generate_verification_code() -> str:
    """Six uppercase alphanumerics, e.g. "K7Q2ZD"."""
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(_CODE_LENGTH))


class AuthGateway:
    """Entry point for all auth operations.

    Built once per process (or per test) by api/main.py and stored on
    app.state; each component is handed in, never looked up globally.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        tokens: TokenService,
        sessions: SessionRegistry,
        limiter: RateLimiter,
    ) -> None:
        self.credentials = credentials
        self.tokens = tokens
        self.sessions = sessions
        self.limiter = limiter
        # Serializes check-and-consume of verification codes.
        self._verify_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Throttling
    # ------------------------------------------------------------------

    def throttle(self, client_key: str, policy: str) -> None:
        """Raise RateLimited if client_key has exhausted policy. Touches nothing else."""
        self.limiter.check(client_key, policy)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def register(self, full_name: str, phone: str, email: str, password: str, user_type: str) -> RegisterResult:
        code = generate_verification_code()
        user = self.credentials.create(full_name, phone, email, password, user_type, verification_code=code)
        # Stand-in for the mailer.
        logger.info("Verification code for %s: %s", user.email, code)
        return RegisterResult(user=user, verification_code=code)

    def login(self, email: str, password: str) -> LoginResult:
        try:
            user = self.credentials.verify(email, password)
        except BadCredential:
            logger.info("Failed login for %s", normalize_email(email))
            raise
        token = self.tokens.issue(user.id)
        self.sessions.open(user.id, token)
        try:
            user = self.credentials.touch_login(user.id)
        except Exception:
            self.sessions.close(token)
            raise
        return LoginResult(token=token, user=user)

    def logout(self, token: str | None) -> bool:
        """Close the session for token if there is one. Never raises.

        Returns whether a session was actually removed, for logging only --
        callers report success either way.
        """
        if not token:
            return False
        return self.sessions.close(token)

    def whoami(self, token: str | None) -> User:
        """Resolve a bearer token to its current User snapshot.

        Order: signature first (no store access), then the session row, then
        the user record. A user removed after login reports UserNotFound.
        """
        if not token:
            raise MissingToken()
        claims = self.tokens.decode(token)
        session = self.sessions.lookup(token)
        if session.user_id != claims.user_id:
            # Signed for one user, registered for another: never issued here.
            raise SessionNotFound()
        user = self.credentials.get(claims.user_id)
        if user is None:
            raise UserNotFound()
        return user

    def verify_email(self, email: str, code: str) -> User:
        """Mark the account verified if code matches the one stored at registration.

        The code lives on the user record, so it stays valid across restarts
        with a SQL-backed repository. Delivery is external; register logs the
        code and optionally echoes it in its response.
        """
        with self._verify_lock:
            user = self.credentials.find_by_email(email)
            expected = user.verification_code if user is not None else None
            if expected is None or not secrets.compare_digest(expected.encode(), code.strip().upper().encode()):
                raise InvalidVerificationCode()
            return self.credentials.mark_verified(user.id)

    def stats(self) -> dict:
        counts = self.credentials.stats()
        return {
            "total_users": counts["total"],
            "verified_users": counts["verified"],
            "users_by_type": counts["by_type"],
            "active_sessions": self.sessions.count_active(),
        }

    def close(self) -> None:
        self.credentials.close()
