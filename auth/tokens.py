"""
auth/tokens.py -- JWT issuance/decoding and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry user_id, issued_at (epoch ms), and
       a random jti so two logins in the same millisecond still get distinct
       tokens. There is deliberately no "exp" claim: the Session Registry owns
       expiry and revocation, so a structurally valid token still fails once
       its session is gone.

  Passwords: bcrypt directly (no passlib wrapper). The work factor is passed
       in from Settings.bcrypt_rounds. CredentialStore keeps a dummy hash at
       the same cost so response time does not reveal whether an email is
       registered.

  Signing key: passed in by the caller (api/main.py reads Settings.secret_key).
       Never derived from request data.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import secrets
import time

import bcrypt
from jose import JWTError, jwt

from auth.exceptions import BadSignature, MalformedToken
from auth.models import TokenClaims

logger = logging.getLogger("condoswift.auth")

_ALGORITHM = "HS256"

# bcrypt only reads the first 72 bytes. Newer bcrypt releases raise instead of
# truncating, so the cut is made here, identically for hash and check.
_BCRYPT_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def _password_bytes(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_password_bytes(plain), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in storage -- treat as a mismatch.
        return False


# ---------------------------------------------------------------------------
# Token Service
# ---------------------------------------------------------------------------


class TokenService:
    """Mints and decodes signed bearer tokens.

    Usage:
        tokens = TokenService(settings.secret_key)
        token = tokens.issue(user.id)
        claims = tokens.decode(token)   # raises MalformedToken / BadSignature
    """

    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a non-empty signing key.")
        self._secret_key = secret_key

    def issue(self, user_id: int) -> str:
        payload = {
            "user_id": user_id,
            "issued_at": int(time.time() * 1000),
            "jti": secrets.token_urlsafe(12),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def decode(self, token: str) -> TokenClaims:
        """Verify the signature and return the claims. No store access.

        Structure is checked before the signature so a garbage string reports
        MalformedToken while a well-formed token signed with another key
        reports BadSignature.
        """
        try:
            unverified = jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedToken() from exc
        if not _has_required_claims(unverified):
            raise MalformedToken()

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError as exc:
            raise BadSignature() from exc

        return TokenClaims(user_id=payload["user_id"], issued_at=payload["issued_at"])


def _has_required_claims(payload: object) -> bool:
    if not isinstance(payload, dict):
        return False
    user_id = payload.get("user_id")
    issued_at = payload.get("issued_at")
    # bool is an int subclass; a token claiming user_id=true is not ours.
    return (
        isinstance(user_id, int)
        and not isinstance(user_id, bool)
        and isinstance(issued_at, int)
        and not isinstance(issued_at, bool)
    )
