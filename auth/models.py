"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores, services, and
routes do the work; these classes only own the domain shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# Closed set of marketplace roles. Order is the display order used by stats.
USER_TYPES: tuple[str, ...] = ("เจ้าของห้อง", "นายหน้า", "ผู้ซื้อ/เช่า")


@dataclass
class User:
    """A registered marketplace account.

    email is always stored case-normalized (stripped, lowercased); the
    Credential Store normalizes before every lookup and insert.

    hashed_password is a bcrypt hash and must never reach an API response.

    verification_code is the pending email code; None once verified. Like
    hashed_password it never reaches an API response.
    """

    full_name: str
    email: str
    phone: str
    user_type: str  # one of USER_TYPES
    hashed_password: str
    id: int | None = None
    verified: bool = False
    profile_complete: bool = False
    created_at: datetime | None = None
    last_login: datetime | None = None
    verification_code: str | None = None


@dataclass
class Session:
    """The authoritative, revocable record binding a token to a user.

    user_id is a plain reference; the Session Registry never owns the User.
    expires_at is always created_at + the configured session duration.
    """

    token: str
    user_id: int
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    """Decoded token payload. issued_at is epoch milliseconds."""

    user_id: int
    issued_at: int
