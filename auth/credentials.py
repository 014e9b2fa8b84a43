"""
auth/credentials.py -- Credential Store: user records and password checks.

The Credential Store is the only component that touches User records. It sits
on top of a UserRepository (auth/store.py) and adds the rules the repository
does not know about:

  - email normalization (strip + lowercase) before every lookup and insert
  - email uniqueness, checked and inserted under one lock
  - bcrypt hashing at a configured work factor; plaintext is never stored
  - timing-equalized verification: an unknown email is checked against a
    dummy hash of the same cost, and both failure paths raise the same
    BadCredential, so callers cannot enumerate registered emails

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from auth.exceptions import BadCredential, DuplicateEmail, UserNotFound
from auth.models import USER_TYPES, User
from auth.store import UserRepository
from auth.tokens import hash_password, verify_password

logger = logging.getLogger("condoswift.auth")


def normalize_email(email: str) -> str:
    """Return the canonical form used for storage and uniqueness checks."""
    return email.strip().lower()


class CredentialStore:
    """Owns User records and verifies passwords.

    Usage:
        credentials = CredentialStore(MemoryUserRepository(), bcrypt_rounds=12)
        user = credentials.create("Somchai", "0812345678", "a@b.com", "longenough1", "ผู้ซื้อ/เช่า")
        user = credentials.verify("A@B.com", "longenough1")
    """

    def __init__(self, repository: UserRepository, bcrypt_rounds: int = 12) -> None:
        self._repo = repository
        self._rounds = bcrypt_rounds
        self._lock = threading.Lock()
        # Same cost as real hashes so the unknown-email path takes as long.
        self._dummy_hash = hash_password("condoswift_timing_dummy", rounds=bcrypt_rounds)

    def create(
        self,
        full_name: str,
        phone: str,
        email: str,
        password: str,
        user_type: str,
        verification_code: str | None = None,
    ) -> User:
        """Create an unverified user. Raises DuplicateEmail if the email is taken.

        verification_code is stored with the record so it survives a restart
        when the repository is SQL-backed.
        """
        if user_type not in USER_TYPES:
            raise ValueError(f"Unknown user type: {user_type!r}")
        email = normalize_email(email)
        # Hash outside the lock -- bcrypt is the slow part and needs no shared state.
        hashed = hash_password(password, rounds=self._rounds)
        with self._lock:
            if self._repo.find_by_email(email) is not None:
                raise DuplicateEmail()
            user = User(
                full_name=full_name,
                email=email,
                phone=phone,
                user_type=user_type,
                hashed_password=hashed,
                verification_code=verification_code,
                created_at=datetime.now(timezone.utc),
            )
            try:
                user_id = self._repo.create(user)
            except IntegrityError as exc:
                # Another process sharing the database won the race.
                raise DuplicateEmail() from exc
        logger.info("User registered: id=%d type=%s", user_id, user_type)
        return self._require(user_id)

    def verify(self, email: str, password: str) -> User:
        """Return the User whose credentials match, else raise BadCredential."""
        user = self._repo.find_by_email(normalize_email(email))
        if user is None:
            # Equalize timing -- do NOT return early before running bcrypt.
            verify_password(password, self._dummy_hash)
            raise BadCredential()
        if not verify_password(password, user.hashed_password):
            raise BadCredential()
        return user

    def get(self, user_id: int) -> User | None:
        return self._repo.find_by_id(user_id)

    def find_by_email(self, email: str) -> User | None:
        return self._repo.find_by_email(normalize_email(email))

    def touch_login(self, user_id: int) -> User:
        """Stamp last_login with the current UTC time."""
        if not self._repo.update(user_id, last_login=datetime.now(timezone.utc)):
            raise UserNotFound()
        return self._require(user_id)

    def mark_verified(self, user_id: int) -> User:
        """Set verified and drop the pending code so it cannot be reused."""
        if not self._repo.update(user_id, verified=True, verification_code=None):
            raise UserNotFound()
        return self._require(user_id)

    def stats(self) -> dict:
        """Aggregate counts. Every user type appears, zero or not."""
        users = self._repo.list()
        by_type = {user_type: 0 for user_type in USER_TYPES}
        for user in users:
            by_type[user.user_type] = by_type.get(user.user_type, 0) + 1
        return {
            "total": len(users),
            "verified": sum(1 for u in users if u.verified),
            "by_type": by_type,
        }

    def close(self) -> None:
        self._repo.close()

    def _require(self, user_id: int) -> User:
        user = self._repo.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user
