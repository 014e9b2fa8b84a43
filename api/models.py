"""
API request and response models for the CondoSwift auth endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format is camelCase (fullName, userType, profileComplete, ...) to stay
compatible with the existing web client; Python attributes stay snake_case
via alias_generator=to_camel.

Validation messages are raised as PydanticCustomError so the message text
reaches the client verbatim instead of being prefixed with "Value error, ".
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from auth.models import USER_TYPES, User

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PHONE_PATTERN = re.compile(r"^0[0-9]{8,9}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 8

MSG_NAME = "ชื่อต้องมีอย่างน้อย 2 ตัวอักษร"
MSG_PHONE = "เบอร์โทรศัพท์ไม่ถูกต้อง"
MSG_EMAIL = "อีเมลไม่ถูกต้อง"
MSG_PASSWORD = "รหัสผ่านต้องมีอย่างน้อย 8 ตัวอักษร"
MSG_PASSWORD_REQUIRED = "กรุณากรอกรหัสผ่าน"
MSG_USER_TYPE = "ประเภทผู้ใช้ไม่ถูกต้อง"
MSG_CODE_REQUIRED = "กรุณากรอกรหัสยืนยัน"


def _invalid(message: str) -> PydanticCustomError:
    return PydanticCustomError("invalid_value", message)


def _normalized_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise _invalid(MSG_EMAIL)
    return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(_CamelModel):
    """Request body for POST /api/auth/register."""

    full_name: str
    phone: str
    email: str
    password: str
    user_type: str

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < MIN_NAME_LENGTH:
            raise _invalid(MSG_NAME)
        return value

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: str) -> str:
        if not PHONE_PATTERN.match(value):
            raise _invalid(MSG_PHONE)
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _normalized_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise _invalid(MSG_PASSWORD)
        return value

    @field_validator("user_type")
    @classmethod
    def check_user_type(cls, value: str) -> str:
        if value not in USER_TYPES:
            raise _invalid(MSG_USER_TYPE)
        return value


class LoginRequest(_CamelModel):
    """Request body for POST /api/auth/login."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _normalized_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if not value:
            raise _invalid(MSG_PASSWORD_REQUIRED)
        return value


class VerifyRequest(_CamelModel):
    """Request body for POST /api/auth/verify."""

    email: str
    code: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _normalized_email(value)

    @field_validator("code")
    @classmethod
    def check_code(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise _invalid(MSG_CODE_REQUIRED)
        return value


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserSummary(_CamelModel):
    """User fields shown after register and login. Never carries the hash."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    full_name: str
    email: str
    user_type: str
    verified: bool
    profile_complete: bool

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(
            id=user.id,
            full_name=user.full_name,
            email=user.email,
            user_type=user.user_type,
            verified=user.verified,
            profile_complete=user.profile_complete,
        )


class UserDetail(UserSummary):
    """Full snapshot for GET /me, including fields hidden at registration."""

    phone: str
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserDetail":
        return cls(
            id=user.id,
            full_name=user.full_name,
            email=user.email,
            user_type=user.user_type,
            verified=user.verified,
            profile_complete=user.profile_complete,
            phone=user.phone,
            created_at=user.created_at,
            last_login=user.last_login,
        )


class RegisterResponse(_CamelModel):
    success: bool = True
    message: str
    user: UserSummary
    # Present only when Settings.expose_verification_code is on.
    verification_code: Optional[str] = None


class LoginResponse(_CamelModel):
    success: bool = True
    message: str
    token: str
    user: UserSummary


class MessageResponse(_CamelModel):
    success: bool = True
    message: str


class MeResponse(_CamelModel):
    success: bool = True
    user: UserDetail


class VerifyResponse(_CamelModel):
    success: bool = True
    message: str
    user: UserSummary


class StatsBody(_CamelModel):
    total_users: int
    verified_users: int
    # Keys are the Thai user types and must not be camel-cased.
    users_by_type: dict[str, int]
    active_sessions: int


class StatsResponse(_CamelModel):
    success: bool = True
    stats: StatsBody


class ErrorResponse(_CamelModel):
    """Envelope returned on every 4xx/5xx."""

    success: bool = False
    message: str
    errors: Optional[list[dict]] = None
    error: Optional[str] = None  # debug-only exception text on 500


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "OK"
    timestamp: str
    message: str = "CondoSwift API is running"
    version: str = Field(default="1.0.0")
