"""
api/routes/auth.py -- Registration, login, and session REST endpoints.

Routes (mounted under /api/auth):
  POST /register  -- create an unverified account; 201
  POST /login     -- verify credentials, open a session, return the token
  POST /logout    -- close the session if the token has one; always 200
  GET  /me        -- current user snapshot (requires a live session)
  GET  /stats     -- aggregate counts (public only when PUBLIC_STATS is on)
  POST /verify    -- confirm the emailed verification code

Security:
  register, login, and verify carry the "auth" rate-limit policy (5 per 15
  minutes per IP) on top of the general policy applied in api/main.py.
  Unknown email and wrong password return the same 401 body.
  Cache-Control: no-store on responses that carry a token or a code.

Errors are raised as auth.exceptions.AuthError subclasses and rendered by the
handlers in api/main.py; handlers here only build success bodies.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    StatsBody,
    StatsResponse,
    UserDetail,
    UserSummary,
    VerifyRequest,
    VerifyResponse,
)
from auth.dependencies import bearer_token, get_gateway, limit_auth_attempts
from auth.gateway import AuthGateway

logger = logging.getLogger("condoswift.api")

# Auth policy:
# - POST /register: public, auth rate limit
# - POST /login:    public, auth rate limit
# - POST /verify:   public, auth rate limit
# - POST /logout:   public -- a missing or stale token still succeeds
# - GET  /me:       requires a live session
# - GET  /stats:    public when Settings.public_stats, else requires a live session
router = APIRouter()


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/register", status_code=201, dependencies=[Depends(limit_auth_attempts)])
def register(
    request: Request,
    body: RegisterRequest,
    gateway: AuthGateway = Depends(get_gateway),
) -> JSONResponse:
    """Create an unverified user and generate an email verification code.

    Sync def on purpose: bcrypt is CPU-bound, and FastAPI runs sync handlers
    in its threadpool so hashing does not stall the event loop.
    """
    result = gateway.register(
        full_name=body.full_name,
        phone=body.phone,
        email=body.email,
        password=body.password,
        user_type=body.user_type,
    )
    expose_code = request.app.state.settings.expose_verification_code
    payload = RegisterResponse(
        message="ลงทะเบียนสำเร็จ กรุณายืนยันตัวตนผ่านอีเมล",
        user=UserSummary.from_user(result.user),
        verification_code=result.verification_code if expose_code else None,
    )
    return _no_store(
        JSONResponse(status_code=201, content=payload.model_dump(by_alias=True, mode="json", exclude_none=True))
    )


@router.post("/login", dependencies=[Depends(limit_auth_attempts)])
def login(body: LoginRequest, gateway: AuthGateway = Depends(get_gateway)) -> JSONResponse:
    """Authenticate with email and password; return a bearer token.

    Unknown email and wrong password both raise BadCredential with the same
    message, and the Credential Store equalizes their bcrypt cost.
    """
    result = gateway.login(body.email, body.password)
    payload = LoginResponse(
        message="เข้าสู่ระบบสำเร็จ",
        token=result.token,
        user=UserSummary.from_user(result.user),
    )
    return _no_store(JSONResponse(content=payload.model_dump(by_alias=True, mode="json")))


@router.post("/logout")
async def logout(request: Request, gateway: AuthGateway = Depends(get_gateway)) -> JSONResponse:
    """End the session for the presented token. Always reports success."""
    closed = gateway.logout(bearer_token(request))
    logger.debug("Logout (session_closed=%s)", closed)
    payload = MessageResponse(message="ออกจากระบบสำเร็จ")
    return JSONResponse(content=payload.model_dump(by_alias=True, mode="json"))


@router.post("/verify", dependencies=[Depends(limit_auth_attempts)])
def verify(body: VerifyRequest, gateway: AuthGateway = Depends(get_gateway)) -> JSONResponse:
    """Mark the account verified when the code matches the pending one."""
    user = gateway.verify_email(body.email, body.code)
    payload = VerifyResponse(message="ยืนยันตัวตนสำเร็จ", user=UserSummary.from_user(user))
    return JSONResponse(content=payload.model_dump(by_alias=True, mode="json"))


# ---------------------------------------------------------------------------
# Session-bound endpoints
# ---------------------------------------------------------------------------


@router.get("/me")
def me(request: Request, gateway: AuthGateway = Depends(get_gateway)) -> JSONResponse:
    """Return the full snapshot of the user behind the bearer token."""
    user = gateway.whoami(bearer_token(request))
    payload = MeResponse(user=UserDetail.from_user(user))
    return JSONResponse(content=payload.model_dump(by_alias=True, mode="json"))


@router.get("/stats")
def stats(request: Request, gateway: AuthGateway = Depends(get_gateway)) -> JSONResponse:
    """Registration and session counts.

    Open to anyone only when Settings.public_stats is on (the development
    default); otherwise the caller needs a live session like GET /me.
    """
    if not request.app.state.settings.public_stats:
        gateway.whoami(bearer_token(request))
    counts = gateway.stats()
    payload = StatsResponse(stats=StatsBody(**counts))
    return JSONResponse(content=payload.model_dump(by_alias=True, mode="json"))
