"""
FastAPI application: sign-in attempt endpoint plus status and monitoring routes.
"""

from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from lockout.admin import AccountAdmin
from lockout.clock import Clock
from lockout.config import Settings, get_settings
from lockout.engine import Allowed, Decision, Locked, Rejected
from lockout.errors import InternalFault, LockedError, LockoutError, RejectedError, ValidationError
from lockout.models import (
    AccountStatusResponse,
    B2CResponse,
    HealthResponse,
    InputClaims,
    MessageResponse,
    StatisticsResponse,
)
from lockout.service import LockoutService
from lockout.store import LockoutStore

logger = logging.getLogger(__name__)


# ---------- Security headers middleware ----------


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        return response


# ---------- Dependencies ----------


def get_lockout_service(request: Request) -> LockoutService:
    return request.app.state.lockout_service


def get_account_admin(request: Request) -> AccountAdmin:
    return request.app.state.account_admin


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _whole_seconds(decision: Locked) -> int:
    """Seconds left on a lock, rounded up so a live lock never reports 0."""
    return max(1, math.ceil(decision.remaining.total_seconds()))


def _decision_response(decision: Decision) -> JSONResponse:
    """Turn an engine decision into the 200 response or the matching error."""
    if isinstance(decision, Allowed):
        body = B2CResponse.build(200, "Successful sign-in")
        return JSONResponse(status_code=200, content=body.to_content())
    if isinstance(decision, Rejected):
        raise RejectedError(decision.attempt, decision.of)
    if isinstance(decision, Locked):
        seconds = _whole_seconds(decision)
        raise LockedError(
            seconds,
            developer_message=f"Account locked. Lockout ends in {seconds} seconds",
        )
    raise TypeError(f"Unknown lockout decision: {decision!r}")


# ---------- Identity routes ----------


router = APIRouter()


@router.post("/api/identity/signin")
async def signin(request: Request, service: LockoutService = Depends(get_lockout_service)):
    """Record a sign-in attempt reported by the identity provider."""
    raw = await request.body()
    try:
        claims = InputClaims.parse(raw)
    except ValidationError as exc:
        logger.warning("SignIn attempt with invalid input: %s", exc.user_message)
        raise

    try:
        decision = service.record_attempt(claims.sign_in_name, success=claims.is_success)
    except LockoutError:
        raise
    except Exception as exc:
        logger.exception("Error processing sign-in request for user: %s", claims.sign_in_name)
        raise InternalFault() from exc

    return _decision_response(decision)


@router.get("/api/identity/status/{username}", response_model=AccountStatusResponse)
def account_status(username: str, admin: AccountAdmin = Depends(get_account_admin)):
    """Lockout status of one account."""
    return AccountStatusResponse.from_status(admin.status(username))


@router.post("/api/identity/reset/{username}", response_model=MessageResponse)
def reset_account(username: str, admin: AccountAdmin = Depends(get_account_admin)):
    """Delete an account's lockout record."""
    admin.reset(username)
    return MessageResponse(message=f"Account reset successfully for user: {username}")


# ---------- Monitoring routes ----------


@router.get("/api/monitoring/health", response_model=HealthResponse)
def health(request: Request, settings: Settings = Depends(get_app_settings)):
    """Liveness check."""
    return HealthResponse(
        status="Healthy",
        timestamp=request.app.state.store.now(),
        service=settings.service_name,
        version=settings.service_version,
    )


@router.get("/api/monitoring/stats", response_model=StatisticsResponse)
def statistics(admin: AccountAdmin = Depends(get_account_admin)):
    return StatisticsResponse.from_statistics(admin.statistics())


@router.get("/api/monitoring/accounts", response_model=list[AccountStatusResponse])
def list_accounts(admin: AccountAdmin = Depends(get_account_admin)):
    return [AccountStatusResponse.from_status(status) for status in admin.list_accounts()]


@router.post("/api/monitoring/unlock/{username}", response_model=MessageResponse)
def unlock_account(username: str, admin: AccountAdmin = Depends(get_account_admin)):
    """Lift a lock and zero the failure count."""
    try:
        admin.unlock(username)
    except LockoutError:
        raise
    except Exception as exc:
        logger.exception("Error unlocking account for user: %s", username)
        raise InternalFault() from exc
    return MessageResponse(message=f"Account unlocked successfully for user: {username}")


@router.post("/api/monitoring/clear-all", response_model=MessageResponse, response_model_exclude_none=True)
def clear_all(admin: AccountAdmin = Depends(get_account_admin)):
    count = admin.clear_all()
    return MessageResponse(
        message=f"All accounts cleared successfully. {count} accounts removed.",
        removed=count,
    )


# ---------- Exception handlers ----------


async def lockout_error_handler(request: Request, exc: LockoutError) -> JSONResponse:
    """Render domain errors in the identity provider's response format."""
    retry_after = exc.remaining_seconds if isinstance(exc, LockedError) else None
    body = B2CResponse.build(
        exc.status_code,
        exc.user_message,
        developer_message=exc.developer_message,
        retry_after_seconds=retry_after,
    )
    headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
    return JSONResponse(status_code=exc.status_code, content=body.to_content(), headers=headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log everything, tell the caller nothing."""
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    fault = InternalFault()
    body = B2CResponse.build(fault.status_code, fault.user_message)
    return JSONResponse(status_code=fault.status_code, content=body.to_content())


# ---------- App setup ----------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings: Settings = app.state.settings
    logger.info("Starting %s...", settings.service_name)
    logger.info(
        "Lockout policy: threshold=%d, unlock window=%s",
        settings.lockout_threshold,
        settings.unlock_window,
    )

    yield

    removed = app.state.store.clear()
    logger.info("%s stopped (%d lockout records discarded)", settings.service_name, removed)


def create_app(settings: Settings | None = None, clock: Clock | None = None) -> FastAPI:
    """
    Build the application with its own lockout store.

    The single store instance is shared by attempt processing and the
    administrative routes.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    store = LockoutStore(clock=clock, stripes=settings.lock_stripes)
    policy = settings.policy

    app = FastAPI(
        title=settings.service_name,
        description="Account lockout callback for the sign-in flow",
        version=settings.service_version,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.lockout_service = LockoutService(store, policy)
    app.state.account_admin = AccountAdmin(
        store,
        policy,
        recent_window=settings.recent_failure_window,
    )

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(LockoutError, lockout_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
