"""API Gateway - FastAPI application for challenges, claims and sessions."""

import logging, os, threading
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional, TypeVar
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from presence_guard.api.schemas import (
    BanRequest,
    BanResponse,
    ChallengeRequest,
    ChallengeResponse,
    ClaimRequest,
    ClaimResponse,
    ErrorResponse,
    SessionActivityRequest,
    SessionActivityResponse,
    SessionRevokeRequest,
    SessionRevokeResponse,
    SessionValidateRequest,
)
from presence_guard.api.service import PresenceService
from presence_guard.common.exceptions import (
    ConfigurationError,
    StoreUnavailableError,
    ValidationError,
)
from presence_guard.common.logging import configure_logging
from presence_guard.data.schemas.records import CheatStats
from presence_guard.data.schemas.session import SessionAssessment

configure_logging(os.environ.get("PRESENCE_LOG_LEVEL", "INFO"))
logger = logging.getLogger("presence_api")


class ServiceManager:
    """Thread-safe service singleton manager."""

    _instance: Optional[PresenceService] = None
    _lock = threading.Lock()
    _initialized = False

    @classmethod
    def get_service(cls) -> PresenceService:
        """Get or create the presence service instance (thread-safe)."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = PresenceService()
                    cls._initialized = True
                    logger.info("PresenceService initialized")
        return cls._instance

    @classmethod
    def set_service(cls, service: PresenceService) -> None:
        """Install a prebuilt service (custom store or catalog)."""
        with cls._lock:
            cls._instance = service
            cls._initialized = True

    @classmethod
    def shutdown(cls) -> None:
        """Shutdown the service and release resources."""
        with cls._lock:
            if cls._instance is not None:
                cls._instance.shutdown()
                cls._instance = None
                cls._initialized = False

                logger.info("PresenceService shutdown complete")


def get_service() -> PresenceService:
    """Get the presence service instance."""
    return ServiceManager.get_service()


# =============================================================================
# CORS CONFIGURATION
# =============================================================================

def get_cors_origins() -> List[str]:
    """Get allowed CORS origins from environment.

    In production, set PRESENCE_CORS_ORIGINS environment variable
    to a comma-separated list of allowed origins.

    Example: PRESENCE_CORS_ORIGINS="https://app.example.com,https://admin.example.com"
    """
    origins_env = os.environ.get("PRESENCE_CORS_ORIGINS", "")

    if origins_env:
        return [origin.strip() for origin in origins_env.split(",") if origin.strip()]

    if os.environ.get("PRESENCE_ENVIRONMENT", "development") == "production":
        logger.warning(
            "PRESENCE_CORS_ORIGINS not set in production. "
            "CORS will be disabled. Set PRESENCE_CORS_ORIGINS for cross-origin access."
        )
        return []

    logger.warning("Running in development mode with permissive CORS (allow_origins=['*'])")
    return ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("PresenceGuard API Gateway starting up...")
    get_service()
    logger.info("PresenceGuard API Gateway ready")

    yield

    logger.info("PresenceGuard API Gateway shutting down...")
    ServiceManager.shutdown()
    logger.info("PresenceGuard API Gateway shutdown complete")


environment = os.environ.get("PRESENCE_ENVIRONMENT", "development")
enable_docs_default = "false" if environment == "production" else "true"
enable_docs = os.environ.get("PRESENCE_ENABLE_DOCS", enable_docs_default).lower() == "true"

app = FastAPI(
    title="PresenceGuard API Gateway",
    description="Proof-of-presence validation and anti-fraud API.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if enable_docs else None,
    redoc_url="/redoc" if enable_docs else None,
)


cors_origins = get_cors_origins()
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["POST", "GET"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle malformed or unsupported requests."""
    request_id = getattr(request.state, "request_id", None)
    logger.warning(
        "Validation error",
        extra={"request_id": request_id, "error": exc.message}
    )
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error="validation_error",
            message=exc.message,
            request_id=request_id,
        ).model_dump(),
    )


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    """Store failures outside claim validation (challenges, sessions)."""
    request_id = getattr(request.state, "request_id", None)
    logger.error(
        "Store unavailable",
        extra={"request_id": request_id, "operation": exc.details.get("operation")},
        exc_info=True
    )
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(
            error="service_unavailable",
            message="The service is temporarily unavailable",
            request_id=request_id,
        ).model_dump(),
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.error(
        "Configuration error",
        extra={"request_id": request_id, "error": exc.message},
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="configuration_error",
            message="The service is misconfigured",
            request_id=request_id,
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors.

    Logs full exception for debugging but returns sanitized message to client.
    """
    request_id = getattr(request.state, "request_id", None)
    logger.exception(
        "Unexpected error",
        extra={"request_id": request_id, "error_type": type(exc).__name__}
    )
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="internal_error",
            message="An unexpected error occurred",
            request_id=request_id,
        ).model_dump(),
    )


# =============================================================================
# MIDDLEWARE
# =============================================================================

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add request ID to each request for tracing."""
    request_id = f"req_{uuid4().hex[:12]}"
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# =============================================================================
# CLIENT CONTEXT
# =============================================================================

ClientBody = TypeVar("ClientBody", ClaimRequest, SessionValidateRequest, SessionActivityRequest)


def client_ip(request: Request, trust_forwarded_for: bool = True) -> Optional[str]:
    """IP of the caller: first X-Forwarded-For hop behind a proxy, else the peer."""
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else None


def with_client_context(body: ClientBody, request: Request, trust_forwarded_for: bool = True) -> ClientBody:
    """Replace the body's self-reported IP with the connection's.

    The User-Agent header fills in a missing ``device_attributes.user_agent``.
    """
    ip_address = client_ip(request, trust_forwarded_for)
    attributes = body.device_attributes
    updates = {}
    if ip_address is not None:
        if body.ip_address is not None and body.ip_address != ip_address:
            logger.info(
                "Client-reported IP replaced by connection IP",
                extra={"reported": body.ip_address, "connection": ip_address},
            )
        updates["ip_address"] = ip_address
    user_agent = request.headers.get("user-agent")
    if attributes.user_agent is None and user_agent:
        updates["user_agent"] = user_agent
    if not updates:
        return body
    attributes = attributes.model_copy(update=updates)
    return body.model_copy(update={
        "ip_address": updates.get("ip_address", body.ip_address),
        "device_attributes": attributes,
    })


# =============================================================================
# ENDPOINTS
# =============================================================================

ERROR_RESPONSES = {
    400: {"description": "Invalid request", "model": ErrorResponse},
    500: {"description": "Internal server error", "model": ErrorResponse},
    503: {"description": "Store unavailable", "model": ErrorResponse},
}


@app.post(
    "/challenges",
    response_model=ChallengeResponse,
    responses=ERROR_RESPONSES,
    summary="Issue a one-time challenge",
)
async def issue_challenge(request: ChallengeRequest) -> ChallengeResponse:
    """Issue a challenge the client must echo back with its claim."""
    service = get_service()
    return await run_in_threadpool(service.issue_challenge, request)


@app.post(
    "/claims",
    response_model=ClaimResponse,
    responses=ERROR_RESPONSES,
    summary="Submit a presence claim",
    description=(
        "Validates a presence claim and returns the decision. Rejections "
        "are ordinary 200 responses carrying a reason, flags and, where "
        "meaningful, the measured distance or the seconds until retry."
    ),
)
async def submit_claim(claim: ClaimRequest, request: Request) -> ClaimResponse:
    """Validate a presence claim.

    The claim's IP address is taken from the connection, never the body.

    Args:
        claim: Claim with challenge, GPS samples and device attributes
        request: Incoming HTTP request

    Returns:
        ClaimResponse with:
        - accepted: Whether the reward was granted
        - confidence: Aggregate confidence (0-100)
        - reason: Rejection reason
        - reward: Points/XP granted and new totals
        - audit_id: Audit trail identifier
    """
    service = get_service()
    claim = with_client_context(claim, request, service.config.trust_forwarded_for)

    logger.info(
        "Validating claim",
        extra={
            "user_id": claim.user_id,
            "tag_id": claim.tag_id,
            "flow": claim.flow,
            "samples": len(claim.samples),
        }
    )

    response = await run_in_threadpool(service.submit_claim, claim)

    logger.info(
        "Claim validation complete",
        extra={
            "accepted": response.accepted,
            "reason": response.reason,
            "confidence": response.confidence,
            "audit_id": response.audit_id,
        }
    )

    return response


@app.post(
    "/sessions/validate",
    response_model=SessionAssessment,
    responses=ERROR_RESPONSES,
    summary="Score the trust of a session",
)
async def validate_session(body: SessionValidateRequest, request: Request) -> SessionAssessment:
    service = get_service()
    body = with_client_context(body, request, service.config.trust_forwarded_for)
    return await run_in_threadpool(service.validate_session, body)


@app.post(
    "/sessions/revoke",
    response_model=SessionRevokeResponse,
    responses=ERROR_RESPONSES,
    summary="Revoke one or all sessions of a user",
)
async def revoke_sessions(request: SessionRevokeRequest) -> SessionRevokeResponse:
    service = get_service()
    return await run_in_threadpool(service.revoke_sessions, request)


@app.post(
    "/sessions/activity",
    response_model=SessionActivityResponse,
    responses=ERROR_RESPONSES,
    summary="Record a login, logout or refresh",
)
async def record_session_activity(body: SessionActivityRequest, request: Request) -> SessionActivityResponse:
    service = get_service()
    body = with_client_context(body, request, service.config.trust_forwarded_for)
    return await run_in_threadpool(service.record_session_activity, body)


@app.post(
    "/bans",
    response_model=BanResponse,
    responses=ERROR_RESPONSES,
    summary="Ban a user or an IP address",
)
async def ban(request: BanRequest) -> BanResponse:
    service = get_service()
    return await run_in_threadpool(service.ban, request)


@app.post(
    "/bans/lift",
    response_model=BanResponse,
    responses=ERROR_RESPONSES,
    summary="Lift the ban on a user or an IP address",
)
async def lift_ban(request: BanRequest) -> BanResponse:
    service = get_service()
    return await run_in_threadpool(service.lift_ban, request)


@app.get(
    "/users/{user_id}/cheat-stats",
    response_model=CheatStats,
    responses=ERROR_RESPONSES,
    summary="Anti-cheat statistics over the user's recent claims",
)
async def cheat_stats(user_id: str) -> CheatStats:
    service = get_service()
    return await run_in_threadpool(service.cheat_stats, user_id)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "service": "presence-guard-gateway"}


@app.get("/ready")
async def readiness_check() -> dict:
    """Readiness check endpoint.

    Returns 503 until the service is initialized and its store answers.
    """
    if not ServiceManager._initialized:
        raise HTTPException(status_code=503, detail="not_ready")
    ready = await run_in_threadpool(get_service().is_ready)
    if not ready:
        raise HTTPException(status_code=503, detail="store_unavailable")
    return {"status": "ready", "service": "presence-guard-gateway"}


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "presence_guard.api.gateway:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
