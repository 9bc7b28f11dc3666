"""
MediAssist - FastAPI Main Application
"""

import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from mediassist.api import audio, auth, notes, translation, tts
from mediassist.config import settings, Environment
from mediassist.core.errors import MediAssistError
from mediassist.core.logging import setup_logging, get_logger, audit_logger
from mediassist.core.metrics import request_count, request_duration
from mediassist.core.security import security_manager
from mediassist.db import create_store
from mediassist.models.responses import HealthCheckResponse
from mediassist.services.audio_processor import AudioProcessor
from mediassist.services.nlp_service import NLPService
from mediassist.services.stt_service import STTService
from mediassist.services.translation_service import TranslationService
from mediassist.services.tts_service import TTSService

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("🚀 MediAssist API starting...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"API Version: {settings.api_version}")

    store = create_store(settings)
    await store.connect()

    app.state.store = store
    app.state.audio_processor = AudioProcessor()
    app.state.stt_service = STTService()
    app.state.nlp_service = NLPService()
    app.state.translation_service = TranslationService()
    app.state.tts_service = TTSService()
    app.state.note_generation_mode = settings.note_generation_mode
    app.state.started_at = time.time()

    yield

    # Shutdown
    logger.info("🛑 MediAssist API shutting down...")
    await store.close()


# Create FastAPI app
app = FastAPI(
    title=settings.api_title,
    description=settings.api_description,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == Environment.DEVELOPMENT else None,
    redoc_url="/redoc" if settings.environment == Environment.DEVELOPMENT else None,
    debug=settings.debug,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


def _internal_error_response(request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
            "request_id": request_id,
            "timestamp": datetime.utcnow().isoformat()
        },
        headers={"X-Request-ID": request_id}
    )


# Middleware for security headers
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    if "Strict-Transport-Security" not in response.headers:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    if "X-Content-Type-Options" not in response.headers:
        response.headers["X-Content-Type-Options"] = "nosniff"
    if "X-Frame-Options" not in response.headers:
        response.headers["X-Frame-Options"] = "DENY"
    if "Content-Security-Policy" not in response.headers:
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
    return response


# Middleware for request tracking and metrics
@app.middleware("http")
async def track_requests(request: Request, call_next):
    """Request tracking and Prometheus metrics"""

    start_time = time.time()
    request_id = security_manager.generate_request_id()

    # Add request ID and start time to state
    request.state.request_id = request_id
    request.state.start_time = start_time

    try:
        response = await call_next(request)

        # Update metrics
        duration = time.time() - start_time
        request_count.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code
        ).inc()
        request_duration.observe(duration)

        if request.url.path.startswith("/api"):
            audit_logger.log_api_request(
                request_id=request_id,
                endpoint=request.url.path,
                method=request.method,
                user_agent=request.headers.get("user-agent"),
                ip_address=request.client.host if request.client else None,
                status_code=response.status_code,
                user_id=getattr(request.state, "user_id", None),
            )

        # Set response headers
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Processing-Time"] = f"{duration:.3f}s"

        return response

    except Exception as e:
        request_count.labels(
            method=request.method,
            endpoint=request.url.path,
            status=500
        ).inc()

        logger.error(f"Request {request_id} failed: {e}", exc_info=True)
        audit_logger.log_error(
            request_id=request_id,
            error_type=type(e).__name__,
            error_message=str(e),
            stack_trace=traceback.format_exc(),
        )
        return _internal_error_response(request_id)


# Health check endpoint
@app.get("/health", response_model=HealthCheckResponse)
async def health_check(request: Request):
    """Service health check"""

    return HealthCheckResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        version=settings.api_version,
        uptime_seconds=int(time.time() - request.app.state.started_at)
    )


@app.get("/ready")
async def readiness_check(request: Request):
    """
    Checks if the document store accepts traffic.
    Returns 200 OK when it answers a ping, otherwise 503 Service Unavailable.
    """
    store_ok = await request.app.state.store.ping()
    response_data = {
        "status": "ready" if store_ok else "unavailable",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.api_version,
        "details": {"store": {"status": "ok" if store_ok else "error", "backend": settings.store_backend.value}},
    }

    if store_ok:
        return JSONResponse(status_code=status.HTTP_200_OK, content=response_data)
    logger.warning("Readiness check failed: document store unreachable")
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=response_data)


# Prometheus metrics endpoint
@app.get("/metrics")
async def metrics():
    """Prometheus metrics"""
    if not settings.enable_metrics:
        raise HTTPException(status_code=404, detail="Metrics disabled")

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(auth.router)
app.include_router(audio.router)
app.include_router(notes.router)
app.include_router(translation.router)
app.include_router(tts.router)


@app.exception_handler(MediAssistError)
async def domain_error_handler(request: Request, exc: MediAssistError):
    """Client errors keep their message; server-side ones are logged and masked"""

    request_id = getattr(request.state, 'request_id', 'unknown')
    if exc.status_code >= 500:
        logger.error(f"Request {request_id} failed: {exc.message}", exc_info=exc)
        return _internal_error_response(request_id)

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers={"X-Request-ID": request_id}
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""

    request_id = getattr(request.state, 'request_id', 'unknown')

    logger.error(f"Unhandled error in request {request_id}: {exc}")
    logger.error(f"Stacktrace: {''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))}")

    return _internal_error_response(request_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mediassist.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == Environment.DEVELOPMENT
    )
