"""
Main FastAPI application
Placement readiness platform: AI-generated assessments, skill-gap prediction,
learning paths, resume scoring and TPO analytics
"""
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import time

from readiness.config import settings
from readiness.database import init_db
from readiness.errors import AIServiceError, InvalidTransition, PersistenceFailure
from readiness.api import analytics, assessments, auth, functions, learning_path, messages, resumes
from readiness.services.attempt_registry import AttemptBusy, AttemptRegistry
from readiness.services.session_store import SessionStore
from readiness.utils.cache import cache_service
from readiness.utils.rate_limiter import RateLimitExceeded, rate_limiter
from readiness.utils.realtime import RealtimeBroker

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Placement readiness assessments with AI question generation, grading and skill-gap prediction",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Per-application state (sessions, in-flight attempts, realtime subscribers)
app.state.sessions = SessionStore()
app.state.attempts = AttemptRegistry()
app.state.broker = RealtimeBroker(queue_size=settings.REALTIME_QUEUE_SIZE)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


UNTHROTTLED_PATHS = {"/", "/health", "/docs", "/redoc", "/openapi.json"}


# Rate limiting middleware
@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    """Per-user (or per-IP) request budget; health and docs are exempt"""

    if request.url.path not in UNTHROTTLED_PATHS:
        try:
            rate_limiter.check(request)
        except RateLimitExceeded as e:
            return JSONResponse(
                status_code=429,
                content={**e.to_detail(), "status_code": 429},
                headers={"Retry-After": str(e.retry_after)}
            )

    return await call_next(request)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """One line per request: method, path, status, duration"""

    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started

    level = logging.WARNING if response.status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Duration: {elapsed:.3f}s"
    )

    return response


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors gracefully"""
    
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later.",
            "detail": str(exc) if settings.DEBUG else None
        }
    )


# HTTP exception handler
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Format HTTP exceptions consistently"""
    
    if isinstance(exc.detail, dict):
        content = {"error": "http_error", **exc.detail, "status_code": exc.status_code}
    else:
        content = {"error": "http_error", "message": exc.detail, "status_code": exc.status_code}
    
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(AIServiceError)
async def ai_service_exception_handler(request: Request, exc: AIServiceError):
    """AI failures that no fallback absorbed"""
    
    logger.error(f"AI service error on {request.url.path}: {exc.kind.value}: {exc.message}")
    
    return JSONResponse(
        status_code=exc.status_code,
        content={**exc.to_detail(), "status_code": exc.status_code}
    )


@app.exception_handler(InvalidTransition)
@app.exception_handler(AttemptBusy)
async def conflict_exception_handler(request: Request, exc: Exception):
    """Action not allowed in the attempt's current state, or attempt busy"""
    
    return JSONResponse(
        status_code=409,
        content={"error": "conflict", "message": str(exc), "status_code": 409}
    )


@app.exception_handler(PersistenceFailure)
async def persistence_exception_handler(request: Request, exc: PersistenceFailure):
    
    logger.error(f"Persistence failure on {request.url.path}: {str(exc)}")
    
    return JSONResponse(
        status_code=503,
        content={
            "error": "persistence_failure",
            "message": "The database is unavailable. Please try again later.",
            "detail": str(exc) if settings.DEBUG else None,
            "status_code": 503
        }
    )


# Health check endpoint
@app.get("/health")
async def health_check(request: Request):
    """
    Liveness plus the state of optional dependencies

    Redis and Gemini are optional at runtime: without Redis rankings are not
    cached, without an API key every AI call takes its fallback path.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "cache": "enabled" if cache_service.enabled else "disabled",
        "ai_configured": bool(settings.GEMINI_API_KEY),
        "active_sessions": len(request.app.state.sessions),
        "open_attempts": len(request.app.state.attempts),
        "timestamp": time.time()
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Placement Readiness API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "functions": "/functions"
    }


# Include routers
app.include_router(auth.router)
app.include_router(assessments.router)
app.include_router(functions.router)
app.include_router(learning_path.router)
app.include_router(resumes.router)
app.include_router(messages.router)
app.include_router(analytics.router)


@app.on_event("startup")
async def startup_event():
    """Create missing tables before serving"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    init_db()
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY is not set; AI features will use their fallbacks")
    logger.info("Application startup complete")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(
        f"Shutting down with {len(app.state.attempts)} open attempts "
        f"and {len(app.state.sessions)} sessions"
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "readiness.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
