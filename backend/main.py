# main.py — SDG Taskboard API
# Features:
# - Request correlation IDs
# - Security headers
# - Structured domain error responses
# - Health check with DB verification

import os
import uuid
import time
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from database import init_db, close_db, get_db_context, engine
from errors import ERROR_CATALOGUE, DomainError, error_envelope, validation_details
from telemetry import setup_telemetry

# Logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)
logger = logging.getLogger("sdg-taskboard")

VERSION = "1.0.0"
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")


def _check_startup_config():
    """Log warnings for configuration that is unsafe outside local development"""
    warnings = []

    jwt_key = os.getenv("JWT_SECRET_KEY", "")
    if not jwt_key or len(jwt_key) < 32:
        warnings.append("JWT_SECRET_KEY is not set or too short; tokens will not survive a restart")

    if os.getenv("AUTH_MODE", "local").lower() == "dev" and ENVIRONMENT != "development":
        warnings.append(f"AUTH_MODE=dev in {ENVIRONMENT}: unauthenticated requests act as the dev user")

    for w in warnings:
        logger.warning(w)

    return len(warnings) == 0


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting SDG Taskboard v%s...", VERSION)
    await init_db()
    _check_startup_config()
    # No-op unless OTEL_EXPORTER_OTLP_ENDPOINT is set
    setup_telemetry(app, engine)
    yield
    logger.info("Shutting down SDG Taskboard...")
    await close_db()


app = FastAPI(
    title="SDG Taskboard",
    description="Project and task tracking with gamification for Sustainable Development Goal initiatives",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ============================================================
# CORS
# ============================================================

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]
TRACE_HEADERS = ["X-Request-ID", "X-Correlation-ID"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", *TRACE_HEADERS],
    expose_headers=TRACE_HEADERS,
)


# ============================================================
# MIDDLEWARE: request context
# ============================================================

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Tag each request with an id, time it and stamp the response headers"""
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    request.state.correlation_id = request.headers.get("X-Correlation-ID") or rid

    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started

    response.headers.update(SECURITY_HEADERS)
    response.headers["X-Request-ID"] = rid
    response.headers["X-Correlation-ID"] = request.state.correlation_id
    response.headers["X-Response-Time"] = f"{elapsed:.4f}s"

    logger.info("%s %s -> %s (%.3fs) [rid=%s]",
                request.method, request.url.path, response.status_code, elapsed, rid[:8])
    return response


def _request_id(request: Request):
    return getattr(request.state, "request_id", None)


# ============================================================
# EXCEPTION HANDLERS
# ============================================================

@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.detail)
    body = exc.to_dict()
    body["request_id"] = _request_id(request)
    return JSONResponse(status_code=exc.http_status, content=body)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = error_envelope("SDG-SYS-004", validation_details(exc.errors()), _request_id(request))
    return JSONResponse(status_code=422, content=body)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    body = error_envelope("SDG-SYS-001", ERROR_CATALOGUE["SDG-SYS-001"]["message"], _request_id(request))
    return JSONResponse(status_code=500, content=body)


# ============================================================
# ROUTERS
# ============================================================

from routers import auth, projects, tasks, gamification, activities, users

app.include_router(auth.router)
app.include_router(projects.router)
app.include_router(tasks.router)
app.include_router(gamification.router)
app.include_router(activities.router)
app.include_router(users.router)


# ============================================================
# HEALTH & ROOT
# ============================================================

@app.get("/health")
async def health_check():
    """Health check with database connectivity verification"""
    try:
        async with get_db_context() as db:
            await db.execute(text("SELECT 1"))
        db_status = "connected"
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Health check database ping failed: %s", e)
        db_status = f"error: {str(e)[:100]}"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "version": VERSION,
        "environment": ENVIRONMENT,
        "database": db_status,
    }


@app.get("/")
async def root():
    return {
        "name": "SDG Taskboard",
        "version": VERSION,
        "description": "Project and task tracking with gamification for SDG initiatives",
        "docs": "/docs",
        "health": "/health",
        "status": "operational",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=ENVIRONMENT != "production",
        workers=int(os.getenv("WORKERS", 1)),
    )
