"""readycheck — production-readiness validation service.

FastAPI application with lifespan management, CORS, and global error handling.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from readycheck.api.router import api_router, ws_router
from readycheck.config import get_settings
from readycheck.errors import EngineLoadError, NoResultError, RunNotFoundError
from readycheck.logging_setup import configure_logging
from readycheck.services.event_bus import event_bus
from readycheck.services.run_manager import RunManager

configure_logging(debug=get_settings().DEBUG, level=get_settings().LOG_LEVEL)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    settings = get_settings()

    # ── Startup ──
    logger.info("app_starting", debug=settings.DEBUG, engines=sorted(settings.ENGINES))
    app.state.run_manager = RunManager(event_bus, max_history=settings.MAX_RUN_HISTORY)
    logger.info("app_started")

    yield

    # ── Shutdown ──
    logger.info("app_shutting_down")
    for record in app.state.run_manager.list_runs():
        if record.task is not None and not record.task.done():
            record.task.cancel()
    logger.info("app_stopped")


# ── Create Application ──

app = FastAPI(
    title="readycheck",
    description=(
        "Production-readiness validation. Pluggable analysis engines run in a "
        "fixed phase order and their findings roll up into one verdict."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ── Middleware ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Global Exception Handlers ──

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all error handler for unhandled exceptions."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again.",
        },
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Unknown phases, formats and levels."""
    return JSONResponse(
        status_code=422,
        content={"error": "validation_error", "message": str(exc)},
    )


@app.exception_handler(EngineLoadError)
async def engine_load_error_handler(request: Request, exc: EngineLoadError):
    return JSONResponse(
        status_code=422,
        content={"error": "engine_load_error", "message": str(exc)},
    )


@app.exception_handler(RunNotFoundError)
async def run_not_found_handler(request: Request, exc: RunNotFoundError):
    return JSONResponse(
        status_code=404,
        content={"error": "not_found", "message": str(exc)},
    )


@app.exception_handler(NoResultError)
async def no_result_handler(request: Request, exc: NoResultError):
    return JSONResponse(
        status_code=409,
        content={"error": "no_result", "message": str(exc)},
    )


# ── Routes ──

app.include_router(api_router, prefix="/api/v1")
app.include_router(ws_router)  # WebSocket at /ws/runs/{id} (no versioned prefix)


# ── Root endpoint ──

@app.get("/")
async def root():
    """Root endpoint — API info."""
    return {
        "name": "readycheck",
        "version": "1.0.0",
        "description": "Production-readiness validation service",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
