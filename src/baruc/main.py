"""
Baruc - Main Application.

FastAPI application hosting the WhatsApp webhook, pairing pages, health and
metrics. The bot itself lives on ``app.state.bot`` for the app's lifetime.
"""

import logging
import sys
import traceback
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from baruc import __version__
from baruc.bot import BarucBot
from baruc.config import get_settings
from baruc.deps import BotDep
from baruc.exceptions import BarucException
from baruc.observability import get_metrics_store
from baruc.schemas import ClientStatus, HealthResponse

from baruc.api.routes.contexts import router as contexts_router
from baruc.api.routes.groups import router as groups_router
from baruc.api.routes.metrics import router as metrics_router
from baruc.api.routes.pairing import router as pairing_router
from baruc.api.routes.webhook import router as webhook_router

# Configure standard logging
logging.basicConfig(
    level=getattr(logging, get_settings().app_log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("baruc")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    logger.info(
        f"Starting Baruc v{__version__} "
        f"[env={settings.app_env}] "
        f"[features={settings.features.to_dict()}]"
    )
    bot = getattr(app.state, "bot", None) or BarucBot(settings)
    app.state.bot = bot
    await bot.start()
    yield
    await bot.stop()
    logger.info("Shutting down Baruc")


app = FastAPI(
    title="Baruc",
    description="Asistente de datos para grupos de WhatsApp: gráficas, análisis MLTV y reportes de zonas.",
    version=__version__,
    lifespan=lifespan,
)


# =============================================================================
# Middleware
# =============================================================================


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add request ID to all requests."""
    request_id = request.headers.get("X-Request-ID") or str(uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"[{request_id}] {request.method} {request.url.path}")

    response = await call_next(request)

    logger.info(f"[{request_id}] {request.method} {request.url.path} -> {response.status_code}")

    return response


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(BarucException)
async def baruc_exception_handler(request: Request, exc: BarucException):
    """Handle Baruc custom exceptions."""
    logger.warning(f"BarucException: {exc.code} - {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.details,
                "request_id": getattr(request.state, "request_id", None),
            }
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception on {request.url.path}: {type(exc).__name__}: {exc}")
    logger.error(f"Traceback:\n{traceback.format_exc()}")
    get_metrics_store().record_error("INTERNAL_ERROR")

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": str(exc) if get_settings().app_debug else "An unexpected error occurred",
                "request_id": getattr(request.state, "request_id", None),
            }
        },
    )


# =============================================================================
# Health Check
# =============================================================================


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(bot: BotDep):
    """Health check endpoint."""
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        version=__version__,
        features=settings.features.to_dict(),
        app_env=settings.app_env,
        classifier=bot.classifier.backend,
        client=ClientStatus(**bot.client_state.status()),
        open_contexts=len(bot.store),
    )


# =============================================================================
# Routers
# =============================================================================

app.include_router(webhook_router)
app.include_router(pairing_router)
app.include_router(groups_router)
app.include_router(contexts_router)
app.include_router(metrics_router)


@app.get("/", include_in_schema=False)
async def root():
    return {"message": "Baruc is running", "docs": "/docs"}
