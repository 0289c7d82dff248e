from contextlib import asynccontextmanager

import structlog
import structlog.contextvars
from config import settings
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from plugins import init_plugins
from plugins.core.options.service import build_options_service
from prometheus_fastapi_instrumentator import Instrumentator
from pymongo.errors import ConnectionFailure
from utils.database_setup import ensure_indexes
from utils.exceptions import AjaxUnauthorizedError, ServiceError
from utils.middleware import structured_logging_middleware
from utils.nonces import NonceManager

from options_core.logging_config import setup_structlog
from options_core.tracing import setup_tracing

EXCLUDED_PLUGINS = []

setup_structlog(
    json_logs=settings.json_logs,
    log_level=settings.log_level,
    service_name=settings.service_name,
    environment=settings.environment,
)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Connects to MongoDB and builds the shared options service on startup,
    disconnects on shutdown.
    """
    setup_tracing(service_name=settings.service_name)
    logger.info("Application starting up...", service=settings.service_name)

    instrumentator.expose(app)

    try:
        app.state.mongo_client = AsyncIOMotorClient(str(settings.mongodb_url))
        await app.state.mongo_client.admin.command("ping")
        logger.info("Successfully connected to MongoDB.")

        db = app.state.mongo_client[settings.mongodb_database]
        await ensure_indexes(db)
    except ConnectionFailure as e:
        logger.fatal("Failed to connect to MongoDB on startup.", error=str(e))
        raise

    nonces = NonceManager(
        secret=settings.nonce_secret,
        lifetime_seconds=settings.nonce_lifetime_seconds,
        admin_origin=settings.admin_origin,
    )
    app.state.options_service = build_options_service(
        db,
        plugin_name=settings.plugin_name,
        nonces=nonces,
        version=settings.plugin_version,
    )

    yield

    logger.info("Application shutting down...")
    app.state.mongo_client.close()
    logger.info("MongoDB connection closed.")


app = FastAPI(
    version="1.0.0",
    title="Plugin Options API",
    description="Cached plugin options with nonce-protected updates.",
    lifespan=lifespan,
)

FastAPIInstrumentor.instrument_app(app)

instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/metrics", "/health"],
)

instrumentator.instrument(app, metric_namespace="options", metric_subsystem="backend")


@app.exception_handler(AjaxUnauthorizedError)
async def ajax_unauthorized_handler(request: Request, exc: AjaxUnauthorizedError):
    logger.warning("Rejected background request", detail=exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "data": exc.detail},
    )


@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    logger.warning(
        "Service error occurred, returning HTTP response",
        detail=exc.detail,
        status_code=exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "An unhandled exception occurred",
        error=str(exc),
    )
    context_vars = structlog.contextvars.get_contextvars()
    correlation_id = context_vars.get("correlation_id", "not-available")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An internal server error occurred.",
            "error_id": correlation_id,
        },
    )


app.middleware("http")(structured_logging_middleware)

init_plugins(app, excluded_plugins=EXCLUDED_PLUGINS)


@app.get("/health", tags=["Health Check"], include_in_schema=False)
def health_check():
    return {"status": "ok"}
