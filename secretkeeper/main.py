import logging
from typing import Any, Optional

import httpx
from fastapi import Depends, FastAPI
from fastapi.responses import ORJSONResponse

from .auth import AuthenticatedUser, get_current_user
from .audit import configure_audit_log
from .auth_providers.registry import build_providers
from .auth_providers.session import SessionManager
from .context import AppContext, get_context
from .core.config import Settings, get_settings
from .db.session import build_engine, build_sessionmaker, check_db_health
from .jobs.cleanup import get_job_status, schedule_jobs, start_background_jobs, stop_background_jobs
from .middleware.correlation import CorrelationIDMiddleware
from .middleware.error_handler import register_exception_handlers
from .middleware.metrics import MetricsMiddleware, get_metrics
from .middleware.rate_limit import RateLimiter
from .models import HealthResponse, HomePage
from .routers import auth, auth_oauth, secrets

logger = logging.getLogger(__name__)


def build_context(
    settings: Settings,
    redis: Any = None,
    oauth_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AppContext:
    """Construct everything the request handlers share."""
    engine = build_engine(settings)
    return AppContext(
        settings=settings,
        engine=engine,
        sessionmaker=build_sessionmaker(engine),
        sessions=SessionManager(settings, redis=redis),
        providers=build_providers(settings, transport=oauth_transport),
        rate_limiter=RateLimiter(settings.LOGIN_RATE_LIMIT_PER_MINUTE),
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    redis: Any = None,
    oauth_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the application and its server context.

    Args:
        settings: Configuration (read from the environment when omitted)
        redis: Pre-built async Redis client for the session store
        oauth_transport: httpx transport handed to the OAuth providers
    """
    settings = settings or get_settings()
    context = build_context(settings, redis=redis, oauth_transport=oauth_transport)
    configure_audit_log(settings.AUDIT_LOG_PATH)

    app = FastAPI(
        title="Secretkeeper",
        description="Store and view short secrets behind local, Google or Facebook login",
        version="0.1.0",
        debug=settings.DEBUG,
    )
    app.state.context = context

    # Correlation ID first, so it's available in all logs
    app.add_middleware(CorrelationIDMiddleware)
    app.middleware("http")(MetricsMiddleware())

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(auth_oauth.router)
    app.include_router(secrets.router)

    @app.on_event("startup")
    async def startup_event():
        """Initialize services on startup."""
        logger.info("Starting Secretkeeper...")
        settings.validate_production_config()
        await context.sessions.connect()
        schedule_jobs(context.scheduler, context.sessions, settings.SESSION_PURGE_INTERVAL_MINUTES)
        start_background_jobs(context.scheduler)
        logger.info(f"OAuth providers enabled: {context.oauth_providers() or 'none'}")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown."""
        logger.info("Shutting down Secretkeeper...")
        stop_background_jobs(context.scheduler)
        await context.sessions.disconnect()
        await context.engine.dispose()

    @app.get("/", response_model=HomePage, response_class=ORJSONResponse)
    async def home(
        current_user: Optional[AuthenticatedUser] = Depends(get_current_user),
        context: AppContext = Depends(get_context),
    ):
        return HomePage(
            authenticated=current_user is not None,
            providers=auth.provider_listing(context),
        )

    @app.get("/health", response_model=HealthResponse, response_class=ORJSONResponse)
    async def health(context: AppContext = Depends(get_context)):
        """Health check endpoint."""
        healthy, latency_ms, error = await check_db_health(context.sessionmaker)
        return HealthResponse(
            status="ok" if healthy else "degraded",
            env=context.settings.APP_ENV,
            database={"healthy": healthy, "latency_ms": round(latency_ms, 2), "error": error},
            session_backend=context.sessions.backend,
            jobs=get_job_status(context.scheduler),
        )

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return get_metrics()

    return app


def serve() -> None:
    """Console entry point: run the app under uvicorn on HOST:PORT."""
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
