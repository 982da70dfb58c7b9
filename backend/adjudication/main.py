"""
FastAPI application for the Pre-Adjudication Matrix
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adjudication import __version__
from adjudication.api.routes import decisions, health, metrics, websocket_events
from adjudication.core.config import get_settings
from adjudication.core.database import create_tables
from adjudication.core.logging_config import LoggingConfig
from adjudication.core.middleware import LoggingContextMiddleware

# Configure logging first
LoggingConfig.configure()

logger = LoggingConfig.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI app"""
    settings = get_settings()
    session = settings.session_config
    logger.info(
        f"Starting {settings.app_name} in {settings.app_env} mode...",
        extra={"matrix_id": session.matrix_id}
    )
    if settings.database_create_tables:
        create_tables()

    yield

    logger.info(f"Shutting down {settings.app_name}...")


def create_app() -> FastAPI:
    """Build the application"""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        description="Classify offenses into Green/Yellow/Red decisions and watch them live",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(LoggingContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler to log all unhandled errors"""
        if isinstance(exc, FastAPIHTTPException):
            raise exc

        logger.error(
            "Unhandled exception",
            exc_info=True,
            extra={
                "error": str(exc),
                "error_type": type(exc).__name__,
                "path": request.url.path,
                "method": request.method,
            }
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "type": type(exc).__name__
            }
        )

    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(decisions.router)
    app.include_router(websocket_events.router)

    @app.get("/api")
    async def root():
        """Root API endpoint"""
        return {
            "name": settings.app_name,
            "version": __version__,
            "status": "running",
            "environment": settings.app_env,
        }

    return app


app = create_app()
