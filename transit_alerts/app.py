import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .middleware.logging import LoggingMiddleware
from .routers import transits as transits_router
from .services.errors import CalculationError, LifecycleError, TransitEngineError, ValidationError
from .services.registry import EngineRegistry
from .settings import EngineSettings, configure_logging

logger = logging.getLogger(__name__)


def create_app(settings: Optional[EngineSettings] = None, registry: Optional[EngineRegistry] = None) -> FastAPI:
    settings = settings or EngineSettings.from_env()
    configure_logging(settings.log_level)

    registry = registry or EngineRegistry(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        registry.close()

    app = FastAPI(title="wh-transit-alerts (dev)", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry

    app_env = os.getenv("APP_ENV")
    if app_env is None or app_env.lower() in {"dev", "development"}:
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            max_age=86400,
        )
    app.add_middleware(LoggingMiddleware)

    app.include_router(transits_router.router)

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc), "field": exc.field})

    @app.exception_handler(LifecycleError)
    async def _lifecycle_error(request: Request, exc: LifecycleError):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(CalculationError)
    async def _calculation_error(request: Request, exc: CalculationError):
        logger.error("calculation_failed", extra={"body": exc.body, "path": request.url.path})
        return JSONResponse(status_code=500, content={"detail": str(exc), "body": exc.body})

    @app.exception_handler(TransitEngineError)
    async def _engine_error(request: Request, exc: TransitEngineError):
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.get("/__health")
    def health():
        return {"ok": True}

    return app


app = create_app()
