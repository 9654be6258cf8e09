"""
apiscaffold/api/main.py
FastAPI application factory and process entry point.

Architecture:
- create_app() builds the main app (middleware, handlers, routes)
- serve() runs the lifespan manager until SIGINT/SIGTERM
- run() is the console entry point
"""

import asyncio
import contextlib
import signal
import sys
from typing import Iterable

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .lifespan.base import BaseLifecycleComponent
from .middleware import RateLimiter, register_exception_handlers
from .routes import health, metrics, register_routes
from ..core.config import Settings, load_settings
from ..core.exceptions import ServiceException, StartupFailure
from ..core.logging import LogContext, get_logger, setup_logging

logger = get_logger("main")


# ============================================================================
# Create Application
# ============================================================================

def create_app(settings: Settings, controllers: Iterable[APIRouter] = ()) -> FastAPI:
    """
    Create the main FastAPI application.

    Args:
        settings: Process settings
        controllers: Routers mounted under ``/api``

    Returns:
        Configured app; it has no lifespan of its own, the manager drives it
    """
    logger.info(
        "creating_app",
        name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT
    )

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        docs_url="/swagger" if settings.SWAGGER_ENABLED else None,
        redoc_url=None,
        openapi_url="/swagger/openapi.json" if settings.SWAGGER_ENABLED else None,
    )
    app.state.settings = settings
    app.state.rate_limiter = RateLimiter(
        settings.RATE_LIMIT, settings.RATE_WINDOW, trusted_proxies=settings.TRUSTED_PROXIES
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials="*" not in settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(metrics.router)
    register_routes(app, controllers)

    logger.info("app_created_successfully")
    return app


# ============================================================================
# Process Entry Point
# ============================================================================

def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))


async def serve(
    settings: Settings,
    controllers: Iterable[APIRouter] = (),
    extra_components: Iterable[BaseLifecycleComponent] = (),
) -> int:
    """
    Start everything, wait for a termination signal, shut down.

    A signal that arrives during startup cancels it; whatever already
    started is then shut down as usual.

    Returns:
        Process exit code: 0 on a clean run, 1 on a startup failure or when
        shutdown reported errors
    """
    with LogContext(service=settings.APP_NAME, version=settings.APP_VERSION):
        return await _serve(settings, controllers, extra_components)


async def _serve(
    settings: Settings,
    controllers: Iterable[APIRouter],
    extra_components: Iterable[BaseLifecycleComponent],
) -> int:
    from ..core.container import build_container  # container imports create_app

    stop = asyncio.Event()
    _install_signal_handlers(stop)

    try:
        container = build_container(
            settings, controllers=controllers, extra_components=extra_components
        )
    except ServiceException as e:
        logger.error("invalid_component_configuration", **e.to_dict())
        return 1

    logger.info("starting_server", host=settings.HOST, port=settings.PORT)
    startup = asyncio.create_task(container.manager.startup(), name="startup")
    stopped = asyncio.create_task(stop.wait(), name="wait-for-signal")
    await asyncio.wait({startup, stopped}, return_when=asyncio.FIRST_COMPLETED)

    if startup.done():
        try:
            startup.result()
        except StartupFailure as e:
            stopped.cancel()
            logger.error("startup_failed", **e.to_dict())
            return 1
        await stopped
    else:
        logger.warning("startup_interrupted_by_signal")
        startup.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await startup

    logger.info("termination_signal_received")
    errors = await container.manager.shutdown(settings.SHUTDOWN_TIMEOUT)
    return 1 if errors else 0


def run() -> None:
    settings = load_settings()
    setup_logging(settings)
    sys.exit(asyncio.run(serve(settings)))


# ============================================================================
# Exports
# ============================================================================

__all__ = ["create_app", "serve", "run"]
