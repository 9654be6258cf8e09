"""
apiscaffold/api/probe.py
Minimal HTTP server for Kubernetes probes.

Runs on its own port so orchestrators can poll it while the main
listener is still starting or already draining.
"""

from typing import Optional

from fastapi import FastAPI

from .lifespan.base import BaseLifecycleComponent
from .lifespan.state import ReadinessState
from .routes.health import probe_router
from .server import HTTPListener
from ..core.config import Settings


def create_probe_app(state: ReadinessState, manager=None) -> FastAPI:
    """
    Probe app exposing /healthz, /readyz, /startupz and /components.

    Handlers only read ``state``; nothing here blocks or does I/O.
    """
    app = FastAPI(
        title="probes",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.readiness = state
    app.state.lifespan_manager = manager
    app.include_router(probe_router)
    return app


class ProbeServerComponent(BaseLifecycleComponent):
    """
    Lifecycle wrapper for the probe listener.

    Registered first so probes answer (with 503s) during the rest of
    startup, and stopped last so readiness keeps failing while the
    main listener drains.
    """

    name = "probe"
    startup_timeout = 15
    shutdown_timeout = 5

    def __init__(self, settings: Settings, state: ReadinessState, manager=None):
        super().__init__()
        self.settings = settings
        self.app = create_probe_app(state, manager)
        self.listener: Optional[HTTPListener] = None

    async def startup(self) -> None:
        self.safe_log("starting_probe_server", port=self.settings.PROBE_PORT)

        self.listener = HTTPListener(
            self.app,
            self.settings.PROBE_HOST,
            self.settings.PROBE_PORT,
            name="probe",
            log_level=self.settings.LOG_LEVEL,
        )
        await self.listener.start(self.startup_timeout)

        self.metadata.update({
            "host": self.listener.host,
            "port": self.listener.port,
            "address": self.listener.address,
        })
        self.safe_log("probe_server_started", **self.metadata)

    async def shutdown(self) -> None:
        if self.listener is None:
            return
        self.safe_log("stopping_probe_server")
        await self.listener.stop(self.shutdown_timeout)
        self.safe_log("probe_server_stopped")

    async def health_check(self) -> bool:
        return self.listener is not None and self.listener.is_serving
