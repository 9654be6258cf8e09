"""Health check endpoints for orchestrators and monitoring."""
from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse

from ...schemas.response import success, success_only

# Served by the probe app; paths follow the Kubernetes convention
probe_router = APIRouter(tags=["Probes"])

# Served by the main app
router = APIRouter(tags=["Health"])


@probe_router.get("/healthz", response_class=PlainTextResponse, summary="Liveness probe")
async def liveness():
    """
    Returns 200 while the process can answer at all.
    Does not look at any component.
    """
    return PlainTextResponse("OK")


@probe_router.get("/readyz", response_class=PlainTextResponse, summary="Readiness probe")
async def readiness(request: Request):
    """
    Returns:
    - 200: ready to serve traffic
    - 503: starting, or shutting down
    """
    if request.app.state.readiness.is_ready():
        return PlainTextResponse("OK")
    return PlainTextResponse(
        "Service not ready yet", status_code=status.HTTP_503_SERVICE_UNAVAILABLE
    )


@probe_router.get("/startupz", response_class=PlainTextResponse, summary="Startup probe")
async def startup(request: Request):
    """
    Returns:
    - 200: every component has started
    - 503: still starting
    """
    if request.app.state.readiness.is_startup_complete():
        return PlainTextResponse("OK")
    return PlainTextResponse(
        "Service starting up", status_code=status.HTTP_503_SERVICE_UNAVAILABLE
    )


@probe_router.get("/components", summary="Lifecycle state of every component")
async def components(request: Request):
    manager = getattr(request.app.state, "lifespan_manager", None)
    readiness = request.app.state.readiness.snapshot()
    if manager is None:
        return {"readiness": readiness, "startup": None, "components": {}}
    return {
        "readiness": readiness,
        "startup": manager.get_startup_metrics(),
        "components": manager.get_component_metrics(),
    }


@router.get("/health", summary="Service health")
async def health():
    return success_only()


@router.get("/health/components", summary="Active health check of every component")
async def component_health(request: Request):
    """Runs each component's ``health_check``; may touch the network."""
    manager = getattr(request.app.state, "lifespan_manager", None)
    if manager is None:
        return success({})
    return success(await manager.check_components())
