"""FastAPI dependencies that hand started components to route handlers."""
from fastapi import HTTPException, Request, status

from .lifespan.base import BaseLifecycleComponent, ComponentState


def get_component(request: Request, name: str) -> BaseLifecycleComponent:
    """
    Look up a running component on the app's container.

    Raises 503 when the component is not registered or not running, so a
    handler never touches a closed pool.
    """
    container = getattr(request.app.state, "container", None)
    component = container.get(name) if container is not None else None
    if component is None or component.state != ComponentState.RUNNING:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} is not available",
        )
    return component


def get_postgres(request: Request):
    return get_component(request, "postgres")


def get_clickhouse(request: Request):
    return get_component(request, "clickhouse")


def get_redis(request: Request):
    return get_component(request, "redis")


def get_kafka(request: Request):
    return get_component(request, "kafka")


__all__ = ["get_component", "get_postgres", "get_clickhouse", "get_redis", "get_kafka"]
