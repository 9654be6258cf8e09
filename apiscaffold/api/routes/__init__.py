"""Route registration for the main app."""
from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends, FastAPI
from fastapi.routing import APIRoute
import structlog

from ..middleware.rate_limiter import enforce_rate_limit

logger = structlog.get_logger("routes")

API_PREFIX = "/api"


def register_routes(app: FastAPI, controllers: Iterable[APIRouter] = ()) -> APIRouter:
    """
    Mount application controllers under ``/api`` and log the route table.

    Every ``/api`` route goes through the per-IP rate limiter.
    """
    api = APIRouter(prefix=API_PREFIX, dependencies=[Depends(enforce_rate_limit)])
    for controller in controllers:
        api.include_router(controller)
    app.include_router(api)

    log_routes(app)
    return api


def collect_api_routes(app: FastAPI, prefix: str = API_PREFIX) -> List[tuple]:
    """Sorted (method, path) pairs under ``prefix``; HEAD is skipped."""
    routes = []
    for route in app.routes:
        if not isinstance(route, APIRoute) or not route.path.startswith(prefix):
            continue
        for method in route.methods:
            if method == "HEAD":
                continue
            routes.append((method, route.path))
    return sorted(routes, key=lambda r: (r[1], r[0]))


def format_route_table(routes: List[tuple]) -> List[str]:
    width = max((len(method) for method, _ in routes), default=0)
    return [f"  {method.ljust(width)}  │  {path}" for method, path in routes]


def log_routes(app: FastAPI, log: Optional[structlog.stdlib.BoundLogger] = None) -> None:
    log = log or logger
    routes = collect_api_routes(app)
    if not routes:
        log.info("no_api_routes_found")
        return
    log.info("api_endpoints", count=len(routes))
    for line in format_route_table(routes):
        log.info(line)


__all__ = ["API_PREFIX", "register_routes", "collect_api_routes", "format_route_table", "log_routes"]
