"""
apiscaffold/core/container.py
Wires settings into the readiness state, the apps, the components and the
lifespan manager.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import APIRouter, FastAPI

from .config import Settings
from ..api.lifespan.base import BaseLifecycleComponent
from ..api.lifespan.manager import LifespanManager
from ..api.lifespan.registry import ComponentRegistry
from ..api.lifespan.state import ReadinessState
from ..api.metrics.registry import bind_readiness
from ..api.main import create_app
from ..api.probe import ProbeServerComponent
from ..api.server import HTTPListener
from ..infra.clickhouse import ClickHouseComponent
from ..infra.kafka import KafkaComponent
from ..infra.postgres import PostgresComponent
from ..infra.redis import RedisComponent


@dataclass
class ServiceContainer:
    settings: Settings
    state: ReadinessState
    registry: ComponentRegistry
    app: FastAPI
    listener: HTTPListener
    manager: LifespanManager

    def get(self, name: str) -> Optional[BaseLifecycleComponent]:
        return self.registry.get_by_name(name)


def build_container(
    settings: Settings,
    state: Optional[ReadinessState] = None,
    controllers: Iterable[APIRouter] = (),
    extra_components: Iterable[BaseLifecycleComponent] = (),
) -> ServiceContainer:
    """
    Build everything the process runs.

    Registration order is startup order: probe server, PostgreSQL,
    ClickHouse, Redis, Kafka (each only when enabled), then
    ``extra_components``.
    """

    state = state or ReadinessState()
    registry = ComponentRegistry()

    app = create_app(settings, controllers=controllers)
    listener = HTTPListener(
        app, settings.HOST, settings.PORT, name="main", log_level=settings.LOG_LEVEL
    )
    manager = LifespanManager(
        state,
        registry,
        listener,
        ready_settle_delay=settings.READY_SETTLE_DELAY,
        listener_bind_timeout=settings.LISTENER_BIND_TIMEOUT,
        listener_shutdown_grace=settings.LISTENER_SHUTDOWN_GRACE,
        shutdown_timeout=settings.SHUTDOWN_TIMEOUT,
    )

    if settings.ENABLE_PROBE_SERVER:
        registry.register(ProbeServerComponent(settings, state, manager))
    if settings.POSTGRES_ENABLED:
        registry.register(PostgresComponent(settings))
    if settings.CLICKHOUSE_ENABLED:
        registry.register(ClickHouseComponent(settings))
    if settings.REDIS_ENABLED:
        registry.register(RedisComponent(settings))
    if settings.KAFKA_ENABLED:
        registry.register(KafkaComponent(settings))
    for component in extra_components:
        registry.register(component)

    container = ServiceContainer(
        settings=settings,
        state=state,
        registry=registry,
        app=app,
        listener=listener,
        manager=manager,
    )
    app.state.readiness = state
    app.state.lifespan_manager = manager
    app.state.container = container
    bind_readiness(state)
    return container


__all__ = ["ServiceContainer", "build_container"]
