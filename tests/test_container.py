from fastapi import APIRouter, Depends
from fastapi.testclient import TestClient

from apiscaffold.api.dependencies import get_redis
from apiscaffold.core.config import load_settings
from apiscaffold.core.container import build_container


def test_only_probe_by_default():
    container = build_container(load_settings())
    assert container.registry.names() == ["probe"]
    assert container.app.state.container is container
    assert container.manager.listener is container.listener


def test_probe_disabled():
    container = build_container(load_settings(ENABLE_PROBE_SERVER=False))
    assert len(container.registry) == 0


def test_registration_order_follows_subsystems():
    settings = load_settings(
        POSTGRES_ENABLED=True,
        CLICKHOUSE_ENABLED=True,
        REDIS_ENABLED=True,
        KAFKA_ENABLED=True,
    )
    container = build_container(settings)
    assert container.registry.names() == ["probe", "postgres", "clickhouse", "redis", "kafka"]


def test_component_dependency_unavailable_until_running():
    cache = APIRouter(prefix="/cache")

    @cache.get("/{key}")
    async def read(key: str, redis=Depends(get_redis)):
        return {"value": await redis.get(key)}

    container = build_container(load_settings(REDIS_ENABLED=True), controllers=[cache])
    client = TestClient(container.app)

    response = client.get("/api/cache/foo")
    assert response.status_code == 503
    assert response.json() == {"message": "redis is not available", "code": 503}


def test_component_health_endpoint():
    container = build_container(load_settings())
    client = TestClient(container.app)

    response = client.get("/health/components")
    assert response.status_code == 200
    assert response.json() == {"success": True, "data": {"probe": False}}
