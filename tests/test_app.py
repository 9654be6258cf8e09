import pytest
from fastapi import APIRouter
from fastapi.testclient import TestClient

from apiscaffold.api.main import create_app
from apiscaffold.core.config import load_settings
from apiscaffold.schemas.response import created
from apiscaffold.schemas.user import User, UserCreate

users = APIRouter(prefix="/users", tags=["Users"])


@users.post("")
async def create_user(payload: UserCreate):
    user = User(email=payload.email, password=payload.password, username=payload.username)
    return created(user.to_response())


@users.get("/boom")
async def boom():
    raise RuntimeError("kaboom")


@pytest.fixture
def client():
    settings = load_settings(RATE_LIMIT=100)
    app = create_app(settings, controllers=[users])
    return TestClient(app, raise_server_exceptions=False)


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_metrics(client):
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "apiscaffold_process_cpu_usage_percent" in response.text


def test_not_found_shape(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"message": "Not Found", "code": 404}


def test_unhandled_error_shape(client):
    response = client.get("/api/users/boom")
    assert response.status_code == 500
    assert response.json() == {"message": "Internal Server Error", "code": 500}


def test_create_user(client):
    response = client.post(
        "/api/users",
        json={"email": "jane@example.com", "password": "s3cretpass", "username": "jane"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["username"] == "jane"
    assert "password" not in body["data"]
    assert "createdAt" in body["data"]


def test_validation_error_envelope(client):
    response = client.post(
        "/api/users",
        json={"email": "not-an-email", "password": "short", "username": "jane"},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["message"] == "Validation failed"
    by_field = {d["field"]: d for d in body["error"]["details"]}
    assert by_field["email"]["tag"] == "email"
    assert by_field["password"]["tag"] == "min"
    assert by_field["password"]["message"] == "Does not meet minimum length requirement"


def test_rate_limit_on_api_routes():
    app = create_app(load_settings(RATE_LIMIT=2), controllers=[users])
    client = TestClient(app)
    payload = {"email": "jane@example.com", "password": "s3cretpass", "username": "jane"}

    assert client.post("/api/users", json=payload).status_code == 201
    assert client.post("/api/users", json=payload).status_code == 201
    response = client.post("/api/users", json=payload)
    assert response.status_code == 429
    assert response.json() == {"error": "Rate limit exceeded"}
    assert "retry-after" in response.headers

    # only /api is limited
    assert client.get("/health").status_code == 200


def test_swagger_toggle():
    enabled = TestClient(create_app(load_settings(SWAGGER_ENABLED=True)))
    assert enabled.get("/swagger").status_code == 200

    disabled = TestClient(create_app(load_settings(SWAGGER_ENABLED=False)))
    assert disabled.get("/swagger").status_code == 404


def test_forwarded_for_header_does_not_reset_the_limit():
    app = create_app(load_settings(RATE_LIMIT=2), controllers=[users])
    client = TestClient(app, raise_server_exceptions=False)

    statuses = [
        client.get("/api/users/boom", headers={"X-Forwarded-For": f"1.2.3.{i}"}).status_code
        for i in range(5)
    ]

    assert statuses == [500, 500, 429, 429, 429]


def test_forwarded_for_honored_behind_trusted_proxy():
    app = create_app(
        load_settings(RATE_LIMIT=1, TRUSTED_PROXIES="testclient"), controllers=[users]
    )
    client = TestClient(app, raise_server_exceptions=False)

    first = client.get("/api/users/boom", headers={"X-Forwarded-For": "1.2.3.4"})
    other = client.get("/api/users/boom", headers={"X-Forwarded-For": "1.2.3.5"})
    again = client.get("/api/users/boom", headers={"X-Forwarded-For": "1.2.3.4"})

    assert first.status_code == 500
    assert other.status_code == 500
    assert again.status_code == 429
