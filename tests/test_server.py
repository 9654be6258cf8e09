import asyncio
import os
import signal
import socket
import sys

import httpx
import pytest

from apiscaffold.api.lifespan.base import BaseLifecycleComponent, ComponentState
from apiscaffold.api.lifespan.state import ReadinessState
from apiscaffold.api.main import serve
from apiscaffold.api.probe import create_probe_app
from apiscaffold.api.server import HTTPListener
from apiscaffold.core.config import load_settings
from apiscaffold.core.container import build_container
from apiscaffold.core.exceptions import ListenerBindFailure


def test_listener_serves_and_stops():
    state = ReadinessState()
    listener = HTTPListener(create_probe_app(state), "127.0.0.1", 0, name="probe")

    async def scenario():
        await listener.start(timeout=5)
        assert listener.is_serving
        assert listener.port != 0
        async with httpx.AsyncClient(base_url=f"http://{listener.address}", trust_env=False) as client:
            response = await client.get("/healthz")
        await listener.stop(timeout=5)
        return response

    response = asyncio.run(scenario())

    assert response.status_code == 200
    assert response.text == "OK"
    assert not listener.is_serving


def test_bind_failure_on_taken_port():
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen()
    port = blocker.getsockname()[1]
    try:
        listener = HTTPListener(create_probe_app(ReadinessState()), "127.0.0.1", port)
        with pytest.raises(ListenerBindFailure) as exc:
            asyncio.run(listener.start(timeout=5))
        assert exc.value.address == f"127.0.0.1:{port}"
    finally:
        blocker.close()


def test_full_lifecycle_over_http():
    settings = load_settings(
        HOST="127.0.0.1",
        PORT=0,
        PROBE_HOST="127.0.0.1",
        PROBE_PORT=0,
        READY_SETTLE_DELAY=0.05,
    )
    container = build_container(settings)
    probe = container.registry.get_by_name("probe")

    async def scenario():
        await container.manager.startup()
        async with httpx.AsyncClient(base_url=f"http://{probe.listener.address}", trust_env=False) as client:
            assert (await client.get("/startupz")).status_code == 200
            await asyncio.sleep(0.3)
            assert (await client.get("/readyz")).status_code == 200
        async with httpx.AsyncClient(base_url=f"http://{container.listener.address}", trust_env=False) as client:
            health = await client.get("/health")
        errors = await container.manager.shutdown(timeout=10)
        return health, errors

    health, errors = asyncio.run(scenario())

    assert health.json() == {"success": True}
    assert errors == []
    assert container.state.is_shutting_down()
    assert not container.state.is_ready()


def test_serve_returns_1_when_main_port_is_taken():
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen()
    try:
        settings = load_settings(
            HOST="127.0.0.1", PORT=blocker.getsockname()[1], ENABLE_PROBE_SERVER=False
        )
        assert asyncio.run(serve(settings)) == 1
    finally:
        blocker.close()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
def test_serve_returns_0_after_sigterm():
    settings = load_settings(
        HOST="127.0.0.1", PORT=0, PROBE_HOST="127.0.0.1", PROBE_PORT=0, READY_SETTLE_DELAY=0
    )

    async def scenario():
        asyncio.get_running_loop().call_later(0.5, os.kill, os.getpid(), signal.SIGTERM)
        return await serve(settings)

    assert asyncio.run(scenario()) == 0


class HangingComponent(BaseLifecycleComponent):
    name = "warehouse"
    startup_timeout = 60

    def __init__(self):
        super().__init__()
        self.cancelled = False

    async def startup(self):
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            self.cancelled = True
            raise

    async def shutdown(self):
        pass


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
def test_sigterm_during_startup_stops_promptly():
    settings = load_settings(
        HOST="127.0.0.1", PORT=0, PROBE_HOST="127.0.0.1", PROBE_PORT=0, READY_SETTLE_DELAY=0
    )
    hanging = HangingComponent()

    async def scenario():
        loop = asyncio.get_running_loop()
        loop.call_later(0.5, os.kill, os.getpid(), signal.SIGTERM)
        started = loop.time()
        code = await serve(settings, extra_components=[hanging])
        return code, loop.time() - started

    code, elapsed = asyncio.run(scenario())

    assert code == 0
    assert elapsed < 10
    assert hanging.cancelled
    assert hanging.state == ComponentState.FAILED
