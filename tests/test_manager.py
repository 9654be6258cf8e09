import asyncio

import pytest

from apiscaffold.api.lifespan.base import BaseLifecycleComponent, ComponentState
from apiscaffold.api.lifespan.manager import LifespanManager
from apiscaffold.api.lifespan.registry import ComponentRegistry
from apiscaffold.api.lifespan.state import ReadinessState
from apiscaffold.core.exceptions import (
    ListenerBindFailure,
    ListenerShutdownTimeout,
    ShutdownFailure,
    StartupFailure,
)


class FakeComponent(BaseLifecycleComponent):
    def __init__(
        self,
        name,
        events,
        state=None,
        fail_startup=False,
        fail_shutdown=False,
        startup_delay=0.0,
        shutdown_delay=0.0,
    ):
        self.name = name
        super().__init__()
        self.events = events
        self.readiness = state
        self.fail_startup = fail_startup
        self.fail_shutdown = fail_shutdown
        self.startup_delay = startup_delay
        self.shutdown_delay = shutdown_delay
        self.seen_on_shutdown = None

    async def startup(self):
        self.events.append(f"{self.name}.start")
        if self.startup_delay:
            await asyncio.sleep(self.startup_delay)
        if self.fail_startup:
            raise ConnectionError(f"{self.name} unreachable")

    async def shutdown(self):
        self.events.append(f"{self.name}.stop")
        if self.readiness is not None:
            self.seen_on_shutdown = self.readiness.snapshot()
        if self.shutdown_delay:
            await asyncio.sleep(self.shutdown_delay)
        if self.fail_shutdown:
            raise RuntimeError(f"{self.name} close failed")


class FakeListener:
    address = "127.0.0.1:0"

    def __init__(self, events, state=None, fail_start=None, fail_stop=None):
        self.events = events
        self.readiness = state
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.seen_on_stop = None

    async def start(self, timeout):
        self.events.append("listener.start")
        if self.fail_start is not None:
            raise self.fail_start

    async def stop(self, timeout):
        self.events.append("listener.stop")
        if self.readiness is not None:
            self.seen_on_stop = self.readiness.snapshot()
        if self.fail_stop is not None:
            raise self.fail_stop


def make_manager(components, listener=None, state=None, **kwargs):
    state = state or ReadinessState()
    registry = ComponentRegistry()
    for component in components:
        registry.register(component)
    kwargs.setdefault("ready_settle_delay", 0)
    return LifespanManager(state, registry, listener, **kwargs), state


def test_startup_and_shutdown_order():
    events = []
    state = ReadinessState()
    components = [FakeComponent(n, events, state) for n in ("probe", "postgres", "redis")]
    listener = FakeListener(events, state)
    manager, _ = make_manager(components, listener, state)

    async def scenario():
        await manager.startup()
        await asyncio.sleep(0.01)
        assert state.is_ready()
        return await manager.shutdown()

    errors = asyncio.run(scenario())

    assert errors == []
    assert events == [
        "probe.start", "postgres.start", "redis.start", "listener.start",
        "listener.stop", "redis.stop", "postgres.stop", "probe.stop",
    ]
    assert all(c.state == ComponentState.STOPPED for c in components)


def test_readiness_fails_before_anything_is_torn_down():
    events = []
    state = ReadinessState()
    component = FakeComponent("redis", events, state)
    listener = FakeListener(events, state)
    manager, _ = make_manager([component], listener, state)

    async def scenario():
        await manager.startup()
        await asyncio.sleep(0.01)
        await manager.shutdown()

    asyncio.run(scenario())

    assert listener.seen_on_stop["ready"] is False
    assert listener.seen_on_stop["shutting_down"] is True
    assert component.seen_on_shutdown["ready"] is False


def test_startup_failure_aborts_without_rollback():
    events = []
    first = FakeComponent("probe", events)
    broken = FakeComponent("postgres", events, fail_startup=True)
    never = FakeComponent("redis", events)
    listener = FakeListener(events)
    manager, state = make_manager([first, broken, never], listener)

    with pytest.raises(StartupFailure) as exc:
        asyncio.run(manager.startup())

    assert exc.value.component == "postgres"
    assert "unreachable" in exc.value.message
    assert first.state == ComponentState.RUNNING
    assert broken.state == ComponentState.FAILED
    assert never.state == ComponentState.NOT_STARTED
    assert "listener.start" not in events
    assert not state.is_startup_complete()
    assert not state.is_ready()


def test_startup_timeout_is_a_startup_failure():
    slow = FakeComponent("clickhouse", [], startup_delay=1.0)
    slow.startup_timeout = 0.05
    manager, state = make_manager([slow])

    with pytest.raises(StartupFailure) as exc:
        asyncio.run(manager.startup())

    assert "timed out" in exc.value.message
    assert slow.state == ComponentState.FAILED
    assert not state.is_startup_complete()


def test_ready_immediately_without_listener():
    manager, state = make_manager([FakeComponent("redis", [])])

    asyncio.run(manager.startup())

    assert state.is_startup_complete()
    assert state.is_ready()


def test_ready_only_after_settle_delay():
    events = []
    manager, state = make_manager(
        [FakeComponent("redis", events)], FakeListener(events), ready_settle_delay=0.05
    )

    async def scenario():
        await manager.startup()
        assert state.is_startup_complete()
        assert not state.is_ready()
        await asyncio.sleep(0.2)
        assert state.is_ready()
        await manager.shutdown()

    asyncio.run(scenario())


def test_shutdown_before_settle_never_marks_ready():
    events = []
    manager, state = make_manager(
        [FakeComponent("redis", events)], FakeListener(events), ready_settle_delay=10
    )

    async def scenario():
        await manager.startup()
        errors = await manager.shutdown()
        await asyncio.sleep(0.05)
        return errors

    errors = asyncio.run(scenario())

    assert errors == []
    assert not state.is_ready()
    assert state.is_shutting_down()


def test_listener_bind_failure():
    events = []
    component = FakeComponent("redis", events)
    listener = FakeListener(events, fail_start=OSError("address already in use"))
    manager, state = make_manager([component], listener)

    with pytest.raises(ListenerBindFailure) as exc:
        asyncio.run(manager.startup())

    assert exc.value.address == "127.0.0.1:0"
    assert isinstance(exc.value, StartupFailure)
    assert state.is_startup_complete()
    assert not state.is_ready()


def test_shutdown_errors_are_collected_and_do_not_stop_others():
    events = []
    first = FakeComponent("probe", events)
    broken = FakeComponent("postgres", events, fail_shutdown=True)
    last = FakeComponent("redis", events)
    manager, _ = make_manager([first, broken, last])

    async def scenario():
        await manager.startup()
        return await manager.shutdown()

    errors = asyncio.run(scenario())

    assert len(errors) == 1
    assert isinstance(errors[0], ShutdownFailure)
    assert errors[0].component == "postgres"
    assert broken.state == ComponentState.FAILED
    assert first.state == ComponentState.STOPPED
    assert last.state == ComponentState.STOPPED
    assert events[-3:] == ["redis.stop", "postgres.stop", "probe.stop"]


def test_shutdown_timeout_is_collected():
    events = []
    slow = FakeComponent("kafka", events, shutdown_delay=1.0)
    slow.shutdown_timeout = 0.05
    other = FakeComponent("probe", events)
    manager, _ = make_manager([other, slow])

    async def scenario():
        await manager.startup()
        return await manager.shutdown()

    errors = asyncio.run(scenario())

    assert [e.component for e in errors] == ["kafka"]
    assert "timed out" in errors[0].message
    assert other.state == ComponentState.STOPPED


def test_listener_shutdown_timeout_is_collected():
    events = []
    component = FakeComponent("redis", events)
    listener = FakeListener(events, fail_stop=ListenerShutdownTimeout(5))
    manager, _ = make_manager([component], listener)

    async def scenario():
        await manager.startup()
        return await manager.shutdown()

    errors = asyncio.run(scenario())

    assert len(errors) == 1
    assert isinstance(errors[0], ListenerShutdownTimeout)
    assert component.state == ComponentState.STOPPED


def test_shutdown_skips_components_that_never_started():
    events = []
    first = FakeComponent("probe", events)
    broken = FakeComponent("postgres", events, fail_startup=True)
    never = FakeComponent("redis", events)
    manager, state = make_manager([first, broken, never])

    async def scenario():
        with pytest.raises(StartupFailure):
            await manager.startup()
        return await manager.shutdown()

    errors = asyncio.run(scenario())

    assert errors == []
    assert "redis.stop" not in events
    assert "postgres.stop" not in events
    assert first.state == ComponentState.STOPPED
    assert never.state == ComponentState.NOT_STARTED
    assert state.is_shutting_down()


def test_startup_runs_once():
    manager, _ = make_manager([FakeComponent("redis", [])])

    async def scenario():
        await manager.startup()
        with pytest.raises(RuntimeError):
            await manager.startup()

    asyncio.run(scenario())


def test_startup_metrics():
    events = []
    manager, _ = make_manager(
        [FakeComponent("probe", events), FakeComponent("redis", events, fail_shutdown=True)]
    )

    async def scenario():
        await manager.startup()
        started = manager.get_startup_metrics()
        await manager.shutdown()
        return started, manager.get_startup_metrics()

    started, stopped = asyncio.run(scenario())

    assert started["total"] == 2
    assert started["running"] == 2
    assert started["duration_seconds"] >= 0
    assert started["readiness"]["ready"] is True
    assert stopped["failed"] == 1
    assert stopped["shutdown_errors"][0]["details"]["component"] == "redis"
    assert set(manager.get_component_metrics()) == {"probe", "redis"}


def test_cancelled_startup_marks_component_failed():
    events = []
    first = FakeComponent("probe", events)
    hanging = FakeComponent("postgres", events, startup_delay=30)
    manager, state = make_manager([first, hanging])

    async def scenario():
        task = asyncio.create_task(manager.startup())
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return await manager.shutdown()

    errors = asyncio.run(scenario())

    assert errors == []
    assert hanging.state == ComponentState.FAILED
    assert hanging.error == "startup cancelled"
    assert first.state == ComponentState.STOPPED
    assert not state.is_startup_complete()
