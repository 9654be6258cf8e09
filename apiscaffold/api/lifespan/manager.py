"""
apiscaffold/api/lifespan/manager.py
Lifecycle coordinator.

Startup:
1. Start components in registration order (fail fast, no rollback)
2. Mark startup complete
3. Bind the main listener and wait for it to accept
4. Mark ready after a short, cancellable settle delay

Shutdown:
1. Begin shutdown (readiness fails immediately)
2. Drain the main listener
3. Stop components in reverse order, collecting failures
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Protocol

import structlog

from .base import BaseLifecycleComponent, ComponentState
from .registry import ComponentRegistry
from .state import ReadinessState
from ..metrics.registry import (
    record_component_state,
    record_shutdown_failure,
    record_startup_duration,
)
from ...core.exceptions import (
    ListenerBindFailure,
    ShutdownFailure,
    StartupFailure,
)

logger = structlog.get_logger("lifespan")


class Listener(Protocol):
    """What the manager needs from the main listener."""

    address: str

    async def start(self, timeout: float) -> None: ...

    async def stop(self, timeout: float) -> None: ...


class LifespanManager:
    """
    Drives ordered startup and reverse-ordered shutdown of the registered
    components and the main listener, and updates the readiness state at
    the points the probes care about.

    A component that fails to start aborts startup; components already
    running are left as they are. The process is expected to exit.
    """

    def __init__(
        self,
        state: ReadinessState,
        registry: ComponentRegistry,
        listener: Optional[Listener] = None,
        *,
        ready_settle_delay: float = 0.5,
        listener_bind_timeout: float = 10.0,
        listener_shutdown_grace: float = 5.0,
        shutdown_timeout: float = 30.0,
    ):
        self.state = state
        self.registry = registry
        self.listener = listener
        self.ready_settle_delay = ready_settle_delay
        self.listener_bind_timeout = listener_bind_timeout
        self.listener_shutdown_grace = listener_shutdown_grace
        self.shutdown_timeout = shutdown_timeout

        self._listener_started = False
        self._ready_task: Optional[asyncio.Task] = None
        self._startup_started_at: Optional[float] = None
        self._startup_duration: Optional[float] = None
        self._shutdown_errors: List[ShutdownFailure] = []

    @property
    def components(self) -> List[BaseLifecycleComponent]:
        return self.registry.in_startup_order()

    # ======================================================================
    # STARTUP
    # ======================================================================

    async def startup(self) -> None:
        """
        Raises:
            StartupFailure: a component failed or timed out
            ListenerBindFailure: the main listener could not bind
        """
        if self._startup_started_at is not None:
            raise RuntimeError("startup() already ran for this manager")

        self._startup_started_at = time.perf_counter()
        logger.info("application_starting", components=self.registry.names())

        for component in self.registry.in_startup_order():
            await self._start_component(component)

        self.state.mark_startup_complete()

        if self.listener is not None:
            await self._start_listener()
            self._ready_task = asyncio.create_task(
                self._mark_ready_after_settle(), name="mark-ready"
            )
        else:
            self.state.mark_ready()

        self._startup_duration = time.perf_counter() - self._startup_started_at
        record_startup_duration(self._startup_duration)
        logger.info(
            "startup_completed_successfully",
            duration_seconds=round(self._startup_duration, 3),
        )

    async def _start_component(self, component: BaseLifecycleComponent) -> None:
        component.transition(ComponentState.STARTING)
        record_component_state(component.name, component.state)
        component.safe_log("component_starting", timeout=component.startup_timeout)

        try:
            await asyncio.wait_for(component.startup(), component.startup_timeout)
        except asyncio.TimeoutError as e:
            reason = f"timed out after {component.startup_timeout:g} seconds"
            self._fail(component, reason, e)
            raise StartupFailure(component.name, reason) from e
        except asyncio.CancelledError as e:
            self._fail(component, "startup cancelled", e)
            raise
        except Exception as e:
            self._fail(component, str(e), e)
            raise StartupFailure(component.name, str(e)) from e

        component.transition(ComponentState.RUNNING)
        record_component_state(component.name, component.state)
        component.safe_log("component_started")

    async def _start_listener(self) -> None:
        logger.info("starting_main_listener", address=self.listener.address)
        try:
            await self.listener.start(self.listener_bind_timeout)
        except ListenerBindFailure as e:
            logger.error("main_listener_bind_failed", error=str(e))
            raise
        except Exception as e:
            logger.error("main_listener_bind_failed", error=str(e), exc_info=True)
            raise ListenerBindFailure(self.listener.address, str(e)) from e

        self._listener_started = True
        logger.info("main_listener_started", address=self.listener.address)

    async def _mark_ready_after_settle(self) -> None:
        if self.ready_settle_delay > 0:
            await asyncio.sleep(self.ready_settle_delay)
        if self.state.is_shutting_down():
            return
        if self.state.mark_ready():
            logger.info("service_ready_for_traffic")

    # ======================================================================
    # SHUTDOWN
    # ======================================================================

    async def shutdown(self, timeout: Optional[float] = None) -> List[ShutdownFailure]:
        """
        Stop everything that was started.

        Every step shares one deadline; a step that outlives it is abandoned
        and counted as failed. Failures never stop the remaining steps.

        Returns:
            Collected failures, in the order they happened
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + (timeout if timeout is not None else self.shutdown_timeout)

        def remaining() -> float:
            return max(0.0, deadline - loop.time())

        # Readiness must fail before anything is torn down
        self.state.begin_shutdown()
        await self._cancel_ready_task()
        logger.info("application_shutting_down", timeout_seconds=round(remaining(), 3))

        errors: List[ShutdownFailure] = []

        if self.listener is not None and self._listener_started:
            error = await self._stop_listener(min(self.listener_shutdown_grace, remaining()))
            if error is not None:
                errors.append(error)

        for component in self.registry.in_shutdown_order():
            if component.state != ComponentState.RUNNING:
                continue
            error = await self._stop_component(component, min(component.shutdown_timeout, remaining()))
            if error is not None:
                errors.append(error)

        self._shutdown_errors = errors
        if errors:
            logger.error(
                "shutdown_completed_with_errors",
                first_error=errors[0].message,
                failed=[e.component for e in errors],
            )
        else:
            logger.info("shutdown_completed")
        return errors

    async def _cancel_ready_task(self) -> None:
        task = self._ready_task
        self._ready_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _stop_listener(self, grace: float) -> Optional[ShutdownFailure]:
        try:
            await self.listener.stop(grace)
        except ShutdownFailure as e:
            logger.error("main_listener_stop_failed", error=e.message)
            record_shutdown_failure(e.component)
            return e
        except Exception as e:
            logger.error("main_listener_stop_failed", error=str(e), exc_info=True)
            record_shutdown_failure("listener")
            return ShutdownFailure("listener", str(e))
        finally:
            self._listener_started = False
        return None

    async def _stop_component(
        self, component: BaseLifecycleComponent, timeout: float
    ) -> Optional[ShutdownFailure]:
        component.transition(ComponentState.STOPPING)
        record_component_state(component.name, component.state)
        component.safe_log("component_stopping", timeout=round(timeout, 3))

        try:
            await asyncio.wait_for(component.shutdown(), timeout)
        except asyncio.TimeoutError as e:
            reason = f"timed out after {timeout:g} seconds"
            self._fail(component, reason, e)
            record_shutdown_failure(component.name)
            return ShutdownFailure(component.name, reason)
        except Exception as e:
            self._fail(component, str(e), e)
            record_shutdown_failure(component.name)
            return ShutdownFailure(component.name, str(e))

        component.transition(ComponentState.STOPPED)
        record_component_state(component.name, component.state)
        component.safe_log("component_stopped")
        return None

    def _fail(self, component: BaseLifecycleComponent, reason: str, error: BaseException) -> None:
        component.transition(ComponentState.FAILED, error=reason)
        record_component_state(component.name, component.state)
        component.log_error("component_failed", error, reason=reason)

    # ======================================================================
    # Introspection
    # ======================================================================

    def get_startup_metrics(self) -> Dict[str, Any]:
        states = [c.state for c in self.registry]
        return {
            "duration_seconds": self._startup_duration,
            "total": len(states),
            "running": sum(1 for s in states if s == ComponentState.RUNNING),
            "failed": sum(1 for s in states if s == ComponentState.FAILED),
            "shutdown_errors": [e.to_dict() for e in self._shutdown_errors],
            "readiness": self.state.snapshot(),
        }

    def get_component_metrics(self) -> Dict[str, Dict[str, Any]]:
        return {c.name: c.get_metrics() for c in self.registry}

    async def check_components(self) -> Dict[str, bool]:
        """Run every component's health_check; a raising check counts as unhealthy."""
        results: Dict[str, bool] = {}
        for component in self.registry:
            try:
                results[component.name] = bool(await component.health_check())
            except Exception as e:
                component.log_error("health_check_failed", e)
                results[component.name] = False
        return results


# ============================================================================
# Export
# ============================================================================

__all__ = ["LifespanManager", "Listener"]
