"""Base classes and enums for lifecycle components."""
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Dict, Any, List
import structlog
from datetime import datetime, timezone


class ComponentState(Enum):
    """
    Lifecycle states for managed components.

    NOT_STARTED -> STARTING -> RUNNING -> STOPPING -> STOPPED
    FAILED is reachable from STARTING and STOPPING.
    """
    NOT_STARTED = "not_started"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


_TRANSITIONS = {
    ComponentState.NOT_STARTED: {ComponentState.STARTING},
    ComponentState.STARTING: {ComponentState.RUNNING, ComponentState.FAILED},
    ComponentState.RUNNING: {ComponentState.STOPPING},
    ComponentState.STOPPING: {ComponentState.STOPPED, ComponentState.FAILED},
    ComponentState.STOPPED: set(),
    ComponentState.FAILED: set(),
}


class BaseLifecycleComponent(ABC):
    """
    Abstract base class for all lifecycle-managed components.

    Each component represents a discrete subsystem requiring
    initialization and cleanup (connections, listeners, clients).

    Unlike a best-effort cleanup hook, ``shutdown`` is allowed to raise:
    the manager records the error and keeps stopping the others.
    """

    # Override these in subclasses
    name: str = "UnnamedComponent"
    startup_timeout: float = 30  # seconds
    shutdown_timeout: float = 10  # seconds
    depends_on: List[str] = []  # names that must be registered earlier

    def __init__(self):
        self.state = ComponentState.NOT_STARTED
        self.started_at: Optional[datetime] = None
        self.stopped_at: Optional[datetime] = None
        self.error: Optional[str] = None
        self.metadata: Dict[str, Any] = {}
        self._logger = structlog.get_logger(f"component.{self.name}")

    @abstractmethod
    async def startup(self) -> None:
        """
        Initialize the component.

        This method should:
        - Establish connections
        - Run migrations or warmups
        - Raise exceptions on failure
        """

    @abstractmethod
    async def shutdown(self) -> None:
        """
        Release the component's resources.

        Raise on failure; the manager collects the error.
        """

    def transition(self, new_state: ComponentState, error: Optional[str] = None) -> None:
        """Move to ``new_state``; illegal moves raise ValueError."""
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"{self.name}: illegal transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        now = datetime.now(timezone.utc)
        if new_state == ComponentState.RUNNING:
            self.started_at = now
        elif new_state == ComponentState.STOPPED:
            self.stopped_at = now
        elif new_state == ComponentState.FAILED:
            self.error = error
            self.stopped_at = now

    @property
    def was_started(self) -> bool:
        """True once startup succeeded, whatever happened afterwards."""
        return self.started_at is not None

    async def health_check(self) -> bool:
        """
        Perform a health check on this component.

        Default implementation checks if state is RUNNING.
        """
        return self.state == ComponentState.RUNNING

    def get_metrics(self) -> Dict[str, Any]:
        """
        Return component-specific metrics.

        Returns:
            Dictionary of metric name -> value
        """
        uptime = None
        if self.started_at and self.state == ComponentState.RUNNING:
            uptime = (datetime.now(timezone.utc) - self.started_at).total_seconds()

        return {
            "state": self.state.value,
            "uptime_seconds": uptime,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "stopped_at": self.stopped_at.isoformat() if self.stopped_at else None,
            "error": self.error,
            "metadata": self.metadata,
        }

    def safe_log(self, event: str, **kwargs):
        """Helper for structured logging."""
        self._logger.info(event, component=self.name, **kwargs)

    def log_error(self, event: str, error: BaseException, **kwargs):
        """Helper for error logging with full context."""
        self._logger.error(
            event,
            component=self.name,
            error=str(error),
            error_type=type(error).__name__,
            **kwargs,
            exc_info=error
        )
