"""Process-wide readiness flags read by the probe endpoints."""
from threading import Lock
from typing import Dict

import structlog

logger = structlog.get_logger(__name__)


class ReadinessState:
    """
    Tri-state lifecycle flags: startup-complete, ready, shutting-down.

    Reads are plain attribute loads and never take the lock, so probe
    handlers can poll as often as they like. Mutations serialize on a
    single lock so that ``begin_shutdown`` and ``mark_ready`` cannot
    interleave.

    Invariants:
    - ``shutting_down`` never goes back to False.
    - Once ``shutting_down`` is set, ``ready`` stays False.
    - ``startup_complete`` never goes back to False.
    """

    def __init__(self):
        self._startup_complete = False
        self._ready = False
        self._shutting_down = False
        self._lock = Lock()

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    def mark_startup_complete(self) -> None:
        with self._lock:
            if self._startup_complete:
                return
            self._startup_complete = True
        logger.info("service_startup_completed")

    def mark_ready(self) -> bool:
        """
        Set the ready flag.

        Returns:
            False if shutdown has already begun and the flag was left alone.
        """
        with self._lock:
            if self._shutting_down:
                refused = True
            else:
                refused = False
                self._ready = True
        if refused:
            logger.warning("mark_ready_ignored", reason="shutting_down")
            return False
        logger.info("service_marked_ready")
        return True

    def mark_not_ready(self) -> None:
        with self._lock:
            self._ready = False
        logger.info("service_marked_not_ready")

    def begin_shutdown(self) -> None:
        """Clear ready, then publish shutting-down."""
        with self._lock:
            # ready is cleared first so no reader sees shutting_down with ready
            self._ready = False
            self._shutting_down = True
        logger.info("service_shutting_down")

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def is_ready(self) -> bool:
        return self._ready

    def is_startup_complete(self) -> bool:
        return self._startup_complete

    def is_shutting_down(self) -> bool:
        return self._shutting_down

    def snapshot(self) -> Dict[str, bool]:
        # shutting_down is read before ready; the writer orders them the other way
        shutting_down = self._shutting_down
        return {
            "startup_complete": self._startup_complete,
            "ready": self._ready,
            "shutting_down": shutting_down,
        }


__all__ = ["ReadinessState"]
