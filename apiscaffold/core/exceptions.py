"""
apiscaffold/core/exceptions.py
Custom exceptions for the service lifecycle and infrastructure
"""

from typing import Optional


class ServiceException(Exception):
    """Base exception for all service errors"""

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for logging/response"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


# ============================================================================
# Startup Exceptions (fatal)
# ============================================================================

class StartupFailure(ServiceException):
    """A component failed to start; aborts process launch"""

    def __init__(self, component: str, reason: str, error_code: str = "STARTUP_FAILED"):
        self.component = component
        super().__init__(
            message=f"Component '{component}' failed to start: {reason}",
            error_code=error_code,
            details={"component": component, "reason": reason}
        )


class ListenerBindFailure(StartupFailure):
    """The main listener could not bind its address"""

    def __init__(self, address: str, reason: str):
        self.address = address
        super().__init__(
            component=f"listener {address}",
            reason=reason,
            error_code="LISTENER_BIND_FAILED",
        )
        self.details["address"] = address


class DependencyConfigurationError(ServiceException):
    """Invalid component registration (duplicate name, bad ordering)"""

    def __init__(self, component: str, reason: str):
        self.component = component
        super().__init__(
            message=f"Invalid registration for '{component}': {reason}",
            error_code="DEPENDENCY_CONFIGURATION",
            details={"component": component, "reason": reason}
        )


# ============================================================================
# Shutdown Exceptions (collected, never fatal)
# ============================================================================

class ShutdownFailure(ServiceException):
    """A component failed to stop cleanly"""

    def __init__(self, component: str, reason: str, error_code: str = "SHUTDOWN_FAILED"):
        self.component = component
        super().__init__(
            message=f"Component '{component}' failed to stop: {reason}",
            error_code=error_code,
            details={"component": component, "reason": reason}
        )


class ListenerShutdownTimeout(ShutdownFailure):
    """The main listener did not drain within its grace period"""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            component="listener",
            reason=f"did not drain within {timeout_seconds:g} seconds",
            error_code="LISTENER_SHUTDOWN_TIMEOUT",
        )
        self.details["timeout_seconds"] = timeout_seconds


# ============================================================================
# Infrastructure Exceptions
# ============================================================================

class MigrationError(ServiceException):
    """A migration file could not be applied"""

    def __init__(self, file: str, reason: str):
        super().__init__(
            message=f"Failed to execute migration {file}: {reason}",
            error_code="MIGRATION_FAILED",
            details={"file": file, "reason": reason}
        )


# ============================================================================
# Export
# ============================================================================

__all__ = [
    "ServiceException",
    "StartupFailure",
    "ListenerBindFailure",
    "DependencyConfigurationError",
    "ShutdownFailure",
    "ListenerShutdownTimeout",
    "MigrationError",
]
