"""
apiscaffold/api/metrics/registry.py
Central Prometheus metrics registry for the service lifecycle.
"""

from prometheus_client import (
    CollectorRegistry, Counter, Enum, Gauge, generate_latest
)
import psutil

# Global registry instance
REGISTRY = CollectorRegistry(auto_describe=True)

# Mirrors ComponentState values
COMPONENT_STATES = ("not_started", "starting", "running", "stopping", "stopped", "failed")

# =============================
# Metric definitions
# =============================
COMPONENT_STATE = Enum(
    "apiscaffold_component_state",
    "Lifecycle state of each managed component",
    ["component"],
    states=list(COMPONENT_STATES),
    registry=REGISTRY,
)

STARTUP_DURATION = Gauge(
    "apiscaffold_startup_duration_seconds",
    "Time spent starting components and binding the listener",
    registry=REGISTRY,
)

SHUTDOWN_FAILURES = Counter(
    "apiscaffold_shutdown_failures_total",
    "Components or listeners that failed to stop cleanly",
    ["component"],
    registry=REGISTRY,
)

SERVICE_READY = Gauge(
    "apiscaffold_service_ready",
    "1 if the service accepts traffic, else 0",
    registry=REGISTRY,
)

SERVICE_STARTUP_COMPLETE = Gauge(
    "apiscaffold_service_startup_complete",
    "1 once all components have started, else 0",
    registry=REGISTRY,
)

CPU_USAGE = Gauge(
    "apiscaffold_process_cpu_usage_percent",
    "CPU utilization of this process",
    registry=REGISTRY,
)

MEMORY_USAGE = Gauge(
    "apiscaffold_process_memory_usage_percent",
    "Resident memory of this process as a share of system memory",
    registry=REGISTRY,
)

_process = psutil.Process()

# =============================
# Updater helpers
# =============================

def update_system_metrics():
    """Refresh process resource gauges."""
    # interval=None compares against the previous call and never sleeps
    CPU_USAGE.set(_process.cpu_percent(interval=None))
    MEMORY_USAGE.set(round(_process.memory_percent(), 2))


def record_component_state(component: str, state):
    """Publish a component's current lifecycle state."""
    COMPONENT_STATE.labels(component=component).state(state.value)


def record_startup_duration(seconds: float):
    STARTUP_DURATION.set(seconds)


def record_shutdown_failure(component: str):
    SHUTDOWN_FAILURES.labels(component=component).inc()


def bind_readiness(state):
    """Make the readiness gauges read straight from a ReadinessState."""
    SERVICE_READY.set_function(lambda: 1 if state.is_ready() else 0)
    SERVICE_STARTUP_COMPLETE.set_function(lambda: 1 if state.is_startup_complete() else 0)


def render_prometheus_metrics():
    """Return text for Prometheus scrape endpoint."""
    update_system_metrics()
    return generate_latest(REGISTRY)
