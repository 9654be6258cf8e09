"""apiscaffold - FastAPI service scaffold with ordered lifecycle and health probes."""

__version__ = "0.1.0"
