"""Prometheus metrics for the service lifecycle."""
