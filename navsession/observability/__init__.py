"""Observability utilities and Prometheus integration helpers."""
