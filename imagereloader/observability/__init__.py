"""Logging and Prometheus metrics for image-reloader."""
