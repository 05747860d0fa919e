"""Hubbub: Kubernetes pod failure watcher with deduplicated alerting."""

__version__ = "0.3.0"
