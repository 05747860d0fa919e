"""Logging and metrics for Hubbub."""
