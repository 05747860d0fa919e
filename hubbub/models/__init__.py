"""Core data structures for Hubbub."""

from hubbub.models.config import APIConfig, HubbubConfig, NotificationConfig
from hubbub.models.failures import FailureRecord

__all__ = [
    "APIConfig",
    "FailureRecord",
    "HubbubConfig",
    "NotificationConfig",
]
