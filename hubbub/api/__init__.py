"""Health and metrics HTTP endpoint for Hubbub.

Exposes:
    create_app -- FastAPI application factory.
"""

from hubbub.api.app import create_app

__all__ = ["create_app"]
