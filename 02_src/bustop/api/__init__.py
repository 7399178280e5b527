"""Display API."""

from .app import create_fastapi_app

__all__ = ["create_fastapi_app"]
