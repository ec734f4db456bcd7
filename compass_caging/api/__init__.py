"""HTTP API for the caging store."""

from .app import create_app

__all__ = ["create_app"]
