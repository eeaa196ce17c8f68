"""HTTP API for the therapeutic pipeline."""

from .app import create_app

__all__ = ["create_app"]
