"""Web App: HTTP surface for info generation and search."""

from .app import cache_key_for, create_app

__all__ = ["cache_key_for", "create_app"]
