"""HTTP and WebSocket control surface"""

from .app import init_app

__all__ = ["init_app"]
