"""
HTTP API of the agent endpoint.
"""

from .app import create_app

__all__ = ["create_app"]
