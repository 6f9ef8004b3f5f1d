"""
API router modules for different endpoints.
"""

from . import health, plugins

__all__ = [
    "health",
    "plugins",
]
