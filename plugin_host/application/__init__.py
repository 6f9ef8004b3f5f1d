"""
Application layer wiring configuration, services and the plugin manager.
"""

from .startup import ApplicationStartup

__all__ = [
    "ApplicationStartup",
]
