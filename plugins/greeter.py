"""
Greeter plugin.

A minimal function style plugin: module level metadata plus hook functions.
Other plugins can depend on it and listen for its ``greeter.greeted`` event.
"""

import logging

logger = logging.getLogger(__name__)

metadata = {
    "name": "greeter",
    "version": "1.0.0",
    "description": "Greets callers and announces every greeting",
}

_context = None


async def initialize(context):
    global _context
    _context = context
    logger.info("Greeter ready")


async def cleanup():
    global _context
    _context = None
    logger.info("Greeter stopped")


async def execute(payload=None):
    if isinstance(payload, dict):
        name = payload.get("name", "world")
    else:
        name = payload or "world"

    greeting = f"Hello, {name}!"
    if _context is not None:
        await _context.event_bus.emit("greeter.greeted", {"name": name, "greeting": greeting})
    return greeting
