"""
Health check API endpoints.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ....application.startup import ApplicationStartup
from ....infrastructure.config.models import ApplicationConfig
from ..dependencies import get_config, get_startup

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
async def health_check(config: ApplicationConfig = Depends(get_config)) -> Dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": _now(),
        "application": {
            "name": config.name,
            "version": config.version,
            "environment": config.environment
        }
    }


@router.get("/detailed")
async def detailed_health_check(
    startup: ApplicationStartup = Depends(get_startup),
    config: ApplicationConfig = Depends(get_config)
) -> Dict[str, Any]:
    """
    Detailed health check with component status.

    Reports every started component; a component whose check raises is
    reported as an error and marks the application degraded.
    """
    components_health: Dict[str, Any] = {}
    overall_healthy = True

    for component in startup.started_components:
        try:
            health_info = await component.check_health()
        except Exception as e:
            health_info = {
                "healthy": False,
                "status": "error",
                "details": {"error": str(e)}
            }

        components_health[component.name] = health_info
        if not health_info.get("healthy", True):
            overall_healthy = False

    return {
        "status": "healthy" if overall_healthy else "degraded",
        "timestamp": _now(),
        "application": {
            "name": config.name,
            "version": config.version,
            "environment": config.environment
        },
        "components": components_health
    }


@router.get("/live")
async def liveness_check() -> Dict[str, Any]:
    """Simple endpoint to indicate the application is running."""
    return {
        "alive": True,
        "timestamp": _now()
    }
