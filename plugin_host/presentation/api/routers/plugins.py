"""
Plugin management API router.

REST endpoints over the plugin manager: listing, loading, unloading,
reloading and executing plugins, and managing resource overrides. Plugin
errors propagate to the application's error handler, which maps them to
status codes.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ....core.domain.plugin import Plugin, ResourceOverrides
from ....plugins.manager import PluginManager
from ..dependencies import get_plugin_manager

logger = logging.getLogger(__name__)


class PluginInfo(BaseModel):
    """Plugin information model."""
    name: str = Field(..., description="Plugin name")
    version: str = Field(..., description="Plugin version")
    description: Optional[str] = Field(None, description="Plugin description")
    state: Optional[str] = Field(None, description="Lifecycle state")
    path: Optional[str] = Field(None, description="Path the plugin was loaded from")
    dependencies: List[str] = Field(default_factory=list, description="Declared dependencies")
    allowed_tables: Optional[List[str]] = Field(None, description="Declared tables")
    allowed_topics: Optional[List[str]] = Field(None, description="Declared topics")
    allowed_buckets: Optional[List[str]] = Field(None, description="Declared buckets")
    resource_overrides: Optional[Dict[str, Any]] = Field(
        None, description="Operator resource overrides")


class PluginLoadRequest(BaseModel):
    """Plugin load request model."""
    plugin_path: str = Field(..., description="Path to the plugin file")
    resource_overrides: Optional[Dict[str, Any]] = Field(
        None, description="Resource overrides to store for the plugin")


class DirectoryLoadRequest(BaseModel):
    directory: Optional[str] = Field(
        None, description="Directory to load; defaults to the configured plugin directory")


class PluginExecuteRequest(BaseModel):
    payload: Any = Field(None, description="Payload passed to the plugin's execute hook")


class OverridesUpdateResponse(BaseModel):
    plugin_name: str
    resource_overrides: Optional[Dict[str, Any]] = None
    reload_scheduled: bool


router = APIRouter(
    prefix="/api/plugins",
    tags=["plugins"],
    responses={
        status.HTTP_404_NOT_FOUND: {"description": "Plugin not found"},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Internal server error"}
    }
)


def _parse_overrides(raw: Dict[str, Any]) -> ResourceOverrides:
    try:
        return ResourceOverrides.from_dict(raw)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid resource overrides: {e}"
        )


def _plugin_info(plugin: Plugin, plugin_manager: PluginManager) -> PluginInfo:
    metadata = plugin.metadata
    state = plugin_manager.get_plugin_state(plugin.name)
    overrides = plugin_manager.get_plugin_resource_overrides(plugin.name)
    return PluginInfo(
        name=plugin.name,
        version=plugin.version,
        description=metadata.description,
        state=state.value if state else None,
        path=plugin_manager.get_plugin_path(plugin.name),
        dependencies=list(metadata.dependencies),
        allowed_tables=metadata.allowed_tables,
        allowed_topics=metadata.allowed_topics,
        allowed_buckets=metadata.allowed_buckets,
        resource_overrides=overrides.to_dict() if overrides else None,
    )


def _require_plugin(plugin_name: str, plugin_manager: PluginManager) -> Plugin:
    plugin = plugin_manager.get_plugin(plugin_name)
    if plugin is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Plugin not found: {plugin_name}"
        )
    return plugin


@router.get("/", response_model=List[PluginInfo])
async def list_plugins(
    plugin_manager: PluginManager = Depends(get_plugin_manager)
) -> List[PluginInfo]:
    """List all loaded plugins."""
    return [
        _plugin_info(plugin, plugin_manager)
        for plugin in plugin_manager.get_all_plugins().values()
    ]


@router.get("/{plugin_name}", response_model=PluginInfo)
async def get_plugin(
    plugin_name: str,
    plugin_manager: PluginManager = Depends(get_plugin_manager)
) -> PluginInfo:
    """Get plugin information."""
    plugin = _require_plugin(plugin_name, plugin_manager)
    return _plugin_info(plugin, plugin_manager)


@router.post("/load", response_model=PluginInfo, status_code=status.HTTP_201_CREATED)
async def load_plugin(
    request: PluginLoadRequest,
    plugin_manager: PluginManager = Depends(get_plugin_manager)
) -> PluginInfo:
    """Load a plugin, replacing any loaded plugin with the same name."""
    overrides = None
    if request.resource_overrides is not None:
        overrides = _parse_overrides(request.resource_overrides)

    plugin = await plugin_manager.load_plugin(request.plugin_path, overrides)
    return _plugin_info(plugin, plugin_manager)


@router.post("/load-directory", response_model=List[PluginInfo])
async def load_plugin_directory(
    request: DirectoryLoadRequest,
    plugin_manager: PluginManager = Depends(get_plugin_manager)
) -> List[PluginInfo]:
    """Load every plugin in a directory in dependency order."""
    directory = request.directory or plugin_manager.plugin_directory
    await plugin_manager.load_plugins_from_directory(directory)
    return [
        _plugin_info(plugin, plugin_manager)
        for plugin in plugin_manager.get_all_plugins().values()
    ]


@router.delete("/{plugin_name}")
async def unload_plugin(
    plugin_name: str,
    plugin_manager: PluginManager = Depends(get_plugin_manager)
) -> Dict[str, Any]:
    """Unload a plugin."""
    _require_plugin(plugin_name, plugin_manager)
    await plugin_manager.unload_plugin(plugin_name)
    return {"success": True, "message": f"Plugin {plugin_name} unloaded"}


@router.post("/{plugin_name}/reload", response_model=PluginInfo)
async def reload_plugin(
    plugin_name: str,
    plugin_manager: PluginManager = Depends(get_plugin_manager)
) -> PluginInfo:
    """Reload a plugin from the path it was last loaded from."""
    plugin = await plugin_manager.reload_plugin(plugin_name)
    return _plugin_info(plugin, plugin_manager)


@router.post("/{plugin_name}/execute")
async def execute_plugin(
    plugin_name: str,
    request: PluginExecuteRequest,
    plugin_manager: PluginManager = Depends(get_plugin_manager)
) -> Dict[str, Any]:
    """Invoke a plugin's execute hook with the given payload."""
    result = await plugin_manager.execute_plugin(plugin_name, request.payload)
    return {"plugin_name": plugin_name, "result": result}


@router.get("/{plugin_name}/overrides")
async def get_plugin_overrides(
    plugin_name: str,
    plugin_manager: PluginManager = Depends(get_plugin_manager)
) -> Dict[str, Any]:
    """Get the resource overrides stored for a plugin name."""
    overrides = plugin_manager.get_plugin_resource_overrides(plugin_name)
    return {
        "plugin_name": plugin_name,
        "resource_overrides": overrides.to_dict() if overrides else None
    }


@router.put("/{plugin_name}/overrides", response_model=OverridesUpdateResponse)
async def set_plugin_overrides(
    plugin_name: str,
    body: Dict[str, Any],
    plugin_manager: PluginManager = Depends(get_plugin_manager)
) -> OverridesUpdateResponse:
    """
    Store resource overrides for a plugin.

    A loaded plugin is reloaded in the background; reload failures are
    logged and broadcast rather than returned here.
    """
    overrides = _parse_overrides(body)
    task = plugin_manager.set_plugin_resource_overrides(plugin_name, overrides)
    return OverridesUpdateResponse(
        plugin_name=plugin_name,
        resource_overrides=overrides.to_dict(),
        reload_scheduled=task is not None
    )


@router.delete("/{plugin_name}/overrides", response_model=OverridesUpdateResponse)
async def clear_plugin_overrides(
    plugin_name: str,
    plugin_manager: PluginManager = Depends(get_plugin_manager)
) -> OverridesUpdateResponse:
    """Clear a plugin's resource overrides."""
    task = plugin_manager.clear_plugin_resource_overrides(plugin_name)
    return OverridesUpdateResponse(
        plugin_name=plugin_name,
        resource_overrides=None,
        reload_scheduled=task is not None
    )
