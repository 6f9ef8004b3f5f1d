"""
File based plugin module loader.

A plugin is a Python file exporting either a module level ``plugin`` object
(a Plugin, a BasePlugin subclass or instance, or any object with a
``metadata`` attribute) or module level ``metadata`` plus optional
``initialize``, ``cleanup`` and ``execute`` functions. Metadata may be a
PluginMetadata instance or a plain dict.
"""

import importlib.util
import logging
import sys
import uuid
from pathlib import Path
from typing import Any, List, Mapping

from ..core.domain.plugin import Plugin, PluginMetadata
from ..core.exceptions import InvalidPluginFormatError
from ..core.interfaces.plugins import IModuleLoader

logger = logging.getLogger(__name__)

HOOK_NAMES = ('initialize', 'cleanup', 'execute')


class FileModuleLoader(IModuleLoader):
    """
    Loads plugins from Python source files.

    Every load executes the file under a new, unique module name, so a
    plugin reloaded from the same path always observes its current source.
    """

    module_prefix = "plugin_host_plugin"

    async def load(self, path: str) -> Plugin:
        plugin_path = Path(path)
        if not plugin_path.is_file():
            raise FileNotFoundError(f"Plugin file not found: {path}")

        module = self._import_fresh(plugin_path)
        return self._extract_plugin(module, str(plugin_path))

    async def discover(self, directory: str) -> List[str]:
        plugin_dir = Path(directory)
        if not plugin_dir.is_dir():
            logger.warning(f"Plugin directory does not exist: {directory}")
            return []

        plugin_paths = [
            str(file_path) for file_path in sorted(plugin_dir.glob("*.py"))
            if not file_path.name.startswith("_")
        ]

        logger.info(f"Discovered {len(plugin_paths)} potential plugins in {directory}")
        return plugin_paths

    def _import_fresh(self, plugin_path: Path) -> Any:
        module_name = f"{self.module_prefix}_{plugin_path.stem}_{uuid.uuid4().hex}"
        spec = importlib.util.spec_from_file_location(module_name, plugin_path)
        if not spec or not spec.loader:
            raise ImportError(f"Cannot load plugin from {plugin_path}")

        module = importlib.util.module_from_spec(spec)
        # Registered only while executing so dataclasses in the plugin can resolve it.
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        finally:
            sys.modules.pop(module_name, None)

        return module

    def _extract_plugin(self, module: Any, path: str) -> Plugin:
        candidate = getattr(module, 'plugin', None)
        if candidate is None:
            if not hasattr(module, 'metadata'):
                raise InvalidPluginFormatError(
                    path, "module must export 'plugin' or 'metadata'"
                )
            candidate = module

        if isinstance(candidate, type):
            try:
                candidate = candidate()
            except Exception as e:
                raise InvalidPluginFormatError(
                    path, f"cannot instantiate plugin class: {e}"
                ) from e

        if isinstance(candidate, Plugin):
            metadata = self._normalize_metadata(candidate.metadata, path)
            return Plugin(
                metadata=metadata,
                initialize=candidate.initialize,
                cleanup=candidate.cleanup,
                execute=candidate.execute,
                source=path
            )

        if not hasattr(candidate, 'metadata'):
            raise InvalidPluginFormatError(path, "plugin object has no metadata")

        metadata = self._normalize_metadata(getattr(candidate, 'metadata'), path)
        hooks = {}
        for hook_name in HOOK_NAMES:
            hook = getattr(candidate, hook_name, None)
            if hook is not None and not callable(hook):
                raise InvalidPluginFormatError(path, f"'{hook_name}' must be callable")
            hooks[hook_name] = hook

        return Plugin(metadata=metadata, source=path, **hooks)

    @staticmethod
    def _normalize_metadata(metadata: Any, path: str) -> PluginMetadata:
        if isinstance(metadata, PluginMetadata):
            metadata = metadata.to_dict()

        if not isinstance(metadata, Mapping):
            raise InvalidPluginFormatError(path, "metadata must be a mapping")

        try:
            return PluginMetadata.from_dict(metadata)
        except ValueError as e:
            raise InvalidPluginFormatError(path, str(e)) from e
