"""
Dependency validation and circular dependency detection.

The resolver keeps the dependency graph of every loaded (or loading) plugin
and validates a candidate plugin's declared dependencies against it before
the manager mutates any state.
"""

import logging
from typing import Collection, Dict, Iterable, List, Sequence, Set

from ..core.exceptions import (
    CircularDependencyError,
    DependencyNotFoundError,
    SelfDependencyError,
)

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Dependency graph of loaded plugins: plugin name -> declared dependency names."""

    def __init__(self) -> None:
        self._graph: Dict[str, Set[str]] = {}

    def validate(self, plugin_name: str, dependencies: Sequence[str],
                 loaded_plugins: Collection[str]) -> None:
        """
        Validate a plugin's dependencies against the currently loaded plugins.

        Raises:
            SelfDependencyError: If the plugin lists itself
            DependencyNotFoundError: If a dependency is not loaded
            CircularDependencyError: If loading the plugin would close a cycle
        """
        if plugin_name in dependencies:
            raise SelfDependencyError(plugin_name)

        for dependency in dependencies:
            if dependency not in loaded_plugins:
                raise DependencyNotFoundError(plugin_name, dependency)

        self.check_circular(plugin_name, dependencies)

    def check_circular(self, plugin_name: str, dependencies: Iterable[str]) -> None:
        """
        Walk the recorded graph depth-first from the plugin's dependencies.

        Raises:
            CircularDependencyError: Naming plugin_name, with the ordered
                chain ending at the revisited plugin, e.g. ['a', 'b', 'a']
        """
        self._walk(plugin_name, dependencies, [plugin_name])

    def _walk(self, origin: str, dependencies: Iterable[str], path: List[str]) -> None:
        for dependency in dependencies:
            if dependency in path:
                raise CircularDependencyError(origin, path + [dependency])

            self._walk(origin, self._graph.get(dependency, ()), path + [dependency])

    def record(self, plugin_name: str, dependencies: Iterable[str]) -> None:
        self._graph[plugin_name] = set(dependencies)
        logger.debug(f"Recorded dependencies for {plugin_name}: {sorted(self._graph[plugin_name])}")

    def discard(self, plugin_name: str) -> None:
        self._graph.pop(plugin_name, None)

    def dependencies_of(self, plugin_name: str) -> Set[str]:
        return set(self._graph.get(plugin_name, ()))

    def dependents_of(self, plugin_name: str) -> List[str]:
        """Names of recorded plugins that declare plugin_name as a dependency."""
        return sorted(name for name, deps in self._graph.items() if plugin_name in deps)

    @staticmethod
    def is_satisfied(dependencies: Iterable[str], available: Collection[str]) -> bool:
        return all(dependency in available for dependency in dependencies)

    @staticmethod
    def missing(dependencies: Iterable[str], available: Collection[str]) -> List[str]:
        return [dependency for dependency in dependencies if dependency not in available]
