"""
Error taxonomy for the plugin host.

Errors fall into three groups:

- validation-time errors reject a plugin before any state is mutated,
- access-time errors reject a single resource operation made by plugin code,
- lifecycle-time errors report failures affecting host-visible state.

Every error carries the offending plugin name where one applies.
"""

from typing import List, Optional, Sequence


class PluginError(Exception):
    """Base class for all plugin host errors."""

    def __init__(self, message: str, plugin_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.plugin_name = plugin_name


# Validation-time errors

class InvalidNamingConventionError(PluginError):
    """A plugin or resource name violates the naming rules."""

    def __init__(self, plugin_name: str, category: str, detail: str):
        super().__init__(
            f"Plugin '{plugin_name}' has invalid {category}: {detail}", plugin_name
        )
        self.category = category
        self.detail = detail


class DependencyNotFoundError(PluginError):
    def __init__(self, plugin_name: str, dependency_name: str):
        super().__init__(
            f"Plugin '{plugin_name}' requires dependency '{dependency_name}' which is not loaded",
            plugin_name
        )
        self.dependency_name = dependency_name


class SelfDependencyError(PluginError):
    def __init__(self, plugin_name: str):
        super().__init__(f"Plugin '{plugin_name}' cannot depend on itself", plugin_name)


class CircularDependencyError(PluginError):
    """Loading the plugin would close a cycle in the dependency graph."""

    def __init__(self, plugin_name: str, dependency_chain: Sequence[str]):
        self.dependency_chain: List[str] = list(dependency_chain)
        super().__init__(
            f"Circular dependency detected: {' -> '.join(self.dependency_chain)}",
            plugin_name
        )


class InvalidPluginFormatError(PluginError):
    def __init__(self, plugin_path: str, reason: Optional[str] = None):
        suffix = f": {reason}" if reason else ""
        super().__init__(f"Invalid plugin format{suffix} at {plugin_path}")
        self.plugin_path = plugin_path
        self.reason = reason


class DependencyResolutionError(PluginError):
    """Bulk loading finished with plugins whose dependencies never became available."""

    def __init__(self, unresolved_plugins: Sequence[str]):
        self.unresolved_plugins: List[str] = list(unresolved_plugins)
        super().__init__(
            "Cannot resolve plugin dependencies. "
            f"Remaining plugins: {', '.join(self.unresolved_plugins)}. "
            "Check for missing or circular dependencies."
        )


VALIDATION_ERRORS = (
    InvalidNamingConventionError,
    DependencyNotFoundError,
    SelfDependencyError,
    CircularDependencyError,
    InvalidPluginFormatError,
    DependencyResolutionError,
)


# Access-time errors

class ResourceAccessDeniedError(PluginError):
    """A plugin tried to reach a resource outside its allowed set."""

    resource_type = "resource"

    def __init__(self, resource: str, allowed: Sequence[str], plugin_name: Optional[str] = None):
        self.resource = resource
        self.allowed: List[str] = list(allowed)
        allowed_text = ", ".join(self.allowed) if self.allowed else "none"
        super().__init__(
            f"Access denied to {self.resource_type} '{resource}'. "
            f"Allowed {self.resource_type}s: {allowed_text}",
            plugin_name
        )


class TableAccessDeniedError(ResourceAccessDeniedError):
    resource_type = "table"

    @property
    def table(self) -> str:
        return self.resource


class TopicAccessDeniedError(ResourceAccessDeniedError):
    resource_type = "topic"

    @property
    def topic(self) -> str:
        return self.resource


class BucketAccessDeniedError(ResourceAccessDeniedError):
    resource_type = "bucket"

    @property
    def bucket(self) -> str:
        return self.resource


# Lifecycle-time errors

class PluginNotFoundError(PluginError):
    def __init__(self, plugin_name: str):
        super().__init__(f"Plugin '{plugin_name}' not found", plugin_name)


class PluginLoadError(PluginError):
    """Wraps an import or initialization failure."""

    def __init__(self, plugin_path: str, cause: BaseException, plugin_name: Optional[str] = None):
        super().__init__(f"Failed to load plugin from {plugin_path}: {cause}", plugin_name)
        self.plugin_path = plugin_path
        self.cause = cause


class PluginUnloadError(PluginError):
    """Wraps a failure raised by a plugin's cleanup hook."""

    def __init__(self, plugin_name: str, cause: BaseException):
        super().__init__(f"Failed to unload plugin '{plugin_name}': {cause}", plugin_name)
        self.cause = cause


class UndeclaredDependencyError(PluginError):
    def __init__(self, plugin_name: str, requested_dependency: str):
        super().__init__(
            f"Plugin '{plugin_name}' attempted to access undeclared dependency: "
            f"'{requested_dependency}'",
            plugin_name
        )
        self.requested_dependency = requested_dependency


class PluginNotExecutableError(PluginError):
    def __init__(self, plugin_name: str):
        super().__init__(f"Plugin '{plugin_name}' does not provide an execute hook", plugin_name)


class PluginContextInvalidError(PluginError):
    """A context captured by a plugin was used after the plugin began unloading."""

    def __init__(self, plugin_name: str):
        super().__init__(
            f"Plugin '{plugin_name}' context is no longer valid (plugin is unloading or unloaded)",
            plugin_name
        )


class PluginUnloadAllError(PluginError):
    """Aggregates every failure raised while unloading all plugins."""

    def __init__(self, errors: Sequence[BaseException]):
        self.errors: List[BaseException] = list(errors)
        details = "; ".join(str(error) for error in self.errors)
        super().__init__(f"Failed to unload {len(self.errors)} plugin(s): {details}")
