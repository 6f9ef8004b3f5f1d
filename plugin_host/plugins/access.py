"""
Resource access control.

For every resource type (tables, topics, buckets) the controller computes the
plugin's effective resource set: the override list when present, else the
declared list, else nothing. Each name is passed through the operator's name
map and then prefixed with the plugin name, so the actual resource a plugin
reaches is always ``{plugin}_{mapped-or-declared}``.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set, Type

from ..core.domain.plugin import PluginMetadata, ResourceOverrides
from ..core.exceptions import (
    BucketAccessDeniedError,
    InvalidNamingConventionError,
    ResourceAccessDeniedError,
    TableAccessDeniedError,
    TopicAccessDeniedError,
)
from ..core.naming import (
    validate_bucket_name,
    validate_plugin_name,
    validate_resource_names,
    validate_table_name,
    validate_topic_name,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceType:
    """Static description of one kind of gated resource."""
    name: str
    list_field: str
    map_field: str
    validator: Callable[[str], None]
    error_class: Type[ResourceAccessDeniedError]
    lowercase: bool = False


TABLES = ResourceType('table', 'allowed_tables', 'table_name_map',
                      validate_table_name, TableAccessDeniedError, lowercase=True)
TOPICS = ResourceType('topic', 'allowed_topics', 'topic_name_map',
                      validate_topic_name, TopicAccessDeniedError)
BUCKETS = ResourceType('bucket', 'allowed_buckets', 'bucket_name_map',
                       validate_bucket_name, BucketAccessDeniedError)

RESOURCE_TYPES = (TABLES, TOPICS, BUCKETS)


@dataclass
class ResourceScope:
    """The resources of one type a single plugin may reach."""

    plugin_name: str
    resource_type: ResourceType
    declared: List[str] = field(default_factory=list)
    name_map: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._actual: Set[str] = {self.resolve(name) for name in self.declared}

    def _normalize(self, name: str) -> str:
        return name.lower() if self.resource_type.lowercase else name

    def resolve(self, name: str) -> str:
        """Translate a plugin-facing name into the actual prefixed name."""
        normalized = self._normalize(name)
        mapped = self.name_map.get(normalized, normalized)
        return f"{self.plugin_name}_{mapped}"

    def allowed(self) -> List[str]:
        """Declared (unprefixed, pre-mapping) names, as the plugin knows them."""
        return list(self.declared)

    def actual_names(self) -> Set[str]:
        return set(self._actual)

    def is_allowed(self, actual_name: str) -> bool:
        return actual_name in self._actual

    def check(self, name: Optional[str]) -> str:
        """
        Resolve a plugin-facing name and verify access to it.

        Returns:
            The actual prefixed resource name

        Raises:
            ResourceAccessDeniedError: The type specific subclass, naming the
                requested resource and the allowed unprefixed names
        """
        if not name:
            raise self.resource_type.error_class(name or "", self.allowed(), self.plugin_name)

        actual = self.resolve(name)
        if not self.is_allowed(actual):
            logger.warning(
                f"Plugin {self.plugin_name} denied access to {self.resource_type.name} '{name}'"
            )
            raise self.resource_type.error_class(name, self.allowed(), self.plugin_name)
        return actual


@dataclass
class AccessScopes:
    tables: ResourceScope
    topics: ResourceScope
    buckets: ResourceScope


class ResourceAccessController:
    """Validates resource declarations and builds per-plugin access scopes."""

    def validate_names(self, metadata: PluginMetadata,
                       overrides: Optional[ResourceOverrides] = None) -> None:
        """
        Validate the plugin and dependency names, every declared and
        overridden resource name, and both sides of every name map entry.

        Raises:
            InvalidNamingConventionError: On the first invalid name found
        """
        plugin_name = metadata.name
        try:
            validate_plugin_name(plugin_name)
        except ValueError as e:
            raise InvalidNamingConventionError(plugin_name, "plugin name", str(e)) from e

        for dependency in metadata.dependencies:
            try:
                validate_plugin_name(dependency)
            except ValueError as e:
                raise InvalidNamingConventionError(
                    plugin_name, "dependency name", f"Dependency '{dependency}': {e}"
                ) from e

        for resource_type in RESOURCE_TYPES:
            lists = [getattr(metadata, resource_type.list_field)]
            if overrides is not None:
                lists.append(getattr(overrides, resource_type.list_field))

            for names in lists:
                if names is None:
                    continue
                try:
                    validate_resource_names(names, resource_type.validator, resource_type.name)
                except ValueError as e:
                    raise InvalidNamingConventionError(
                        plugin_name, f"{resource_type.name} names", str(e)
                    ) from e

            if overrides is not None:
                self._validate_name_map(plugin_name, resource_type,
                                        getattr(overrides, resource_type.map_field))

    def _validate_name_map(self, plugin_name: str, resource_type: ResourceType,
                           name_map: Mapping[str, str]) -> None:
        for source, target in (name_map or {}).items():
            for name in (source, target):
                try:
                    resource_type.validator(name)
                except ValueError as e:
                    raise InvalidNamingConventionError(
                        plugin_name,
                        f"{resource_type.name} name map",
                        f"Mapping '{source}' -> '{target}': {e}"
                    ) from e

    def build(self, metadata: PluginMetadata,
              overrides: Optional[ResourceOverrides] = None) -> AccessScopes:
        """Compute the effective access scopes for a plugin."""
        scopes = {
            resource_type.name: self._build_scope(metadata, overrides, resource_type)
            for resource_type in RESOURCE_TYPES
        }
        return AccessScopes(
            tables=scopes[TABLES.name],
            topics=scopes[TOPICS.name],
            buckets=scopes[BUCKETS.name],
        )

    def _build_scope(self, metadata: PluginMetadata, overrides: Optional[ResourceOverrides],
                     resource_type: ResourceType) -> ResourceScope:
        effective: Optional[Sequence[str]] = None
        name_map: Mapping[str, str] = {}
        if overrides is not None:
            effective = getattr(overrides, resource_type.list_field)
            name_map = getattr(overrides, resource_type.map_field) or {}
        if effective is None:
            effective = getattr(metadata, resource_type.list_field)

        declared = list(effective or [])
        if resource_type.lowercase:
            declared = [name.lower() for name in declared]
            name_map = {k.lower(): v.lower() for k, v in name_map.items()}

        scope = ResourceScope(
            plugin_name=metadata.name,
            resource_type=resource_type,
            declared=declared,
            name_map=dict(name_map),
        )
        logger.debug(
            f"Plugin {metadata.name} {resource_type.name}s: "
            f"{sorted(scope.actual_names()) or 'none'}"
        )
        return scope
