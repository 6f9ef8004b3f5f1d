"""
Plugin domain models.

These are plain value objects: a plugin's declared metadata, the loaded
plugin descriptor handed to the lifecycle manager, and operator supplied
resource overrides.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

RESOURCE_LIST_FIELDS = ('allowed_tables', 'allowed_topics', 'allowed_buckets')
NAME_MAP_FIELDS = ('table_name_map', 'topic_name_map', 'bucket_name_map')


class PluginState(Enum):
    """Lifecycle state of a plugin name known to the manager."""
    LOADING = "loading"
    LOADED = "loaded"
    UNLOADING = "unloading"


def _string_list(data: Mapping[str, Any], key: str, required: bool = False) -> Optional[List[str]]:
    value = data.get(key)
    if value is None:
        if required:
            return []
        return None
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"'{key}' must be a list of strings")
    if not all(isinstance(item, str) for item in value):
        raise ValueError(f"'{key}' must contain only strings")
    return list(value)


def _string_map(data: Mapping[str, Any], key: str) -> Dict[str, str]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"'{key}' must be a mapping of strings")
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in value.items()):
        raise ValueError(f"'{key}' must map strings to strings")
    return dict(value)


@dataclass
class PluginMetadata:
    """Declared identity, dependencies and resource access of a plugin."""

    name: str
    version: str
    description: Optional[str] = None
    dependencies: List[str] = field(default_factory=list)
    allowed_tables: Optional[List[str]] = None
    allowed_topics: Optional[List[str]] = None
    allowed_buckets: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PluginMetadata':
        """
        Build metadata from a plain mapping exported by a plugin module.

        Raises:
            ValueError: If required fields are missing or have the wrong shape
        """
        if not isinstance(data, Mapping):
            raise ValueError("metadata must be a mapping")

        name = data.get('name')
        if not isinstance(name, str) or not name:
            raise ValueError("metadata.name must be a non-empty string")

        version = data.get('version')
        if not isinstance(version, str) or not version:
            raise ValueError("metadata.version must be a non-empty string")

        description = data.get('description')
        if description is not None and not isinstance(description, str):
            raise ValueError("metadata.description must be a string")

        return cls(
            name=name,
            version=version,
            description=description,
            dependencies=_string_list(data, 'dependencies', required=True) or [],
            allowed_tables=_string_list(data, 'allowed_tables'),
            allowed_topics=_string_list(data, 'allowed_topics'),
            allowed_buckets=_string_list(data, 'allowed_buckets'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'version': self.version,
            'description': self.description,
            'dependencies': list(self.dependencies),
            'allowed_tables': self.allowed_tables,
            'allowed_topics': self.allowed_topics,
            'allowed_buckets': self.allowed_buckets,
        }


@dataclass
class Plugin:
    """
    A loaded plugin descriptor.

    Hooks are optional and may be plain callables or coroutine functions.
    The manager never mutates a plugin after load; reloading replaces it.
    """

    metadata: PluginMetadata
    initialize: Optional[Callable[..., Any]] = None
    cleanup: Optional[Callable[[], Any]] = None
    execute: Optional[Callable[..., Any]] = None
    source: Optional[str] = None

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def version(self) -> str:
        return self.metadata.version


@dataclass
class ResourceOverrides:
    """
    Operator supplied replacement for a plugin's declared resources.

    A list that is not None replaces the corresponding declared list. Name
    maps translate a declared resource name into a different actual name
    before the plugin prefix is applied.
    """

    allowed_tables: Optional[List[str]] = None
    allowed_topics: Optional[List[str]] = None
    allowed_buckets: Optional[List[str]] = None
    table_name_map: Dict[str, str] = field(default_factory=dict)
    topic_name_map: Dict[str, str] = field(default_factory=dict)
    bucket_name_map: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ResourceOverrides':
        """
        Build overrides from a plain mapping.

        Raises:
            ValueError: If a list or map has the wrong shape
        """
        if not isinstance(data, Mapping):
            raise ValueError("overrides must be a mapping")

        unknown = set(data) - set(RESOURCE_LIST_FIELDS) - set(NAME_MAP_FIELDS)
        if unknown:
            raise ValueError(f"Unknown override fields: {', '.join(sorted(unknown))}")

        return cls(
            allowed_tables=_string_list(data, 'allowed_tables'),
            allowed_topics=_string_list(data, 'allowed_topics'),
            allowed_buckets=_string_list(data, 'allowed_buckets'),
            table_name_map=_string_map(data, 'table_name_map'),
            topic_name_map=_string_map(data, 'topic_name_map'),
            bucket_name_map=_string_map(data, 'bucket_name_map'),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for list_field in RESOURCE_LIST_FIELDS:
            value = getattr(self, list_field)
            if value is not None:
                result[list_field] = list(value)
        for map_field in NAME_MAP_FIELDS:
            value = getattr(self, map_field)
            if value:
                result[map_field] = dict(value)
        return result
