"""
Naming convention validation for plugins and the resources they declare.

Every validator collects all violated rules for a name and raises a single
ValueError listing them, so callers see the full set of problems at once.
"""

import re
from typing import Callable, Iterable, List, Sequence, Tuple

NameRule = Tuple[Callable[[str], bool], str]

_IPV4_LIKE = re.compile(r'^[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}$')


def _length_rules(label: str, minimum: int, maximum: int) -> List[NameRule]:
    unit = "character" if minimum == 1 else "characters"
    return [
        (lambda name: len(name) >= minimum, f"{label} must be at least {minimum} {unit}"),
        (lambda name: len(name) <= maximum, f"{label} must be at most {maximum} characters"),
    ]


def _pattern(expression: str) -> Callable[[str], bool]:
    compiled = re.compile(expression)
    return lambda name: compiled.search(name) is not None


def _forbidden(expression: str) -> Callable[[str], bool]:
    compiled = re.compile(expression)
    return lambda name: compiled.search(name) is None


PLUGIN_NAME_RULES: List[NameRule] = _length_rules("Plugin name", 1, 63) + [
    (_pattern(r'^[a-z0-9]'), "Plugin name must start with a lowercase letter or number"),
    (_pattern(r'^[a-z0-9_-]+$'),
     "Plugin name must contain only lowercase letters, numbers, dashes, and underscores"),
    (_forbidden(r'[-_]$'), "Plugin name cannot end with a dash or underscore"),
    (_forbidden(r'[-_]{2,}'), "Plugin name cannot have consecutive dashes or underscores"),
]

TABLE_NAME_RULES: List[NameRule] = _length_rules("Table name", 1, 63) + [
    (_pattern(r'^[a-z_]'), "Table name must start with a lowercase letter or underscore"),
    (_pattern(r'^[a-z0-9_]+$'),
     "Table name must contain only lowercase letters, numbers, and underscores"),
    (_forbidden(r'_$'), "Table name cannot end with an underscore"),
    (_forbidden(r'_{2,}'), "Table name cannot have consecutive underscores"),
]

TOPIC_NAME_RULES: List[NameRule] = _length_rules("Topic name", 1, 249) + [
    (_pattern(r'^[a-z0-9._-]+$'),
     "Topic name must contain only lowercase letters, numbers, dashes, underscores, and dots"),
    (_forbidden(r'\.$'), "Topic name cannot end with a dot"),
    (_forbidden(r'\.{2,}'), "Topic name cannot have consecutive dots"),
]

BUCKET_NAME_RULES: List[NameRule] = _length_rules("Bucket name", 3, 63) + [
    (_pattern(r'^[a-z0-9]'), "Bucket name must start with a lowercase letter or number"),
    (_pattern(r'^[a-z0-9.-]+$'),
     "Bucket name must contain only lowercase letters, numbers, dashes, and dots"),
    (_forbidden(r'[-.]$'), "Bucket name cannot end with a dash or dot"),
    (_forbidden(r'\.{2,}'), "Bucket name cannot have consecutive dots"),
    (lambda name: _IPV4_LIKE.match(name) is None,
     "Bucket name cannot be formatted as an IP address"),
]


def _check(name: str, rules: Sequence[NameRule]) -> None:
    if not isinstance(name, str):
        raise ValueError(f"Name must be a string, got {type(name).__name__}")

    violations = [message for predicate, message in rules if not predicate(name)]
    if violations:
        raise ValueError("; ".join(violations))


def validate_plugin_name(name: str) -> None:
    """Validate a plugin name (1-63 chars, lowercase alphanumeric, dash, underscore)."""
    _check(name, PLUGIN_NAME_RULES)


def validate_table_name(name: str) -> None:
    """Validate a database table name (1-63 chars, lowercase alphanumeric, underscore)."""
    _check(name, TABLE_NAME_RULES)


def validate_topic_name(name: str) -> None:
    """Validate a message topic name (1-249 chars, lowercase alphanumeric, dot, dash, underscore)."""
    _check(name, TOPIC_NAME_RULES)


def validate_bucket_name(name: str) -> None:
    """Validate an object storage bucket name (3-63 chars, not an IPv4 address)."""
    _check(name, BUCKET_NAME_RULES)


def validate_resource_names(names: Iterable[str], validator: Callable[[str], None],
                            resource_type: str) -> None:
    """
    Validate a list of resource names and reject duplicates.

    Args:
        names: Names to validate
        validator: One of the validate_*_name functions
        resource_type: Human readable resource kind used in error messages

    Raises:
        ValueError: If any name is invalid or a name appears more than once
    """
    if isinstance(names, (str, bytes)) or not isinstance(names, (list, tuple)):
        raise ValueError(f"{resource_type} names must be a list")

    for name in names:
        try:
            validator(name)
        except ValueError as e:
            raise ValueError(f"Invalid {resource_type} name '{name}': {e}") from e

    seen = set()
    duplicates = []
    for name in names:
        if name in seen and name not in duplicates:
            duplicates.append(name)
        seen.add(name)

    if duplicates:
        raise ValueError(f"Duplicate {resource_type} names found: {', '.join(duplicates)}")
