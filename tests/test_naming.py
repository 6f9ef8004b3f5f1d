"""
Tests for plugin and resource naming rules.
"""

import pytest

from plugin_host.core.naming import (
    validate_bucket_name,
    validate_plugin_name,
    validate_resource_names,
    validate_table_name,
    validate_topic_name,
)


class TestPluginNames:

    @pytest.mark.parametrize("name", ["greeter", "order-audit", "plugin_1", "1st", "a"])
    def test_valid_names(self, name: str) -> None:
        validate_plugin_name(name)

    @pytest.mark.parametrize("name,message", [
        ("", "at least 1 character"),
        ("Greeter", "lowercase letters, numbers, dashes, and underscores"),
        ("-greeter", "must start with a lowercase letter or number"),
        ("greeter-", "cannot end with a dash or underscore"),
        ("order--audit", "consecutive dashes or underscores"),
        ("order_-audit", "consecutive dashes or underscores"),
        ("a" * 64, "at most 63 characters"),
    ])
    def test_invalid_names(self, name: str, message: str) -> None:
        with pytest.raises(ValueError, match=message):
            validate_plugin_name(name)

    def test_reports_every_violated_rule(self) -> None:
        with pytest.raises(ValueError) as exc_info:
            validate_plugin_name("_Bad__")

        messages = str(exc_info.value).split("; ")
        assert "Plugin name must start with a lowercase letter or number" in messages
        assert "Plugin name cannot end with a dash or underscore" in messages
        assert "Plugin name cannot have consecutive dashes or underscores" in messages

    def test_rejects_non_string(self) -> None:
        with pytest.raises(ValueError, match="must be a string"):
            validate_plugin_name(42)  # type: ignore[arg-type]


class TestTableNames:

    @pytest.mark.parametrize("name", ["orders", "_staging", "audit_log", "t1"])
    def test_valid_names(self, name: str) -> None:
        validate_table_name(name)

    @pytest.mark.parametrize("name", ["Orders", "1orders", "order-items", "orders_", "a__b", "x" * 64])
    def test_invalid_names(self, name: str) -> None:
        with pytest.raises(ValueError):
            validate_table_name(name)


class TestTopicNames:

    @pytest.mark.parametrize("name", ["audit.events", "orders-v1", "_internal", "1", "a" * 249])
    def test_valid_names(self, name: str) -> None:
        validate_topic_name(name)

    @pytest.mark.parametrize("name,message", [
        ("Audit", "only lowercase letters"),
        ("audit..events", "consecutive dots"),
        ("audit.", "cannot end with a dot"),
        ("a" * 250, "at most 249 characters"),
    ])
    def test_invalid_names(self, name: str, message: str) -> None:
        with pytest.raises(ValueError, match=message):
            validate_topic_name(name)


class TestBucketNames:

    @pytest.mark.parametrize("name", ["reports", "my-bucket", "logs.2024", "abc"])
    def test_valid_names(self, name: str) -> None:
        validate_bucket_name(name)

    @pytest.mark.parametrize("name,message", [
        ("ab", "at least 3 characters"),
        ("my_bucket", "only lowercase letters, numbers, dashes, and dots"),
        ("-bucket", "must start with a lowercase letter or number"),
        ("bucket-", "cannot end with a dash or dot"),
        ("my..bucket", "consecutive dots"),
        ("192.168.1.1", "IP address"),
    ])
    def test_invalid_names(self, name: str, message: str) -> None:
        with pytest.raises(ValueError, match=message):
            validate_bucket_name(name)


class TestResourceNameLists:

    def test_accepts_valid_list(self) -> None:
        validate_resource_names(["orders", "customers"], validate_table_name, "table")

    def test_accepts_empty_list(self) -> None:
        validate_resource_names([], validate_table_name, "table")

    def test_names_the_invalid_entry(self) -> None:
        with pytest.raises(ValueError, match="Invalid table name 'Orders'"):
            validate_resource_names(["customers", "Orders"], validate_table_name, "table")

    def test_rejects_duplicates(self) -> None:
        with pytest.raises(ValueError, match="Duplicate topic names found: events"):
            validate_resource_names(["events", "audit", "events", "events"],
                                    validate_topic_name, "topic")

    def test_rejects_bare_string(self) -> None:
        with pytest.raises(ValueError, match="must be a list"):
            validate_resource_names("orders", validate_table_name, "table")  # type: ignore[arg-type]
