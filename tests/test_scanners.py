"""
Tests for the SQL table and streaming SQL topic scanners.
"""

import pytest

from plugin_host.repositories.scanners import SqlTableScanner, StreamTopicScanner


def _prefix(name: str) -> str:
    return f"audit_{name.lower()}"


class TestSqlTableScanner:

    def setup_method(self) -> None:
        self.scanner = SqlTableScanner()

    @pytest.mark.parametrize("sql,tables", [
        ("SELECT * FROM orders", ["orders"]),
        ("select id from orders o join customers c on c.id = o.customer_id", ["orders", "customers"]),
        ("UPDATE orders SET status = $1 WHERE id = $2", ["orders"]),
        ("INSERT INTO audit_log (name) VALUES ($1)", ["audit_log"]),
        ("DELETE FROM orders WHERE id = $1", ["orders"]),
        ("CREATE TABLE IF NOT EXISTS events (id serial)", ["events"]),
        ("DROP TABLE IF EXISTS events", ["events"]),
        ("SELECT 1", []),
    ])
    def test_scan(self, sql: str, tables: list) -> None:
        assert self.scanner.scan(sql) == tables

    def test_skips_system_catalogs(self) -> None:
        sql = "SELECT * FROM pg_tables JOIN information_schema_columns ON true"
        assert self.scanner.scan(sql) == []

    def test_rewrite_replaces_only_table_names(self) -> None:
        sql = "SELECT o.id FROM Orders o JOIN customers c ON c.id = o.customer_id WHERE o.note = 'orders'"

        rewritten = self.scanner.rewrite(sql, _prefix)

        assert rewritten == (
            "SELECT o.id FROM audit_orders o JOIN audit_customers c "
            "ON c.id = o.customer_id WHERE o.note = 'orders'"
        )

    def test_rewrite_keeps_if_not_exists(self) -> None:
        rewritten = self.scanner.rewrite("CREATE TABLE IF NOT EXISTS events (id int)", _prefix)
        assert rewritten == "CREATE TABLE IF NOT EXISTS audit_events (id int)"

    @pytest.mark.parametrize("sql,tables", [
        ("SELECT * FROM ONLY products", ["products"]),
        ("UPDATE ONLY products SET price = 0", ["products"]),
        ("DELETE FROM only products", ["products"]),
        ("SELECT * FROM only_products", ["only_products"]),
        ("SELECT * FROM public.products", ["public.products"]),
        ("SELECT * FROM orders o JOIN LATERAL (SELECT 1) x ON true", ["orders", "LATERAL"]),
        ("SELECT * FROM information_schema.tables", []),
    ])
    def test_scan_postgres_modifiers(self, sql: str, tables: list) -> None:
        assert self.scanner.scan(sql) == tables

    def test_rewrite_keeps_only(self) -> None:
        rewritten = self.scanner.rewrite("SELECT * FROM ONLY users WHERE id = $1", _prefix)
        assert rewritten == "SELECT * FROM ONLY audit_users WHERE id = $1"


class TestStreamTopicScanner:

    def setup_method(self) -> None:
        self.scanner = StreamTopicScanner()

    def test_scan_finds_kafka_topic_clauses(self) -> None:
        statement = (
            "CREATE STREAM audit_stream (id INT) WITH (KAFKA_TOPIC='audit.events', VALUE_FORMAT='JSON');"
            " CREATE TABLE t WITH (kafka_topic = \"orders\");"
        )
        assert self.scanner.scan(statement) == ["audit.events", "orders"]

    def test_scan_without_topics(self) -> None:
        assert self.scanner.scan("SELECT * FROM audit_stream EMIT CHANGES;") == []

    def test_rewrite_preserves_quotes(self) -> None:
        statement = "CREATE STREAM s WITH (KAFKA_TOPIC=\"events\", VALUE_FORMAT='JSON');"

        rewritten = self.scanner.rewrite(statement, lambda name: f"audit_{name}")

        assert rewritten == "CREATE STREAM s WITH (KAFKA_TOPIC=\"audit_events\", VALUE_FORMAT='JSON');"
