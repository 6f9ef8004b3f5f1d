"""
Auditor plugin.

Records every greeting announced by the greeter plugin in its audit table,
publishes it to its audit topic and can archive the log to its bucket. All
three resources are declared here and reached through the repositories in
the plugin context, under the plugin's own prefixed names.
"""

import json
from datetime import datetime, timezone

from plugin_host.plugins.base import BasePlugin


class AuditorPlugin(BasePlugin):
    metadata = {
        "name": "auditor",
        "version": "1.2.0",
        "description": "Audits greetings into a table, a topic and a bucket",
        "dependencies": ["greeter"],
        "allowed_tables": ["audit_log"],
        "allowed_topics": ["audit.events"],
        "allowed_buckets": ["reports"],
    }

    def __init__(self):
        super().__init__()
        self.recorded = 0

    async def on_initialize(self):
        greeter = self.context.get_dependency("greeter")
        self.logger.info(f"Auditing greetings from {greeter.name} v{greeter.version}")
        await self.context.event_bus.on("greeter.greeted", self.record)

    async def on_cleanup(self):
        self.logger.info(f"Recorded {self.recorded} greeting(s)")

    async def record(self, data):
        self.recorded += 1
        entry = {
            "name": data.get("name"),
            "greeting": data.get("greeting"),
            "recorded_at": datetime.now(timezone.utc).isoformat(),
        }

        if self.context.database is not None:
            await self.context.database.execute_command(
                "INSERT INTO audit_log (name, greeting, recorded_at) VALUES ($1, $2, $3)",
                [entry["name"], entry["greeting"], entry["recorded_at"]],
            )
        if self.context.messaging is not None:
            await self.context.messaging.send_message(
                "audit.events", [{"key": entry["name"], "value": json.dumps(entry)}]
            )

    async def on_execute(self, payload):
        if self.context.object_store is None or self.context.database is None:
            return {"recorded": self.recorded, "archived": False}

        rows = await self.context.database.execute_query(
            "SELECT name, greeting, recorded_at FROM audit_log ORDER BY recorded_at"
        )
        key = f"audit-{datetime.now(timezone.utc):%Y%m%d%H%M%S}.json"
        await self.context.object_store.upload(
            "reports", key, json.dumps(rows, default=str), content_type="application/json"
        )
        return {"recorded": self.recorded, "archived": True, "key": key}


plugin = AuditorPlugin
