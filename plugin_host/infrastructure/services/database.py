"""
PostgreSQL database service backed by an asyncpg connection pool.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import asyncpg

from ..config.models import DatabaseConfig
from ...core.interfaces.lifecycle import IComponent
from ...core.interfaces.services import IDatabaseService

logger = logging.getLogger(__name__)


def _affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg command status such as 'UPDATE 3'."""
    parts = status.split()
    if parts and parts[-1].isdigit():
        return int(parts[-1])
    return 0


class PostgresDatabaseService(IComponent, IDatabaseService):
    """Runs parameterized statements on a pooled PostgreSQL connection."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def name(self) -> str:
        return "PostgresDatabaseService"

    async def start(self) -> None:
        if self._pool is not None:
            return

        logger.info(
            f"Connecting to PostgreSQL at {self._config.host}:{self._config.port}/"
            f"{self._config.database}"
        )
        self._pool = await asyncpg.create_pool(
            host=self._config.host,
            port=self._config.port,
            user=self._config.user,
            password=self._config.password,
            database=self._config.database,
            min_size=self._config.min_pool_size,
            max_size=self._config.max_pool_size,
        )
        logger.info("PostgreSQL pool initialized")

    async def stop(self) -> None:
        if self._pool is None:
            return

        await self._pool.close()
        self._pool = None
        logger.info("PostgreSQL pool closed")

    async def check_health(self) -> Dict[str, Any]:
        if self._pool is None:
            return {'healthy': False, 'status': 'stopped', 'details': {}}

        try:
            await self._require_pool().fetchval("SELECT 1")
        except (asyncpg.PostgresError, OSError) as e:
            return {'healthy': False, 'status': 'error', 'details': {'error': str(e)}}

        return {
            'healthy': True,
            'status': 'running',
            'details': {
                'pool_size': self._require_pool().get_size(),
                'database': self._config.database,
            }
        }

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database service is not started")
        return self._pool

    async def query(self, sql: str, parameters: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        rows = await self._require_pool().fetch(sql, *parameters)
        logger.debug(f"Query returned {len(rows)} row(s)")
        return [dict(row) for row in rows]

    async def execute(self, sql: str, parameters: Sequence[Any] = ()) -> int:
        status = await self._require_pool().execute(sql, *parameters)
        return _affected_rows(status)
