"""
Database repository restricted to a plugin's allowed tables.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

from ..core.interfaces.repositories import IDatabaseRepository, IStatementScanner
from ..core.interfaces.services import IDatabaseService
from .scanners import SqlTableScanner

if TYPE_CHECKING:
    from ..plugins.access import ResourceScope

logger = logging.getLogger(__name__)

Guard = Callable[[], None]


class DatabaseRepository(IDatabaseRepository):
    """
    Narrows a database service to the tables a plugin may reach.

    Every table reference found in the statement is checked before anything
    is delegated, then rewritten to its prefixed name.
    """

    def __init__(self, service: IDatabaseService, scope: "ResourceScope",
                 scanner: Optional[IStatementScanner] = None,
                 guard: Optional[Guard] = None):
        self._service = service
        self._scope = scope
        self._scanner = scanner or SqlTableScanner()
        self._guard = guard

    def _check_valid(self) -> None:
        if self._guard is not None:
            self._guard()

    def _prepare(self, sql: str) -> str:
        self._check_valid()

        for table in self._scanner.scan(sql):
            self._scope.check(table)

        rewritten = self._scanner.rewrite(sql, self._scope.resolve)
        logger.debug(f"Plugin {self._scope.plugin_name} statement rewritten: {rewritten}")
        return rewritten

    async def execute_query(self, sql: str, parameters: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        statement = self._prepare(sql)
        return await self._service.query(statement, list(parameters))

    async def execute_command(self, sql: str, parameters: Sequence[Any] = ()) -> int:
        statement = self._prepare(sql)
        return await self._service.execute(statement, list(parameters))

    def get_allowed_tables(self) -> List[str]:
        self._check_valid()
        return self._scope.allowed()
