"""
Shallow statement scanners used by the repositories.

These scanners find resource references with regular expressions. They are a
best-effort syntactic check, not a parser: subqueries hidden in strings,
quoted identifiers, CTE names and dynamically built statements are not
understood.
"""

import re
from typing import Callable, FrozenSet, List, Optional

from ..core.interfaces.repositories import IStatementScanner

SQL_RESERVED_WORDS: FrozenSet[str] = frozenset({
    'select', 'where', 'group', 'order', 'having', 'limit', 'offset', 'set',
    'values', 'join', 'on', 'as', 'and', 'or', 'not',
    'into', 'from', 'table', 'update', 'default', 'returning',
})

SYSTEM_CATALOG_PREFIXES = ('pg_', 'information_schema')


class SqlTableScanner(IStatementScanner):
    """
    Finds table names following FROM, JOIN, UPDATE, INTO and TABLE.

    ``ONLY`` and ``IF [NOT] EXISTS`` are stepped over so the name after them
    is checked. Schema qualified names are captured whole; they never match
    an allowed table, so such statements are denied.
    """

    PATTERN = re.compile(
        r'\b(FROM|JOIN|UPDATE|INTO|TABLE)\s+'
        r'(?:IF\s+(?:NOT\s+)?EXISTS\s+)?'
        r'(?:ONLY\s+)?'
        r'([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)?)',
        re.IGNORECASE
    )

    def _candidate(self, match: re.Match) -> Optional[str]:
        name = match.group(2)
        lowered = name.lower()
        if lowered in SQL_RESERVED_WORDS:
            return None
        if lowered.startswith(SYSTEM_CATALOG_PREFIXES):
            return None
        return name

    def scan(self, statement: str) -> List[str]:
        names = []
        for match in self.PATTERN.finditer(statement):
            name = self._candidate(match)
            if name is not None:
                names.append(name)
        return names

    def rewrite(self, statement: str, resolve: Callable[[str], str]) -> str:
        def replace(match: re.Match) -> str:
            name = self._candidate(match)
            if name is None:
                return match.group(0)
            offset = match.start(2) - match.start(0)
            return match.group(0)[:offset] + resolve(name)

        return self.PATTERN.sub(replace, statement)


class StreamTopicScanner(IStatementScanner):
    """Finds KAFKA_TOPIC='name' clauses in streaming SQL statements."""

    PATTERN = re.compile(r'''(KAFKA_TOPIC\s*=\s*)(['"])([^'"]+)\2''', re.IGNORECASE)

    def scan(self, statement: str) -> List[str]:
        return [match.group(3) for match in self.PATTERN.finditer(statement)]

    def rewrite(self, statement: str, resolve: Callable[[str], str]) -> str:
        return self.PATTERN.sub(
            lambda m: f"{m.group(1)}{m.group(2)}{resolve(m.group(3))}{m.group(2)}",
            statement
        )
