"""
SQL helpers shared by the checkpoint store and the mirror table.
"""

from datetime import datetime
from typing import Any

import ibis


def escape_sql_string(value: str) -> str:
    """Escape single quotes for SQL strings."""
    return value.replace("'", "''")


def sql_value(value: Any) -> str:
    """Convert Python value to SQL literal representation."""
    if value is None:
        return "NULL"
    # bool before int: isinstance(True, int) is True
    elif isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    elif isinstance(value, (int, float)):
        return str(value)
    elif isinstance(value, datetime):
        return f"TIMESTAMP '{value.isoformat()}'"
    else:
        return f"'{escape_sql_string(str(value))}'"


def execute_statement(connection: ibis.BaseBackend, query: str) -> None:
    """
    Execute a DDL/DML statement (CREATE, INSERT, DELETE) for its side effect.

    Uses ``raw_sql`` so the statement runs immediately; DuckDB autocommits
    each statement, which is what makes a checkpoint write durable before the
    next remote call.
    """
    # For DuckDB raw_sql hands back the underlying connection; nothing to close
    connection.raw_sql(query)


def fetch_rows(connection: ibis.BaseBackend, query: str) -> list[tuple]:
    """Run a SELECT and return its rows as tuples, in result order."""
    frame = connection.sql(query).execute()
    return [tuple(row) for row in frame.itertuples(index=False, name=None)]
