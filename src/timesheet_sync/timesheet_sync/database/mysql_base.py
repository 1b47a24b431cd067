from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

from ..common.pagination import Page
from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def in_clause(column: str, values: Sequence[Any]) -> str:
    """`column IN (%s,%s,...)` for a non-empty sequence."""
    return f"{column} IN ({','.join(['%s'] * len(values))})"


def keyset_page(rows: List[Dict[str, Any]], *, limit: int, key: str, convert) -> Page:
    """Build a Page from `limit + 1` fetched rows ordered by `key`."""
    has_more = len(rows) > limit
    rows = rows[:limit]
    next_cursor = str(rows[-1][key]) if has_more and rows else None
    return Page(items=tuple(convert(r) for r in rows), next_cursor=next_cursor)
