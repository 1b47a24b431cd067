from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..common.pagination import Page
from ..common.serialization import dumps, loads, parse_datetime
from ..core.enums import PresenceSource, PresenceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, keyset_page
from .model import Break, PresenceRecord
from .repository import PresenceRepository

_COLUMNS = """
    presence_id, tenant_id, employee_id, work_date, clock_in, clock_out, breaks,
    total_presence_minutes, total_break_minutes, effective_work_minutes,
    status, source, notes, created_at, updated_at
"""


def _to_break(raw: Dict[str, Any]) -> Break:
    return Break(
        break_id=str(raw["break_id"]),
        start=parse_datetime(raw["start"]),
        end=parse_datetime(raw.get("end")),
        category=str(raw.get("category") or "other"),
        description=raw.get("description"),
    )


def _to_record(r: Dict[str, Any]) -> PresenceRecord:
    return PresenceRecord(
        presence_id=str(r["presence_id"]),
        tenant_id=str(r["tenant_id"]),
        employee_id=str(r["employee_id"]),
        date=str(r["work_date"]),
        clock_in=r.get("clock_in"),
        clock_out=r.get("clock_out"),
        breaks=tuple(_to_break(b) for b in loads(r.get("breaks"), [])),
        total_presence_minutes=int(r["total_presence_minutes"]),
        total_break_minutes=int(r["total_break_minutes"]),
        effective_work_minutes=int(r["effective_work_minutes"]),
        status=PresenceStatus(r["status"]),
        source=PresenceSource(r["source"]),
        notes=r.get("notes"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


class MySQLPresenceRepository(PresenceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_range(
        self,
        *,
        tenant_id: str,
        start: str,
        end: str,
        employee_ids: Optional[Sequence[str]] = None,
        cursor: Optional[str] = None,
        limit: int = 500,
    ) -> Page[PresenceRecord]:
        clauses = ["tenant_id=%s", "work_date BETWEEN %s AND %s"]
        params: list[object] = [tenant_id, start, end]
        if employee_ids:
            clauses.append(in_clause("employee_id", employee_ids))
            params.extend(employee_ids)
        if cursor:
            clauses.append("presence_id > %s")
            params.append(cursor)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM presence_records
                WHERE {" AND ".join(clauses)}
                ORDER BY presence_id
                LIMIT %s
                """,
                tuple(params + [int(limit) + 1]),
            )
            return keyset_page(fetchall(cur), limit=int(limit), key="presence_id", convert=_to_record)

    def get_for_employee_day(self, *, tenant_id: str, employee_id: str, day: str) -> Optional[PresenceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM presence_records
                WHERE tenant_id=%s AND employee_id=%s AND work_date=%s
                """,
                (tenant_id, employee_id, day),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def create(self, record: PresenceRecord) -> str:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO presence_records(
                    presence_id, tenant_id, employee_id, work_date, clock_in, clock_out, breaks,
                    total_presence_minutes, total_break_minutes, effective_work_minutes,
                    status, source, notes, created_at, updated_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    record.presence_id,
                    record.tenant_id,
                    record.employee_id,
                    record.date,
                    record.clock_in,
                    record.clock_out,
                    dumps(list(record.breaks)),
                    int(record.total_presence_minutes),
                    int(record.total_break_minutes),
                    int(record.effective_work_minutes),
                    record.status.value,
                    record.source.value,
                    record.notes,
                    record.created_at,
                    record.updated_at,
                ),
            )
        return record.presence_id

    def update_work_time(
        self,
        *,
        tenant_id: str,
        presence_id: str,
        effective_work_minutes: int,
        status: PresenceStatus,
        notes: Optional[str],
        updated_at: datetime,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE presence_records
                SET effective_work_minutes=%s, status=%s, notes=%s, updated_at=%s
                WHERE tenant_id=%s AND presence_id=%s
                """,
                (int(effective_work_minutes), status.value, notes, updated_at, tenant_id, presence_id),
            )
            return cur.rowcount > 0

    def list_changed_since(
        self,
        *,
        tenant_id: str,
        since: datetime,
        employee_ids: Optional[Sequence[str]] = None,
    ) -> Sequence[PresenceRecord]:
        clauses = ["tenant_id=%s", "updated_at > %s"]
        params: list[object] = [tenant_id, since]
        if employee_ids:
            clauses.append(in_clause("employee_id", employee_ids))
            params.extend(employee_ids)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM presence_records
                WHERE {" AND ".join(clauses)}
                ORDER BY updated_at
                """,
                tuple(params),
            )
            return [_to_record(r) for r in fetchall(cur)]
