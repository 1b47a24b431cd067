from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..common.pagination import Page
from ..core.enums import EntrySource, EntryType, TimesheetStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, keyset_page
from .model import Timesheet, TimesheetEntry
from .repository import TimesheetRepository

_ENTRY_COLUMNS = """
    entry_id, tenant_id, employee_id, timesheet_id, work_date, duration_minutes,
    start_time, end_time, entry_type, project_id, activity_code_id, description,
    billable, status, source, source_presence_id, source_break_id, created_at, updated_at
"""

_TIMESHEET_COLUMNS = """
    timesheet_id, tenant_id, employee_id, period_start, period_end, status,
    created_by, created_at, updated_at
"""


def _to_entry(r: Dict[str, Any]) -> TimesheetEntry:
    return TimesheetEntry(
        entry_id=str(r["entry_id"]),
        tenant_id=str(r["tenant_id"]),
        employee_id=str(r["employee_id"]),
        timesheet_id=str(r["timesheet_id"]),
        date=str(r["work_date"]),
        duration_minutes=int(r["duration_minutes"]),
        start_time=r.get("start_time"),
        end_time=r.get("end_time"),
        entry_type=EntryType(r["entry_type"]),
        project_id=r.get("project_id"),
        activity_code_id=r.get("activity_code_id"),
        description=r.get("description") or "",
        billable=bool(r.get("billable")),
        status=TimesheetStatus(r["status"]),
        source=EntrySource(r["source"]),
        source_presence_id=r.get("source_presence_id"),
        source_break_id=r.get("source_break_id"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


def _to_timesheet(r: Dict[str, Any]) -> Timesheet:
    return Timesheet(
        timesheet_id=str(r["timesheet_id"]),
        tenant_id=str(r["tenant_id"]),
        employee_id=str(r["employee_id"]),
        period_start=str(r["period_start"]),
        period_end=str(r["period_end"]),
        status=TimesheetStatus(r["status"]),
        created_by=r.get("created_by"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


class MySQLTimesheetRepository(TimesheetRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    # -------- Entries --------
    def list_entries_for_range(
        self,
        *,
        tenant_id: str,
        start: str,
        end: str,
        employee_ids: Optional[Sequence[str]] = None,
        cursor: Optional[str] = None,
        limit: int = 500,
    ) -> Page[TimesheetEntry]:
        clauses = ["tenant_id=%s", "work_date BETWEEN %s AND %s"]
        params: list[object] = [tenant_id, start, end]
        if employee_ids:
            clauses.append(in_clause("employee_id", employee_ids))
            params.extend(employee_ids)
        if cursor:
            clauses.append("entry_id > %s")
            params.append(cursor)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_ENTRY_COLUMNS}
                FROM time_entries
                WHERE {" AND ".join(clauses)}
                ORDER BY entry_id
                LIMIT %s
                """,
                tuple(params + [int(limit) + 1]),
            )
            return keyset_page(fetchall(cur), limit=int(limit), key="entry_id", convert=_to_entry)

    def list_entries_for_day(self, *, tenant_id: str, employee_id: str, day: str) -> Sequence[TimesheetEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_ENTRY_COLUMNS}
                FROM time_entries
                WHERE tenant_id=%s AND employee_id=%s AND work_date=%s
                ORDER BY start_time, entry_id
                """,
                (tenant_id, employee_id, day),
            )
            return [_to_entry(r) for r in fetchall(cur)]

    def list_entries_for_timesheet(self, *, tenant_id: str, timesheet_id: str) -> Sequence[TimesheetEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_ENTRY_COLUMNS}
                FROM time_entries
                WHERE tenant_id=%s AND timesheet_id=%s
                ORDER BY work_date, start_time, entry_id
                """,
                (tenant_id, timesheet_id),
            )
            return [_to_entry(r) for r in fetchall(cur)]

    def add_entries(self, entries: Sequence[TimesheetEntry]) -> list[str]:
        if not entries:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(
                """
                INSERT INTO time_entries(
                    entry_id, tenant_id, employee_id, timesheet_id, work_date, duration_minutes,
                    start_time, end_time, entry_type, project_id, activity_code_id, description,
                    billable, status, source, source_presence_id, source_break_id, created_at, updated_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                [
                    (
                        e.entry_id,
                        e.tenant_id,
                        e.employee_id,
                        e.timesheet_id,
                        e.date,
                        int(e.duration_minutes),
                        e.start_time,
                        e.end_time,
                        e.entry_type.value,
                        e.project_id,
                        e.activity_code_id,
                        e.description,
                        1 if e.billable else 0,
                        e.status.value,
                        e.source.value,
                        e.source_presence_id,
                        e.source_break_id,
                        e.created_at,
                        e.updated_at,
                    )
                    for e in entries
                ],
            )
        return [e.entry_id for e in entries]

    def update_entry_statuses(
        self,
        *,
        tenant_id: str,
        entry_ids: Sequence[str],
        status: TimesheetStatus,
        updated_at: datetime,
    ) -> int:
        if not entry_ids:
            return 0
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(
                "UPDATE time_entries SET status=%s, updated_at=%s WHERE tenant_id=%s AND entry_id=%s",
                [(status.value, updated_at, tenant_id, entry_id) for entry_id in entry_ids],
            )
            return int(cur.rowcount)

    def delete_entries(self, *, tenant_id: str, entry_ids: Sequence[str]) -> int:
        if not entry_ids:
            return 0
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"DELETE FROM time_entries WHERE tenant_id=%s AND {in_clause('entry_id', entry_ids)}",
                (tenant_id, *entry_ids),
            )
            return int(cur.rowcount)

    def list_entries_changed_since(
        self,
        *,
        tenant_id: str,
        since: datetime,
        employee_ids: Optional[Sequence[str]] = None,
    ) -> Sequence[TimesheetEntry]:
        clauses = ["tenant_id=%s", "updated_at > %s"]
        params: list[object] = [tenant_id, since]
        if employee_ids:
            clauses.append(in_clause("employee_id", employee_ids))
            params.extend(employee_ids)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_ENTRY_COLUMNS}
                FROM time_entries
                WHERE {" AND ".join(clauses)}
                ORDER BY updated_at
                """,
                tuple(params),
            )
            return [_to_entry(r) for r in fetchall(cur)]

    # -------- Timesheet headers --------
    def list_timesheets_for_range(
        self,
        *,
        tenant_id: str,
        start: str,
        end: str,
        employee_ids: Optional[Sequence[str]] = None,
        status: Optional[TimesheetStatus] = None,
        cursor: Optional[str] = None,
        limit: int = 500,
    ) -> Page[Timesheet]:
        clauses = ["tenant_id=%s", "period_start >= %s", "period_end <= %s"]
        params: list[object] = [tenant_id, start, end]
        if employee_ids:
            clauses.append(in_clause("employee_id", employee_ids))
            params.extend(employee_ids)
        if status is not None:
            clauses.append("status=%s")
            params.append(status.value)
        if cursor:
            clauses.append("timesheet_id > %s")
            params.append(cursor)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TIMESHEET_COLUMNS}
                FROM timesheets
                WHERE {" AND ".join(clauses)}
                ORDER BY timesheet_id
                LIMIT %s
                """,
                tuple(params + [int(limit) + 1]),
            )
            return keyset_page(fetchall(cur), limit=int(limit), key="timesheet_id", convert=_to_timesheet)

    def find_timesheet_covering(self, *, tenant_id: str, employee_id: str, day: str) -> Optional[Timesheet]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TIMESHEET_COLUMNS}
                FROM timesheets
                WHERE tenant_id=%s AND employee_id=%s AND period_start <= %s AND period_end >= %s
                ORDER BY period_start DESC
                LIMIT 1
                """,
                (tenant_id, employee_id, day, day),
            )
            r = fetchone(cur)
            return _to_timesheet(r) if r else None

    def create_timesheet(self, timesheet: Timesheet) -> str:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO timesheets(
                    timesheet_id, tenant_id, employee_id, period_start, period_end, status,
                    created_by, created_at, updated_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    timesheet.timesheet_id,
                    timesheet.tenant_id,
                    timesheet.employee_id,
                    timesheet.period_start,
                    timesheet.period_end,
                    timesheet.status.value,
                    timesheet.created_by,
                    timesheet.created_at,
                    timesheet.updated_at,
                ),
            )
        return timesheet.timesheet_id
