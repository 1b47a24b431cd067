from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ..common.serialization import dumps, loads
from ..core.enums import ConflictStatus, ConflictType, IssueSeverity, ResolutionStrategy, SyncDirection, SyncStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, in_clause
from .model import SyncConflict, SyncResult
from .repository import SyncRepository

_RESULT_COLUMNS = """
    sync_id, tenant_id, direction, range_start, range_end, employee_ids, performed_by, status,
    records_processed, records_created, records_updated, records_skipped, records_errored,
    errors, warnings, started_at, completed_at, duration_ms
"""

_CONFLICT_COLUMNS = """
    tenant_id, sync_id, conflict_id, conflict_type, employee_id, work_date, severity, description,
    presence_id, presence_minutes, timesheet_minutes, entry_ids, presence_updated_at,
    timesheet_updated_at, difference_minutes, status, resolution_strategy, resolved_by,
    resolved_at, created_at
"""


def _to_conflict(r: Dict[str, Any]) -> SyncConflict:
    strategy = r.get("resolution_strategy")
    return SyncConflict(
        conflict_id=str(r["conflict_id"]),
        tenant_id=str(r["tenant_id"]),
        sync_id=str(r["sync_id"]),
        conflict_type=ConflictType(r["conflict_type"]),
        employee_id=str(r["employee_id"]),
        date=str(r["work_date"]),
        severity=IssueSeverity(r["severity"]),
        description=str(r["description"]),
        presence_id=r.get("presence_id"),
        presence_minutes=int(r["presence_minutes"]),
        timesheet_minutes=int(r["timesheet_minutes"]),
        entry_ids=tuple(loads(r.get("entry_ids"), [])),
        presence_updated_at=r.get("presence_updated_at"),
        timesheet_updated_at=r.get("timesheet_updated_at"),
        difference_minutes=int(r["difference_minutes"]),
        status=ConflictStatus(r["status"]),
        resolution_strategy=ResolutionStrategy(strategy) if strategy else None,
        resolved_by=r.get("resolved_by"),
        resolved_at=r.get("resolved_at"),
        created_at=r.get("created_at"),
    )


def _to_result(r: Dict[str, Any], conflicts: List[SyncConflict]) -> SyncResult:
    employees = loads(r.get("employee_ids"))
    return SyncResult(
        sync_id=str(r["sync_id"]),
        tenant_id=str(r["tenant_id"]),
        direction=SyncDirection(r["direction"]),
        start=str(r["range_start"]),
        end=str(r["range_end"]),
        performed_by=str(r["performed_by"]),
        employee_ids=tuple(employees) if employees else None,
        status=SyncStatus(r["status"]),
        records_processed=int(r["records_processed"]),
        records_created=int(r["records_created"]),
        records_updated=int(r["records_updated"]),
        records_skipped=int(r["records_skipped"]),
        records_errored=int(r["records_errored"]),
        conflicts=conflicts,
        errors=list(loads(r.get("errors"), [])),
        warnings=list(loads(r.get("warnings"), [])),
        started_at=r.get("started_at"),
        completed_at=r.get("completed_at"),
        duration_ms=r.get("duration_ms"),
    )


def _conflict_params(c: SyncConflict) -> tuple:
    return (
        c.tenant_id,
        c.sync_id,
        c.conflict_id,
        c.conflict_type.value,
        c.employee_id,
        c.date,
        c.severity.value,
        c.description,
        c.presence_id,
        int(c.presence_minutes),
        int(c.timesheet_minutes),
        dumps(list(c.entry_ids)),
        c.presence_updated_at,
        c.timesheet_updated_at,
        int(c.difference_minutes),
        c.status.value,
        c.resolution_strategy.value if c.resolution_strategy else None,
        c.resolved_by,
        c.resolved_at,
        c.created_at,
    )


class MySQLSyncRepository(SyncRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def save_result(self, result: SyncResult) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                REPLACE INTO sync_results({_RESULT_COLUMNS})
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    result.sync_id,
                    result.tenant_id,
                    result.direction.value,
                    result.start,
                    result.end,
                    dumps(list(result.employee_ids)) if result.employee_ids else None,
                    result.performed_by,
                    result.status.value,
                    int(result.records_processed),
                    int(result.records_created),
                    int(result.records_updated),
                    int(result.records_skipped),
                    int(result.records_errored),
                    dumps(result.errors),
                    dumps(result.warnings),
                    result.started_at,
                    result.completed_at,
                    result.duration_ms,
                ),
            )
            if result.conflicts:
                cur.executemany(
                    f"REPLACE INTO sync_conflicts({_CONFLICT_COLUMNS}) VALUES({','.join(['%s'] * 20)})",
                    [_conflict_params(c) for c in result.conflicts],
                )

    def list_history(self, *, tenant_id: str, limit: int) -> Sequence[SyncResult]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_RESULT_COLUMNS}
                FROM sync_results
                WHERE tenant_id=%s
                ORDER BY started_at DESC
                LIMIT %s
                """,
                (tenant_id, int(limit)),
            )
            rows = fetchall(cur)
            if not rows:
                return []

            sync_ids = [r["sync_id"] for r in rows]
            cur.execute(
                f"SELECT {_CONFLICT_COLUMNS} FROM sync_conflicts WHERE tenant_id=%s AND {in_clause('sync_id', sync_ids)}",
                (tenant_id, *sync_ids),
            )
            by_sync: Dict[str, List[SyncConflict]] = {}
            for c in fetchall(cur):
                conflict = _to_conflict(c)
                by_sync.setdefault(conflict.sync_id, []).append(conflict)
            return [_to_result(r, by_sync.get(str(r["sync_id"]), [])) for r in rows]

    def list_conflicts(
        self,
        *,
        tenant_id: str,
        status: Optional[ConflictStatus] = None,
        conflict_ids: Optional[Sequence[str]] = None,
    ) -> Sequence[SyncConflict]:
        clauses = ["tenant_id=%s"]
        params: list[object] = [tenant_id]
        if status is not None:
            clauses.append("status=%s")
            params.append(status.value)
        if conflict_ids:
            clauses.append(in_clause("conflict_id", conflict_ids))
            params.extend(conflict_ids)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_CONFLICT_COLUMNS}
                FROM sync_conflicts
                WHERE {" AND ".join(clauses)}
                ORDER BY created_at DESC
                """,
                tuple(params),
            )
            return [_to_conflict(r) for r in fetchall(cur)]

    def save_conflicts(self, conflicts: Sequence[SyncConflict]) -> None:
        if not conflicts:
            return
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(
                f"REPLACE INTO sync_conflicts({_CONFLICT_COLUMNS}) VALUES({','.join(['%s'] * 20)})",
                [_conflict_params(c) for c in conflicts],
            )
