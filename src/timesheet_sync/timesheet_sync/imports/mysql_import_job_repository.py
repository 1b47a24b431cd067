from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..common.serialization import dumps, loads
from ..core.enums import ErrorSeverity, ImportErrorType, ImportKind, ImportTrigger, ImportWarningType, JobStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import ImportJob, ImportRecordError, ImportRecordWarning
from .repository import ImportJobRepository

_COLUMNS = """
    job_id, tenant_id, trigger_kind, import_kind, range_start, range_end, employee_ids,
    status, progress, total_records, processed_records, imported_records, skipped_records,
    error_records, errors, warnings, scheduled_by, cancelled_by, started_at, completed_at,
    duration_ms, created_at, updated_at
"""

_ACTIVE = (JobStatus.PENDING.value, JobStatus.RUNNING.value)


def to_record_error(raw: Dict[str, Any]) -> ImportRecordError:
    return ImportRecordError(
        record_id=str(raw["record_id"]),
        employee_id=str(raw["employee_id"]),
        date=str(raw["date"]),
        error_type=ImportErrorType(raw["error_type"]),
        message=str(raw["message"]),
        severity=ErrorSeverity(raw.get("severity", ErrorSeverity.ERROR.value)),
    )


def _to_warning(raw: Dict[str, Any]) -> ImportRecordWarning:
    return ImportRecordWarning(
        record_id=str(raw["record_id"]),
        employee_id=str(raw["employee_id"]),
        date=str(raw["date"]),
        warning_type=ImportWarningType(raw["warning_type"]),
        message=str(raw["message"]),
    )


def _to_job(r: Dict[str, Any]) -> ImportJob:
    employees = loads(r.get("employee_ids"))
    return ImportJob(
        job_id=str(r["job_id"]),
        tenant_id=str(r["tenant_id"]),
        trigger=ImportTrigger(r["trigger_kind"]),
        import_kind=ImportKind(r["import_kind"]),
        start=str(r["range_start"]),
        end=str(r["range_end"]),
        employee_ids=tuple(employees) if employees else None,
        status=JobStatus(r["status"]),
        progress=int(r["progress"]),
        total_records=int(r["total_records"]),
        processed_records=int(r["processed_records"]),
        imported_records=int(r["imported_records"]),
        skipped_records=int(r["skipped_records"]),
        error_records=int(r["error_records"]),
        errors=[to_record_error(e) for e in loads(r.get("errors"), [])],
        warnings=[_to_warning(w) for w in loads(r.get("warnings"), [])],
        scheduled_by=r.get("scheduled_by"),
        cancelled_by=r.get("cancelled_by"),
        started_at=r.get("started_at"),
        completed_at=r.get("completed_at"),
        duration_ms=r.get("duration_ms"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


class MySQLImportJobRepository(ImportJobRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, job: ImportJob) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO import_jobs(
                    job_id, tenant_id, trigger_kind, import_kind, range_start, range_end, employee_ids,
                    status, progress, scheduled_by, created_at, updated_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    job.job_id,
                    job.tenant_id,
                    job.trigger.value,
                    job.import_kind.value,
                    job.start,
                    job.end,
                    dumps(list(job.employee_ids)) if job.employee_ids else None,
                    job.status.value,
                    int(job.progress),
                    job.scheduled_by,
                    job.created_at,
                    job.updated_at,
                ),
            )

    def get(self, *, tenant_id: str, job_id: str) -> Optional[ImportJob]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM import_jobs WHERE tenant_id=%s AND job_id=%s", (tenant_id, job_id))
            r = fetchone(cur)
            return _to_job(r) if r else None

    def save_progress(self, job: ImportJob) -> bool:
        # Guarded on the stored status so an outside cancel is never overwritten.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE import_jobs
                SET status=%s, progress=%s, total_records=%s, processed_records=%s,
                    imported_records=%s, skipped_records=%s, error_records=%s,
                    errors=%s, warnings=%s, started_at=%s, completed_at=%s, duration_ms=%s, updated_at=%s
                WHERE tenant_id=%s AND job_id=%s AND status IN (%s,%s)
                """,
                (
                    job.status.value,
                    int(job.progress),
                    int(job.total_records),
                    int(job.processed_records),
                    int(job.imported_records),
                    int(job.skipped_records),
                    int(job.error_records),
                    dumps(job.errors),
                    dumps(job.warnings),
                    job.started_at,
                    job.completed_at,
                    job.duration_ms,
                    job.updated_at,
                    job.tenant_id,
                    job.job_id,
                    *_ACTIVE,
                ),
            )
            return cur.rowcount > 0

    def cancel(self, *, tenant_id: str, job_id: str, cancelled_by: str, at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE import_jobs
                SET status=%s, cancelled_by=%s, completed_at=%s, updated_at=%s
                WHERE tenant_id=%s AND job_id=%s AND status IN (%s,%s)
                """,
                (JobStatus.CANCELLED.value, cancelled_by, at, at, tenant_id, job_id, *_ACTIVE),
            )
            return cur.rowcount > 0

    def list_history(self, *, tenant_id: str, limit: int) -> Sequence[ImportJob]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM import_jobs
                WHERE tenant_id=%s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (tenant_id, int(limit)),
            )
            return [_to_job(r) for r in fetchall(cur)]

    def list_active(self, *, tenant_id: str) -> Sequence[ImportJob]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM import_jobs
                WHERE tenant_id=%s AND status IN (%s,%s)
                ORDER BY created_at DESC
                """,
                (tenant_id, *_ACTIVE),
            )
            return [_to_job(r) for r in fetchall(cur)]

    def list_created_between(
        self,
        *,
        tenant_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> Sequence[ImportJob]:
        clauses = ["tenant_id=%s"]
        params: list[object] = [tenant_id]
        if since is not None:
            clauses.append("created_at >= %s")
            params.append(since)
        if until is not None:
            clauses.append("created_at <= %s")
            params.append(until)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM import_jobs WHERE {' AND '.join(clauses)} ORDER BY created_at DESC",
                tuple(params),
            )
            return [_to_job(r) for r in fetchall(cur)]
