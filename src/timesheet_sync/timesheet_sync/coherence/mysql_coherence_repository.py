from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from ..common.serialization import dumps, loads
from ..core.enums import CheckKind, CheckStatus, IssueSeverity, IssueStatus, IssueType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from ..imports.mysql_import_job_repository import to_record_error
from .model import CoherenceCheck, CoherenceIssue, IssueFilter
from .repository import CoherenceCheckRepository, CoherenceIssueRepository

_CHECK_COLUMNS = """
    check_id, tenant_id, check_kind, range_start, range_end, employee_ids, auto_fix, status,
    records_checked, issues_found, auto_fixed, manual_review, errors, performed_by,
    started_at, completed_at, duration_ms
"""

_ISSUE_COLUMNS = """
    tenant_id, issue_id, check_id, issue_type, severity, employee_id, work_date, description,
    auto_fixable, status, presence_data, timesheet_data, difference_minutes, suggested_action,
    resolved_by, resolved_at, resolution_notes, created_at, updated_at
"""


def _to_check(r: Dict[str, Any]) -> CoherenceCheck:
    employees = loads(r.get("employee_ids"))
    return CoherenceCheck(
        check_id=str(r["check_id"]),
        tenant_id=str(r["tenant_id"]),
        check_kind=CheckKind(r["check_kind"]),
        start=str(r["range_start"]),
        end=str(r["range_end"]),
        performed_by=str(r["performed_by"]),
        employee_ids=tuple(employees) if employees else None,
        auto_fix=bool(r.get("auto_fix")),
        status=CheckStatus(r["status"]),
        records_checked=int(r["records_checked"]),
        issues_found=int(r["issues_found"]),
        auto_fixed=int(r["auto_fixed"]),
        manual_review=int(r["manual_review"]),
        errors=[to_record_error(e) for e in loads(r.get("errors"), [])],
        started_at=r.get("started_at"),
        completed_at=r.get("completed_at"),
        duration_ms=r.get("duration_ms"),
    )


def _to_issue(r: Dict[str, Any]) -> CoherenceIssue:
    return CoherenceIssue(
        issue_id=str(r["issue_id"]),
        tenant_id=str(r["tenant_id"]),
        check_id=str(r["check_id"]),
        issue_type=IssueType(r["issue_type"]),
        severity=IssueSeverity(r["severity"]),
        employee_id=str(r["employee_id"]),
        date=str(r["work_date"]),
        description=str(r["description"]),
        auto_fixable=bool(r.get("auto_fixable")),
        status=IssueStatus(r["status"]),
        presence_data=loads(r.get("presence_data")),
        timesheet_data=loads(r.get("timesheet_data")),
        difference_minutes=r.get("difference_minutes"),
        suggested_action=r.get("suggested_action"),
        resolved_by=r.get("resolved_by"),
        resolved_at=r.get("resolved_at"),
        resolution_notes=r.get("resolution_notes"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


def _issue_params(i: CoherenceIssue) -> tuple:
    return (
        i.tenant_id,
        i.issue_id,
        i.check_id,
        i.issue_type.value,
        i.severity.value,
        i.employee_id,
        i.date,
        i.description,
        1 if i.auto_fixable else 0,
        i.status.value,
        dumps(i.presence_data) if i.presence_data is not None else None,
        dumps(i.timesheet_data) if i.timesheet_data is not None else None,
        i.difference_minutes,
        i.suggested_action,
        i.resolved_by,
        i.resolved_at,
        i.resolution_notes,
        i.created_at,
        i.updated_at,
    )


class MySQLCoherenceCheckRepository(CoherenceCheckRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, check: CoherenceCheck) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO coherence_checks(
                    check_id, tenant_id, check_kind, range_start, range_end, employee_ids,
                    auto_fix, status, performed_by, started_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    check.check_id,
                    check.tenant_id,
                    check.check_kind.value,
                    check.start,
                    check.end,
                    dumps(list(check.employee_ids)) if check.employee_ids else None,
                    1 if check.auto_fix else 0,
                    check.status.value,
                    check.performed_by,
                    check.started_at,
                ),
            )

    def save(self, check: CoherenceCheck) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE coherence_checks
                SET status=%s, records_checked=%s, issues_found=%s, auto_fixed=%s, manual_review=%s,
                    errors=%s, completed_at=%s, duration_ms=%s
                WHERE tenant_id=%s AND check_id=%s
                """,
                (
                    check.status.value,
                    int(check.records_checked),
                    int(check.issues_found),
                    int(check.auto_fixed),
                    int(check.manual_review),
                    dumps(check.errors),
                    check.completed_at,
                    check.duration_ms,
                    check.tenant_id,
                    check.check_id,
                ),
            )

    def get(self, *, tenant_id: str, check_id: str) -> Optional[CoherenceCheck]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_CHECK_COLUMNS} FROM coherence_checks WHERE tenant_id=%s AND check_id=%s",
                (tenant_id, check_id),
            )
            r = fetchone(cur)
            return _to_check(r) if r else None

    def list(
        self,
        *,
        tenant_id: str,
        status: Optional[CheckStatus] = None,
        check_kind: Optional[CheckKind] = None,
        limit: int = 50,
    ) -> Sequence[CoherenceCheck]:
        clauses = ["tenant_id=%s"]
        params: list[object] = [tenant_id]
        if status is not None:
            clauses.append("status=%s")
            params.append(status.value)
        if check_kind is not None:
            clauses.append("check_kind=%s")
            params.append(check_kind.value)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_CHECK_COLUMNS}
                FROM coherence_checks
                WHERE {" AND ".join(clauses)}
                ORDER BY started_at DESC
                LIMIT %s
                """,
                tuple(params + [int(limit)]),
            )
            return [_to_check(r) for r in fetchall(cur)]

    def count(self, *, tenant_id: str) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS total FROM coherence_checks WHERE tenant_id=%s", (tenant_id,))
            r = fetchone(cur)
            return int(r["total"]) if r else 0


class MySQLCoherenceIssueRepository(CoherenceIssueRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, *, tenant_id: str, issue_id: str) -> Optional[CoherenceIssue]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_ISSUE_COLUMNS} FROM coherence_issues WHERE tenant_id=%s AND issue_id=%s",
                (tenant_id, issue_id),
            )
            r = fetchone(cur)
            return _to_issue(r) if r else None

    def get_many(self, *, tenant_id: str, issue_ids: Sequence[str]) -> Sequence[CoherenceIssue]:
        if not issue_ids:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_ISSUE_COLUMNS} FROM coherence_issues WHERE tenant_id=%s AND {in_clause('issue_id', issue_ids)}",
                (tenant_id, *issue_ids),
            )
            return [_to_issue(r) for r in fetchall(cur)]

    def upsert_many(self, issues: Sequence[CoherenceIssue]) -> None:
        if not issues:
            return
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(
                """
                REPLACE INTO coherence_issues(
                    tenant_id, issue_id, check_id, issue_type, severity, employee_id, work_date, description,
                    auto_fixable, status, presence_data, timesheet_data, difference_minutes, suggested_action,
                    resolved_by, resolved_at, resolution_notes, created_at, updated_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                [_issue_params(i) for i in issues],
            )

    def save(self, issue: CoherenceIssue) -> None:
        self.upsert_many([issue])

    def find(self, *, tenant_id: str, filters: IssueFilter) -> Sequence[CoherenceIssue]:
        clauses = ["tenant_id=%s"]
        params: list[object] = [tenant_id]
        if filters.check_id:
            clauses.append("check_id=%s")
            params.append(filters.check_id)
        if filters.issue_type is not None:
            clauses.append("issue_type=%s")
            params.append(filters.issue_type.value)
        if filters.severity is not None:
            clauses.append("severity=%s")
            params.append(filters.severity.value)
        if filters.status is not None:
            clauses.append("status=%s")
            params.append(filters.status.value)
        if filters.employee_id:
            clauses.append("employee_id=%s")
            params.append(filters.employee_id)
        if filters.start:
            clauses.append("work_date >= %s")
            params.append(filters.start)
        if filters.end:
            clauses.append("work_date <= %s")
            params.append(filters.end)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_ISSUE_COLUMNS}
                FROM coherence_issues
                WHERE {" AND ".join(clauses)}
                ORDER BY work_date DESC, issue_id
                LIMIT %s
                """,
                tuple(params + [int(filters.limit)]),
            )
            return [_to_issue(r) for r in fetchall(cur)]

    def list_all(self, *, tenant_id: str) -> Sequence[CoherenceIssue]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_ISSUE_COLUMNS} FROM coherence_issues WHERE tenant_id=%s", (tenant_id,))
            return [_to_issue(r) for r in fetchall(cur)]
