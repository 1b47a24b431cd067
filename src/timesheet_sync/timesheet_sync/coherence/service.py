from __future__ import annotations

import dataclasses
import logging
import time
from collections import Counter
from contextlib import nullcontext
from typing import List, Optional, Sequence

from ..common.datetime_utils import DayRange, utcnow
from ..common.ids import new_id
from ..common.pagination import collect_pages
from ..common.validators import normalize_employee_ids, require_enum, require_non_empty
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_ISSUE_LIMIT, DEFAULT_PAGE_SIZE, SYSTEM_ACTOR, SYSTEM_RECORD_ID
from ..core.enums import (
    CheckKind,
    CheckStatus,
    ErrorSeverity,
    ImportErrorType,
    IssueStatus,
    PresenceStatus,
    TimesheetStatus,
)
from ..core.exceptions import DomainError, NotFoundError
from ..imports.model import ImportRecordError
from ..policy.service import PolicyService
from ..presence.repository import PresenceRepository
from ..resolution.service import ConflictResolutionService
from ..tasks.locks import TenantLocks
from ..tasks.runner import InlineRunner, PendingTasks, TaskRunner
from ..timesheets.repository import TimesheetRepository
from .detectors.base import DatasetSnapshot
from .detectors.registry import active_detectors
from .model import (
    CoherenceCheck,
    CoherenceIssue,
    CoherenceStatistics,
    CrossValidationReport,
    DayComparison,
    IssueFilter,
)
from .repository import CoherenceCheckRepository, CoherenceIssueRepository

logger = logging.getLogger(__name__)


class CoherenceService:
    """Detects presence/timesheet inconsistencies for a tenant and date range."""

    def __init__(
        self,
        checks: CoherenceCheckRepository,
        issues: CoherenceIssueRepository,
        presence: PresenceRepository,
        timesheets: TimesheetRepository,
        policies: PolicyService,
        resolution: ConflictResolutionService,
        *,
        runner: TaskRunner | None = None,
        locks: TenantLocks | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self._checks = checks
        self._issues = issues
        self._presence = presence
        self._timesheets = timesheets
        self._policies = policies
        self._resolution = resolution
        self._runner = runner or InlineRunner()
        self._locks = locks or TenantLocks()
        self._page_size = int(page_size)
        self._pending = PendingTasks()

    # -------- Checks --------
    def perform_coherence_check(
        self,
        tenant_id: str,
        check_kind: CheckKind | str,
        start,
        end,
        performed_by: str,
        employee_ids: Optional[Sequence[str]] = None,
        auto_fix: bool = False,
    ) -> CoherenceCheck:
        tenant_id = require_non_empty(tenant_id, "tenant_id")
        day_range = DayRange.of(start, end)
        check = CoherenceCheck(
            check_id=new_id(),
            tenant_id=tenant_id,
            check_kind=require_enum(CheckKind, check_kind, "check_kind"),
            start=day_range.start,
            end=day_range.end,
            performed_by=require_non_empty(performed_by, "performed_by"),
            employee_ids=normalize_employee_ids(employee_ids),
            auto_fix=bool(auto_fix),
            status=CheckStatus.RUNNING,
            started_at=utcnow(),
        )
        self._checks.create(check)
        logger.info("Coherence check %s started for tenant %s (%s..%s)", check.check_id, tenant_id, check.start, check.end)

        self._pending.track(check.check_id, self._runner.submit(self.run_coherence_check, check))
        return check

    def run_coherence_check(self, check: CoherenceCheck) -> CoherenceCheck:
        started = time.monotonic()
        guard = self._locks.hold(check.tenant_id) if check.auto_fix else nullcontext()
        with guard:
            try:
                policy = self._policies.get_policy(check.tenant_id)
                snapshot = self._load_snapshot(check.tenant_id, check.start, check.end, check.employee_ids)
                now = utcnow()

                detected: List[CoherenceIssue] = []
                for detector in active_detectors():
                    detected.extend(
                        detector.detect(snapshot, policy, tenant_id=check.tenant_id, check_id=check.check_id, now=now)
                    )
                issues = self._merge_with_stored(check.tenant_id, detected)
                if check.auto_fix:
                    fixed = [self._try_fix(check, issue) for issue in issues]
                    check.auto_fixed = sum(1 for before, after in zip(issues, fixed) if after is not before)
                    issues = fixed
                self._issues.upsert_many(issues)

                check.records_checked = snapshot.record_count
                check.issues_found = len(issues)
                check.manual_review = sum(1 for i in issues if i.status == IssueStatus.MANUAL_REVIEW)
                check.status = CheckStatus.COMPLETED
                logger.info(
                    "Coherence check %s completed: %s issues (%s auto-fixed)",
                    check.check_id, check.issues_found, check.auto_fixed,
                )
            except Exception as exc:
                logger.exception("Coherence check %s failed", check.check_id)
                check.status = CheckStatus.FAILED
                check.errors.append(
                    ImportRecordError(
                        record_id=SYSTEM_RECORD_ID,
                        employee_id=SYSTEM_ACTOR,
                        date=check.start,
                        error_type=ImportErrorType.SYSTEM,
                        message=str(exc),
                        severity=ErrorSeverity.CRITICAL,
                    )
                )
            finally:
                check.completed_at = utcnow()
                check.duration_ms = int((time.monotonic() - started) * 1000)
                self._checks.save(check)
        return check

    def _load_snapshot(self, tenant_id: str, start: str, end: str, employee_ids) -> DatasetSnapshot:
        presence = collect_pages(
            lambda cursor: self._presence.list_for_range(
                tenant_id=tenant_id, start=start, end=end, employee_ids=employee_ids, cursor=cursor, limit=self._page_size
            )
        )
        entries = collect_pages(
            lambda cursor: self._timesheets.list_entries_for_range(
                tenant_id=tenant_id, start=start, end=end, employee_ids=employee_ids, cursor=cursor, limit=self._page_size
            )
        )
        timesheets = collect_pages(
            lambda cursor: self._timesheets.list_timesheets_for_range(
                tenant_id=tenant_id,
                start=start,
                end=end,
                employee_ids=employee_ids,
                status=TimesheetStatus.APPROVED,
                cursor=cursor,
                limit=self._page_size,
            )
        )
        return DatasetSnapshot(presence=presence, entries=entries, timesheets=timesheets)

    def _merge_with_stored(self, tenant_id: str, detected: List[CoherenceIssue]) -> List[CoherenceIssue]:
        """Fixed and ignored issues keep their status and resolution audit across re-detection."""
        if not detected:
            return []
        stored = {
            i.issue_id: i
            for i in self._issues.get_many(tenant_id=tenant_id, issue_ids=[d.issue_id for d in detected])
        }
        merged: List[CoherenceIssue] = []
        for issue in detected:
            previous = stored.get(issue.issue_id)
            if previous and previous.status.is_terminal:
                merged.append(previous)
            elif previous:
                merged.append(dataclasses.replace(issue, created_at=previous.created_at))
            else:
                merged.append(issue)
        return merged

    def _try_fix(self, check: CoherenceCheck, issue: CoherenceIssue) -> CoherenceIssue:
        if issue.status != IssueStatus.OPEN or not self._resolution.can_auto_fix(issue):
            return issue
        try:
            return self._resolution.apply_fix(issue, check.performed_by)
        except Exception as exc:
            logger.warning("Check %s: auto-fix of %s failed: %s", check.check_id, issue.issue_id, exc)
            check.errors.append(
                ImportRecordError(
                    record_id=issue.issue_id,
                    employee_id=issue.employee_id,
                    date=issue.date,
                    error_type=ImportErrorType.CONFLICT if isinstance(exc, DomainError) else ImportErrorType.SYSTEM,
                    message=str(exc),
                )
            )
            return issue

    def wait_for(self, check_id: str, timeout: float | None = None) -> Optional[CoherenceCheck]:
        return self._pending.wait(check_id, timeout=timeout)

    def get_coherence_check(self, tenant_id: str, check_id: str) -> CoherenceCheck:
        check = self._checks.get(tenant_id=tenant_id, check_id=check_id)
        if not check:
            raise NotFoundError(f"Coherence check {check_id} not found")
        return check

    def get_coherence_checks(
        self,
        tenant_id: str,
        status: CheckStatus | str | None = None,
        check_kind: CheckKind | str | None = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> List[CoherenceCheck]:
        return list(
            self._checks.list(
                tenant_id=tenant_id,
                status=require_enum(CheckStatus, status, "status") if status else None,
                check_kind=require_enum(CheckKind, check_kind, "check_kind") if check_kind else None,
                limit=max(1, int(limit)),
            )
        )

    # -------- Issues --------
    def get_coherence_issues(self, tenant_id: str, filters: IssueFilter | None = None) -> List[CoherenceIssue]:
        filters = filters or IssueFilter(limit=DEFAULT_ISSUE_LIMIT)
        return list(self._issues.find(tenant_id=tenant_id, filters=filters))

    def get_coherence_statistics(self, tenant_id: str) -> CoherenceStatistics:
        issues = self._issues.list_all(tenant_id=tenant_id)
        fixable = [i for i in issues if i.auto_fixable]
        auto_fixed = [i for i in fixable if i.status == IssueStatus.FIXED]
        resolved = [i for i in issues if i.status.is_terminal]
        return CoherenceStatistics(
            total_checks=self._checks.count(tenant_id=tenant_id),
            total_issues=len(issues),
            issues_by_type=dict(Counter(i.issue_type.value for i in issues)),
            issues_by_severity=dict(Counter(i.severity.value for i in issues)),
            auto_fix_rate=_percent(len(auto_fixed), len(fixable)),
            resolution_rate=_percent(len(resolved), len(issues)),
        )

    # -------- Cross validation --------
    def cross_validate(
        self, tenant_id: str, start, end, employee_ids: Optional[Sequence[str]] = None
    ) -> CrossValidationReport:
        day_range = DayRange.of(start, end)
        minor_hours = self._policies.get_policy(tenant_id).time_difference_tolerance / 60
        snapshot = self._load_snapshot(tenant_id, day_range.start, day_range.end, normalize_employee_ids(employee_ids))

        days: List[DayComparison] = []
        for record in snapshot.presence:
            entries = snapshot.entries_for(record.employee_id, record.date)
            presence_hours = record.effective_work_minutes / 60
            timesheet_hours = sum(e.duration_minutes for e in entries) / 60
            notes: List[str] = []

            if not entries:
                classification = "missing_data"
                difference = 0.0
                notes.append("No timesheet found for this date")
            else:
                difference = abs(presence_hours - timesheet_hours)
                if difference == 0:
                    classification = "match"
                elif difference <= minor_hours:
                    classification = "minor_difference"
                else:
                    classification = "major_difference"
                    notes.append(f"Significant time difference: {difference:.2f} hours")
                if record.status == PresenceStatus.INCOMPLETE:
                    notes.append("Incomplete presence data")
                if any(e.status == TimesheetStatus.DRAFT for e in entries):
                    notes.append("Timesheet is still in draft")

            days.append(
                DayComparison(
                    employee_id=record.employee_id,
                    date=record.date,
                    presence_hours=round(presence_hours, 2),
                    timesheet_hours=round(timesheet_hours, 2),
                    difference_hours=round(difference, 2),
                    classification=classification,
                    notes=tuple(notes),
                )
            )

        summary = Counter(d.classification for d in days)
        return CrossValidationReport(
            days=days,
            summary={
                "total_validated": len(days),
                "matches": summary["match"],
                "minor_differences": summary["minor_difference"],
                "major_differences": summary["major_difference"],
                "missing_data": summary["missing_data"],
            },
        )


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0
