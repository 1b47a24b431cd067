from __future__ import annotations

from datetime import datetime
from typing import List

from ...core.enums import IssueSeverity, IssueType, TimesheetStatus
from ...policy.model import ReconciliationPolicy
from ..model import CoherenceIssue
from .base import CoherenceDetector, DatasetSnapshot


class StatusConflictDetector(CoherenceDetector):
    """Approved timesheet still holding entries that are not approved."""

    issue_type = IssueType.STATUS_CONFLICT
    auto_fixable = True

    def detect(
        self, snapshot: DatasetSnapshot, policy: ReconciliationPolicy, *, tenant_id: str, check_id: str, now: datetime
    ) -> List[CoherenceIssue]:
        issues: List[CoherenceIssue] = []
        for timesheet in snapshot.timesheets:
            if timesheet.status != TimesheetStatus.APPROVED:
                continue
            conflicting = [e for e in snapshot.entries_of(timesheet.timesheet_id) if e.status != timesheet.status]
            if not conflicting:
                continue
            issues.append(
                self._issue(
                    tenant_id=tenant_id,
                    check_id=check_id,
                    now=now,
                    employee_id=timesheet.employee_id,
                    day=timesheet.period_start,
                    severity=IssueSeverity.MAJOR,
                    description=f"Timesheet is approved but {len(conflicting)} entries are not approved",
                    suggested_action="Update entry statuses to match timesheet status",
                    timesheet_data={
                        "timesheet_id": timesheet.timesheet_id,
                        "timesheet_status": timesheet.status.value,
                        "conflicting_entry_ids": [e.entry_id for e in conflicting],
                    },
                )
            )
        return issues
