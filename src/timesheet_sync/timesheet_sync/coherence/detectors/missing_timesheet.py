from __future__ import annotations

from datetime import datetime
from typing import List

from ...core.enums import IssueSeverity, IssueType, PresenceStatus
from ...policy.model import ReconciliationPolicy
from ..model import CoherenceIssue
from .base import CoherenceDetector, DatasetSnapshot, presence_snapshot


class MissingTimesheetDetector(CoherenceDetector):
    """Present with hours, but nothing logged.

    Never auto-fixable: billable work records are only entered by people.
    """

    issue_type = IssueType.MISSING_TIMESHEET

    def detect(
        self, snapshot: DatasetSnapshot, policy: ReconciliationPolicy, *, tenant_id: str, check_id: str, now: datetime
    ) -> List[CoherenceIssue]:
        issues: List[CoherenceIssue] = []
        for record in snapshot.presence:
            if record.status != PresenceStatus.PRESENT or record.effective_work_minutes <= 0:
                continue
            if snapshot.entries_for(record.employee_id, record.date):
                continue
            issues.append(
                self._issue(
                    tenant_id=tenant_id,
                    check_id=check_id,
                    now=now,
                    employee_id=record.employee_id,
                    day=record.date,
                    severity=IssueSeverity.MAJOR,
                    description=f"Missing timesheet entries for {record.total_hours:.2f}h of presence",
                    suggested_action="Employee should create timesheet entries for this day",
                    presence_data=presence_snapshot(record),
                    difference_minutes=record.effective_work_minutes,
                )
            )
        return issues
