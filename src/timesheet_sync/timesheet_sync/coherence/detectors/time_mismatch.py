from __future__ import annotations

from datetime import datetime
from typing import List

from ...core.enums import IssueSeverity, IssueType
from ...policy.model import ReconciliationPolicy
from ..model import CoherenceIssue
from .base import CoherenceDetector, DatasetSnapshot, entries_snapshot, presence_snapshot, total_minutes


def mismatch_severity(difference_minutes: int, policy: ReconciliationPolicy) -> IssueSeverity:
    return IssueSeverity.MAJOR if difference_minutes > policy.auto_resolve_threshold else IssueSeverity.MINOR


class TimeMismatchDetector(CoherenceDetector):
    issue_type = IssueType.TIME_MISMATCH

    def detect(
        self, snapshot: DatasetSnapshot, policy: ReconciliationPolicy, *, tenant_id: str, check_id: str, now: datetime
    ) -> List[CoherenceIssue]:
        issues: List[CoherenceIssue] = []
        for record in snapshot.presence:
            entries = snapshot.entries_for(record.employee_id, record.date)
            timesheet_minutes = total_minutes(entries)
            difference = abs(record.effective_work_minutes - timesheet_minutes)
            if difference <= policy.time_difference_tolerance:
                continue

            issues.append(
                self._issue(
                    tenant_id=tenant_id,
                    check_id=check_id,
                    now=now,
                    employee_id=record.employee_id,
                    day=record.date,
                    severity=mismatch_severity(difference, policy),
                    description=(
                        f"Time mismatch: presence {record.effective_work_minutes / 60:.2f}h "
                        f"vs timesheet {timesheet_minutes / 60:.2f}h"
                    ),
                    suggested_action="Review and align presence and timesheet entries",
                    presence_data=presence_snapshot(record),
                    timesheet_data=entries_snapshot(entries),
                    difference_minutes=difference,
                )
            )
        return issues
