from __future__ import annotations

from datetime import datetime
from typing import List

from ...core.enums import IssueSeverity, IssueType
from ...policy.model import ReconciliationPolicy
from ..model import CoherenceIssue
from .base import CoherenceDetector, DatasetSnapshot, entries_snapshot, total_minutes


class MissingPresenceDetector(CoherenceDetector):
    """Timesheet work logged on a day with no presence record."""

    issue_type = IssueType.MISSING_PRESENCE
    auto_fixable = True

    def detect(
        self, snapshot: DatasetSnapshot, policy: ReconciliationPolicy, *, tenant_id: str, check_id: str, now: datetime
    ) -> List[CoherenceIssue]:
        issues: List[CoherenceIssue] = []
        for employee_id, day in snapshot.entry_days():
            if snapshot.presence_for(employee_id, day):
                continue
            entries = snapshot.entries_for(employee_id, day)
            minutes = total_minutes(entries)
            issues.append(
                self._issue(
                    tenant_id=tenant_id,
                    check_id=check_id,
                    now=now,
                    employee_id=employee_id,
                    day=day,
                    severity=IssueSeverity.MAJOR,
                    description=f"Missing presence entry for {minutes / 60:.2f}h of timesheet entries",
                    suggested_action="Create presence entry based on timesheet data",
                    timesheet_data=entries_snapshot(entries),
                    difference_minutes=minutes,
                )
            )
        return issues
