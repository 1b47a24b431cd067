from __future__ import annotations

from ...coherence.model import CoherenceIssue
from ...common.datetime_utils import utcnow
from ...core.enums import TimesheetStatus
from ...core.exceptions import ValidationError
from ...timesheets.repository import TimesheetRepository
from .base import IssueFixer


class StatusConflictFixer(IssueFixer):
    """Bring entry statuses in line with their timesheet header."""

    def __init__(self, timesheets: TimesheetRepository):
        self._timesheets = timesheets

    def fix(self, issue: CoherenceIssue, performed_by: str) -> None:
        data = issue.timesheet_data or {}
        timesheet_id = data.get("timesheet_id")
        if not timesheet_id:
            raise ValidationError(f"Issue {issue.issue_id} carries no timesheet reference")

        status = TimesheetStatus(data.get("timesheet_status", TimesheetStatus.APPROVED.value))
        entries = self._timesheets.list_entries_for_timesheet(tenant_id=issue.tenant_id, timesheet_id=timesheet_id)
        stale = [e.entry_id for e in entries if e.status != status]
        if stale:
            self._timesheets.update_entry_statuses(
                tenant_id=issue.tenant_id, entry_ids=stale, status=status, updated_at=utcnow()
            )
