from __future__ import annotations

from ...common.datetime_utils import utcnow
from ...core.exceptions import ValidationError
from ...policy.model import ReconciliationPolicy
from ...presence.repository import PresenceRepository
from ...sync.model import SyncConflict
from ...timesheets.repository import TimesheetRepository
from .base import ConflictStrategy


class TimesheetPriorityStrategy(ConflictStrategy):
    """Rewrite presence work time to the timesheet total."""

    def __init__(self, presence: PresenceRepository, timesheets: TimesheetRepository):
        self._presence = presence
        self._timesheets = timesheets

    def resolve(self, conflict: SyncConflict, *, policy: ReconciliationPolicy, performed_by: str) -> bool:
        record = self._presence.get_for_employee_day(
            tenant_id=conflict.tenant_id, employee_id=conflict.employee_id, day=conflict.date
        )
        if not record:
            raise ValidationError(f"Presence for {conflict.employee_id} on {conflict.date} no longer exists")

        entries = self._timesheets.list_entries_for_day(
            tenant_id=conflict.tenant_id, employee_id=conflict.employee_id, day=conflict.date
        )
        minutes = sum(e.duration_minutes for e in entries)
        return self._presence.update_work_time(
            tenant_id=record.tenant_id,
            presence_id=record.presence_id,
            effective_work_minutes=minutes,
            status=record.status,
            notes=f"Adjusted to timesheet total by {performed_by}",
            updated_at=utcnow(),
        )
