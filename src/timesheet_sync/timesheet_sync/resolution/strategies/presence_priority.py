from __future__ import annotations

from ...conversion.converter import TimeSegmentationConverter
from ...core.enums import EntrySource, TimesheetStatus
from ...core.exceptions import ValidationError
from ...policy.model import ReconciliationPolicy
from ...presence.repository import PresenceRepository
from ...sync.model import SyncConflict
from ...timesheets.repository import TimesheetRepository
from ...timesheets.service import TimesheetWriter
from .base import ConflictStrategy

_LOCKED = {TimesheetStatus.SUBMITTED, TimesheetStatus.APPROVED}


class PresencePriorityStrategy(ConflictStrategy):
    """Regenerate the day's draft entries from the presence record."""

    def __init__(
        self,
        presence: PresenceRepository,
        timesheets: TimesheetRepository,
        writer: TimesheetWriter,
        converter: TimeSegmentationConverter,
    ):
        self._presence = presence
        self._timesheets = timesheets
        self._writer = writer
        self._converter = converter

    def resolve(self, conflict: SyncConflict, *, policy: ReconciliationPolicy, performed_by: str) -> bool:
        record = self._presence.get_for_employee_day(
            tenant_id=conflict.tenant_id, employee_id=conflict.employee_id, day=conflict.date
        )
        if not record:
            raise ValidationError(f"Presence for {conflict.employee_id} on {conflict.date} no longer exists")

        entries = self._timesheets.list_entries_for_day(
            tenant_id=conflict.tenant_id, employee_id=conflict.employee_id, day=conflict.date
        )
        if any(e.status in _LOCKED for e in entries):
            raise ValidationError("Timesheet entries already submitted or approved; cannot overwrite from presence")

        candidates = self._converter.convert(record, policy).valid_candidates
        if not candidates:
            raise ValidationError(f"Presence {record.presence_id} converts to no valid entries")

        timesheet = self._writer.get_or_create_timesheet(
            tenant_id=record.tenant_id, employee_id=record.employee_id, day=record.date, created_by=performed_by
        )
        if timesheet.status != TimesheetStatus.DRAFT:
            raise ValidationError(f"Timesheet {timesheet.timesheet_id} is {timesheet.status.value}")

        if entries:
            self._timesheets.delete_entries(tenant_id=conflict.tenant_id, entry_ids=[e.entry_id for e in entries])
        self._writer.add_candidates(timesheet, candidates, source=EntrySource.SYNC)
        return True
