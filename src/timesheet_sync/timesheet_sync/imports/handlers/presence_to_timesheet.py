from __future__ import annotations

from ...conversion.converter import TimeSegmentationConverter
from ...core.enums import ImportErrorType, ImportWarningType
from ...presence.model import PresenceRecord
from ...timesheets.repository import TimesheetRepository
from ...timesheets.service import TimesheetWriter
from .base import ImportContext, ImportHandler, RecordOutcome, record_step


class PresenceToTimesheetHandler(ImportHandler):
    """Create or extend the employee's draft timesheet with the converted day."""

    def __init__(self, timesheets: TimesheetRepository, writer: TimesheetWriter, converter: TimeSegmentationConverter):
        self._timesheets = timesheets
        self._writer = writer
        self._converter = converter

    def process(self, ctx: ImportContext, record: PresenceRecord) -> RecordOutcome:
        existing = self._timesheets.list_entries_for_day(
            tenant_id=record.tenant_id, employee_id=record.employee_id, day=record.date
        )
        if existing:
            ctx.warn(record, ImportWarningType.PARTIAL_DATA, "Timesheet already has entries, skipping pre-fill")
            return RecordOutcome.SKIPPED

        with record_step(record, ImportErrorType.CONVERSION):
            result = self._converter.convert(record, ctx.policy)
        ctx.warn_conversion(record, result)

        valid = result.valid_candidates
        if not valid:
            return RecordOutcome.SKIPPED

        with record_step(record, ImportErrorType.WRITE):
            timesheet = self._writer.get_or_create_timesheet(
                tenant_id=record.tenant_id,
                employee_id=record.employee_id,
                day=record.date,
                created_by=ctx.performed_by,
            )
            if self._writable(ctx, record, timesheet) is None:
                return RecordOutcome.SKIPPED
            self._writer.add_candidates(timesheet, valid)
        return RecordOutcome.IMPORTED
