from __future__ import annotations

from ...conversion.converter import TimeSegmentationConverter
from ...core.enums import ImportErrorType, ImportWarningType
from ...presence.model import PresenceRecord
from ...timesheets.repository import TimesheetRepository
from ...timesheets.service import TimesheetWriter
from .base import ImportContext, ImportHandler, RecordOutcome, record_step


class BreakConversionHandler(ImportHandler):
    """Add convertible breaks as entries on the day's existing draft timesheet."""

    def __init__(self, timesheets: TimesheetRepository, writer: TimesheetWriter, converter: TimeSegmentationConverter):
        self._timesheets = timesheets
        self._writer = writer
        self._converter = converter

    def process(self, ctx: ImportContext, record: PresenceRecord) -> RecordOutcome:
        if not ctx.policy.convert_breaks or not record.breaks:
            return RecordOutcome.SKIPPED

        with record_step(record, ImportErrorType.CONVERSION):
            result = self._converter.convert_breaks(record, ctx.policy)
        ctx.warn_conversion(record, result)

        existing = self._timesheets.list_entries_for_day(
            tenant_id=record.tenant_id, employee_id=record.employee_id, day=record.date
        )
        converted = {e.source_break_id for e in existing if e.source_break_id}
        valid = result.valid_candidates
        fresh = [c for c in valid if c.source_break_id not in converted]
        if len(fresh) < len(valid):
            ctx.warn(record, ImportWarningType.PARTIAL_DATA, f"{len(valid) - len(fresh)} break(s) already converted")
        if not fresh:
            return RecordOutcome.SKIPPED

        timesheet = self._timesheets.find_timesheet_covering(
            tenant_id=record.tenant_id, employee_id=record.employee_id, day=record.date
        )
        if not timesheet:
            ctx.warn(record, ImportWarningType.MISSING_INFO, "No timesheet found to add converted breaks")
            return RecordOutcome.SKIPPED
        if self._writable(ctx, record, timesheet) is None:
            return RecordOutcome.SKIPPED

        with record_step(record, ImportErrorType.WRITE):
            self._writer.add_candidates(timesheet, fresh)
        return RecordOutcome.IMPORTED
