from __future__ import annotations

from typing import Sequence

from ..common.datetime_utils import utcnow
from ..common.ids import new_id
from ..conversion.model import ConvertedTimeEntryCandidate
from ..core.enums import EntrySource, TimesheetStatus
from ..core.exceptions import ValidationError
from .model import Timesheet, TimesheetEntry
from .repository import TimesheetRepository


class TimesheetWriter:
    """Materializes validated candidates into timesheet entries."""

    def __init__(self, timesheets: TimesheetRepository):
        self._timesheets = timesheets

    def get_or_create_timesheet(self, *, tenant_id: str, employee_id: str, day: str, created_by: str) -> Timesheet:
        existing = self._timesheets.find_timesheet_covering(tenant_id=tenant_id, employee_id=employee_id, day=day)
        if existing:
            return existing

        now = utcnow()
        timesheet = Timesheet(
            timesheet_id=new_id(),
            tenant_id=tenant_id,
            employee_id=employee_id,
            period_start=day,
            period_end=day,
            status=TimesheetStatus.DRAFT,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self._timesheets.create_timesheet(timesheet)
        return timesheet

    def add_candidates(
        self,
        timesheet: Timesheet,
        candidates: Sequence[ConvertedTimeEntryCandidate],
        *,
        source: EntrySource = EntrySource.PRESENCE_IMPORT,
    ) -> list[TimesheetEntry]:
        invalid = [c for c in candidates if not c.is_valid]
        if invalid:
            raise ValidationError(f"{len(invalid)} invalid candidate(s) cannot be persisted")

        now = utcnow()
        entries = [
            TimesheetEntry(
                entry_id=new_id(),
                tenant_id=timesheet.tenant_id,
                employee_id=c.employee_id,
                timesheet_id=timesheet.timesheet_id,
                date=c.date,
                duration_minutes=c.duration_minutes,
                start_time=c.start,
                end_time=c.end,
                entry_type=c.entry_type,
                project_id=c.project_id,
                activity_code_id=c.activity_code_id,
                description=c.description,
                billable=c.billable,
                status=TimesheetStatus.DRAFT,
                source=source,
                source_presence_id=c.source_presence_id,
                source_break_id=c.source_break_id,
                created_at=now,
                updated_at=now,
            )
            for c in candidates
        ]
        if entries:
            self._timesheets.add_entries(entries)
        return entries
