from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import EntrySource, EntryType, TimesheetStatus


@dataclass(frozen=True)
class Timesheet:
    timesheet_id: str
    tenant_id: str
    employee_id: str
    period_start: str
    period_end: str
    status: TimesheetStatus = TimesheetStatus.DRAFT
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def covers(self, day: str) -> bool:
        return self.period_start <= day <= self.period_end


@dataclass(frozen=True)
class TimesheetEntry:
    """A unit of worked time on a timesheet.

    Entries created by the engine always carry their source presence id.
    """

    entry_id: str
    tenant_id: str
    employee_id: str
    timesheet_id: str
    date: str
    duration_minutes: int
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    entry_type: EntryType = EntryType.WORK
    project_id: Optional[str] = None
    activity_code_id: Optional[str] = None
    description: str = ""
    billable: bool = False
    status: TimesheetStatus = TimesheetStatus.DRAFT
    source: EntrySource = EntrySource.MANUAL
    source_presence_id: Optional[str] = None
    source_break_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
