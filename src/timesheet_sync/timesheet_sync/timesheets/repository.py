from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..common.pagination import Page
from ..core.enums import TimesheetStatus
from .model import Timesheet, TimesheetEntry


class TimesheetRepository(Protocol):
    # -------- Entries --------
    def list_entries_for_range(
        self,
        *,
        tenant_id: str,
        start: str,
        end: str,
        employee_ids: Optional[Sequence[str]] = None,
        cursor: Optional[str] = None,
        limit: int = 500,
    ) -> Page[TimesheetEntry]:
        raise NotImplementedError

    def list_entries_for_day(self, *, tenant_id: str, employee_id: str, day: str) -> Sequence[TimesheetEntry]:
        raise NotImplementedError

    def list_entries_for_timesheet(self, *, tenant_id: str, timesheet_id: str) -> Sequence[TimesheetEntry]:
        raise NotImplementedError

    def add_entries(self, entries: Sequence[TimesheetEntry]) -> list[str]:
        """Batched insert; all entries in one commit."""

        raise NotImplementedError

    def update_entry_statuses(
        self,
        *,
        tenant_id: str,
        entry_ids: Sequence[str],
        status: TimesheetStatus,
        updated_at: datetime,
    ) -> int:
        raise NotImplementedError

    def delete_entries(self, *, tenant_id: str, entry_ids: Sequence[str]) -> int:
        raise NotImplementedError

    def list_entries_changed_since(
        self,
        *,
        tenant_id: str,
        since: datetime,
        employee_ids: Optional[Sequence[str]] = None,
    ) -> Sequence[TimesheetEntry]:
        raise NotImplementedError

    # -------- Timesheet headers --------
    def list_timesheets_for_range(
        self,
        *,
        tenant_id: str,
        start: str,
        end: str,
        employee_ids: Optional[Sequence[str]] = None,
        status: Optional[TimesheetStatus] = None,
        cursor: Optional[str] = None,
        limit: int = 500,
    ) -> Page[Timesheet]:
        """Timesheets whose whole period lies inside [start, end]."""

        raise NotImplementedError

    def find_timesheet_covering(self, *, tenant_id: str, employee_id: str, day: str) -> Optional[Timesheet]:
        raise NotImplementedError

    def create_timesheet(self, timesheet: Timesheet) -> str:
        raise NotImplementedError
