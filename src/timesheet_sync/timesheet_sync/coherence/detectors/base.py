from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ...common.datetime_utils import format_clock
from ...common.ids import derive_issue_id
from ...core.enums import IssueSeverity, IssueStatus, IssueType
from ...policy.model import ReconciliationPolicy
from ...presence.model import PresenceRecord
from ...timesheets.model import Timesheet, TimesheetEntry
from ..model import CoherenceIssue

DayKey = Tuple[str, str]


@dataclass
class DatasetSnapshot:
    """Both datasets for one tenant/range, indexed by (employee, day)."""

    presence: Sequence[PresenceRecord]
    entries: Sequence[TimesheetEntry]
    timesheets: Sequence[Timesheet]
    _presence_by_day: Dict[DayKey, PresenceRecord] = field(init=False, repr=False)
    _entries_by_day: Dict[DayKey, List[TimesheetEntry]] = field(init=False, repr=False)
    _entries_by_timesheet: Dict[str, List[TimesheetEntry]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._presence_by_day = {(p.employee_id, p.date): p for p in self.presence}
        by_day: Dict[DayKey, List[TimesheetEntry]] = defaultdict(list)
        by_sheet: Dict[str, List[TimesheetEntry]] = defaultdict(list)
        for e in self.entries:
            by_day[(e.employee_id, e.date)].append(e)
            by_sheet[e.timesheet_id].append(e)
        self._entries_by_day = dict(by_day)
        self._entries_by_timesheet = dict(by_sheet)

    @property
    def record_count(self) -> int:
        return len(self.presence) + len(self.entries)

    def presence_for(self, employee_id: str, day: str) -> Optional[PresenceRecord]:
        return self._presence_by_day.get((employee_id, day))

    def entries_for(self, employee_id: str, day: str) -> List[TimesheetEntry]:
        return self._entries_by_day.get((employee_id, day), [])

    def entry_days(self) -> List[DayKey]:
        return sorted(self._entries_by_day)

    def entries_of(self, timesheet_id: str) -> List[TimesheetEntry]:
        return self._entries_by_timesheet.get(timesheet_id, [])


class CoherenceDetector(ABC):
    """One detector per issue type; pure over the snapshot it is given."""

    issue_type: IssueType
    auto_fixable: bool = False

    @abstractmethod
    def detect(
        self, snapshot: DatasetSnapshot, policy: ReconciliationPolicy, *, tenant_id: str, check_id: str, now: datetime
    ) -> List[CoherenceIssue]:
        raise NotImplementedError

    def _issue(
        self,
        *,
        tenant_id: str,
        check_id: str,
        now: datetime,
        employee_id: str,
        day: str,
        severity: IssueSeverity,
        description: str,
        suggested_action: str,
        presence_data: Optional[Dict[str, Any]] = None,
        timesheet_data: Optional[Dict[str, Any]] = None,
        difference_minutes: Optional[int] = None,
    ) -> CoherenceIssue:
        return CoherenceIssue(
            issue_id=derive_issue_id(self.issue_type, employee_id, day),
            tenant_id=tenant_id,
            check_id=check_id,
            issue_type=self.issue_type,
            severity=severity,
            employee_id=employee_id,
            date=day,
            description=description,
            auto_fixable=self.auto_fixable,
            status=IssueStatus.OPEN if self.auto_fixable else IssueStatus.MANUAL_REVIEW,
            presence_data=presence_data,
            timesheet_data=timesheet_data,
            difference_minutes=difference_minutes,
            suggested_action=suggested_action,
            created_at=now,
            updated_at=now,
        )


def total_minutes(entries: Sequence[TimesheetEntry]) -> int:
    return sum(e.duration_minutes for e in entries)


def presence_snapshot(record: PresenceRecord) -> Dict[str, Any]:
    return {
        "presence_id": record.presence_id,
        "clock_in": format_clock(record.clock_in),
        "clock_out": format_clock(record.clock_out),
        "effective_work_minutes": record.effective_work_minutes,
        "status": record.status.value,
    }


def entries_snapshot(entries: Sequence[TimesheetEntry]) -> Dict[str, Any]:
    return {
        "entry_ids": [e.entry_id for e in entries],
        "timesheet_ids": sorted({e.timesheet_id for e in entries}),
        "total_minutes": total_minutes(entries),
    }
