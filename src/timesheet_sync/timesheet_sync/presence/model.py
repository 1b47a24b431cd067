from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from ..common.datetime_utils import minutes_between
from ..core.enums import PresenceSource, PresenceStatus


@dataclass(frozen=True)
class Break:
    break_id: str
    start: datetime
    end: Optional[datetime] = None
    category: str = "other"
    description: Optional[str] = None

    @property
    def duration_minutes(self) -> Optional[int]:
        if self.end is None:
            return None
        return minutes_between(self.start, self.end)


@dataclass(frozen=True)
class PresenceRecord:
    """One employee's clocking for one calendar day.

    `date` is an opaque YYYY-MM-DD day key. Owned by the capture system;
    the engine only ever inserts synthesized records or rewrites work time.
    """

    presence_id: str
    tenant_id: str
    employee_id: str
    date: str
    clock_in: Optional[datetime]
    clock_out: Optional[datetime]
    breaks: Sequence[Break] = field(default_factory=tuple)
    total_presence_minutes: int = 0
    total_break_minutes: int = 0
    effective_work_minutes: int = 0
    status: PresenceStatus = PresenceStatus.PRESENT
    source: PresenceSource = PresenceSource.MANUAL
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def total_hours(self) -> float:
        return self.effective_work_minutes / 60

