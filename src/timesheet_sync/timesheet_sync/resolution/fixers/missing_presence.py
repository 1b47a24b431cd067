from __future__ import annotations

from ...coherence.model import CoherenceIssue
from ...common.datetime_utils import utcnow
from ...common.ids import new_id
from ...core.constants import SYNTHESIZED_PRESENCE_NOTE
from ...core.enums import PresenceSource, PresenceStatus
from ...core.exceptions import ValidationError
from ...presence.model import PresenceRecord
from ...presence.repository import PresenceRepository
from ...timesheets.repository import TimesheetRepository
from .base import IssueFixer


class MissingPresenceFixer(IssueFixer):
    """Synthesize a presence record from the day's timesheet total.

    One-way: an existing presence record is never touched.
    """

    def __init__(self, presence: PresenceRepository, timesheets: TimesheetRepository):
        self._presence = presence
        self._timesheets = timesheets

    def fix(self, issue: CoherenceIssue, performed_by: str) -> None:
        existing = self._presence.get_for_employee_day(
            tenant_id=issue.tenant_id, employee_id=issue.employee_id, day=issue.date
        )
        if existing:
            raise ValidationError(f"Presence {existing.presence_id} already exists for {issue.employee_id} on {issue.date}")

        entries = self._timesheets.list_entries_for_day(
            tenant_id=issue.tenant_id, employee_id=issue.employee_id, day=issue.date
        )
        if not entries:
            raise ValidationError(f"No timesheet entries left for {issue.employee_id} on {issue.date}")

        minutes = sum(e.duration_minutes for e in entries)
        now = utcnow()
        self._presence.create(
            PresenceRecord(
                presence_id=new_id(),
                tenant_id=issue.tenant_id,
                employee_id=issue.employee_id,
                date=issue.date,
                clock_in=None,
                clock_out=None,
                total_presence_minutes=minutes,
                effective_work_minutes=minutes,
                status=PresenceStatus.PRESENT,
                source=PresenceSource.SYSTEM,
                notes=SYNTHESIZED_PRESENCE_NOTE,
                created_at=now,
                updated_at=now,
            )
        )
