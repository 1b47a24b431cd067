from __future__ import annotations

from datetime import datetime

from ...policy.model import ReconciliationPolicy
from ...sync.model import SyncConflict
from .base import ConflictStrategy


class LatestWinsStrategy(ConflictStrategy):
    """Whichever side was modified last overwrites the other (ties go to presence)."""

    def __init__(self, presence_wins: ConflictStrategy, timesheet_wins: ConflictStrategy):
        self._presence_wins = presence_wins
        self._timesheet_wins = timesheet_wins

    def resolve(self, conflict: SyncConflict, *, policy: ReconciliationPolicy, performed_by: str) -> bool:
        presence_at = conflict.presence_updated_at or datetime.min
        timesheet_at = conflict.timesheet_updated_at or datetime.min
        winner = self._presence_wins if presence_at >= timesheet_at else self._timesheet_wins
        return winner.resolve(conflict, policy=policy, performed_by=performed_by)
