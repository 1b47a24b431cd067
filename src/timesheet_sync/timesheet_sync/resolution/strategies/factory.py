from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from ...conversion.converter import TimeSegmentationConverter
from ...core.enums import ResolutionStrategy
from ...presence.repository import PresenceRepository
from ...timesheets.repository import TimesheetRepository
from ...timesheets.service import TimesheetWriter
from .base import ConflictStrategy
from .latest_wins import LatestWinsStrategy
from .manual import ManualStrategy
from .presence_priority import PresencePriorityStrategy
from .timesheet_priority import TimesheetPriorityStrategy


@dataclass
class ConflictStrategyFactory:
    """Factory Pattern: resolution strategy per configured policy value."""

    presence: PresenceRepository
    timesheets: TimesheetRepository
    converter: TimeSegmentationConverter = field(default_factory=TimeSegmentationConverter)
    _strategies: Dict[ResolutionStrategy, ConflictStrategy] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        presence_wins = PresencePriorityStrategy(
            self.presence, self.timesheets, TimesheetWriter(self.timesheets), self.converter
        )
        timesheet_wins = TimesheetPriorityStrategy(self.presence, self.timesheets)
        self._strategies = {
            ResolutionStrategy.MANUAL: ManualStrategy(),
            ResolutionStrategy.PRESENCE_PRIORITY: presence_wins,
            ResolutionStrategy.TIMESHEET_PRIORITY: timesheet_wins,
            ResolutionStrategy.LATEST_WINS: LatestWinsStrategy(presence_wins, timesheet_wins),
        }
        missing = set(ResolutionStrategy) - set(self._strategies)
        if missing:
            raise RuntimeError(f"No conflict strategy for: {sorted(s.value for s in missing)}")

    def for_strategy(self, strategy: ResolutionStrategy) -> ConflictStrategy:
        return self._strategies[strategy]
