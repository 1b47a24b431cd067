from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from ..conversion.converter import TimeSegmentationConverter
from ..core.enums import ImportKind
from ..timesheets.repository import TimesheetRepository
from ..timesheets.service import TimesheetWriter
from .handlers.base import ImportHandler
from .handlers.break_conversion import BreakConversionHandler
from .handlers.presence_to_timesheet import PresenceToTimesheetHandler


@dataclass
class ImportHandlerFactory:
    """Factory Pattern: one handler per import kind, built once."""

    timesheets: TimesheetRepository
    converter: TimeSegmentationConverter = field(default_factory=TimeSegmentationConverter)
    _handlers: Dict[ImportKind, ImportHandler] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        writer = TimesheetWriter(self.timesheets)
        # pre-fill is the scheduled name for the same presence import
        presence_import = PresenceToTimesheetHandler(self.timesheets, writer, self.converter)
        self._handlers = {
            ImportKind.PRESENCE_TO_TIMESHEET: presence_import,
            ImportKind.PRE_FILL: presence_import,
            ImportKind.BREAK_CONVERSION: BreakConversionHandler(self.timesheets, writer, self.converter),
        }
        missing = set(ImportKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No import handler for: {sorted(k.value for k in missing)}")

    def for_kind(self, kind: ImportKind) -> ImportHandler:
        return self._handlers[kind]
