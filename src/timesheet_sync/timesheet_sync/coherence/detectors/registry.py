from __future__ import annotations

from typing import Dict, Optional, Sequence

from ...core.enums import IssueType
from .base import CoherenceDetector
from .missing_presence import MissingPresenceDetector
from .missing_timesheet import MissingTimesheetDetector
from .status_conflict import StatusConflictDetector
from .time_mismatch import TimeMismatchDetector

# data_inconsistency / validation_error are only raised outside batch detection.
DETECTORS: Dict[IssueType, Optional[CoherenceDetector]] = {
    IssueType.TIME_MISMATCH: TimeMismatchDetector(),
    IssueType.MISSING_PRESENCE: MissingPresenceDetector(),
    IssueType.MISSING_TIMESHEET: MissingTimesheetDetector(),
    IssueType.STATUS_CONFLICT: StatusConflictDetector(),
    IssueType.DATA_INCONSISTENCY: None,
    IssueType.VALIDATION_ERROR: None,
}

_missing = set(IssueType) - set(DETECTORS)
if _missing:
    raise RuntimeError(f"No detector registry entry for: {sorted(t.value for t in _missing)}")


def active_detectors() -> Sequence[CoherenceDetector]:
    return [d for d in DETECTORS.values() if d is not None]
