from __future__ import annotations

from typing import Dict, Optional

from ...core.enums import IssueType
from ...presence.repository import PresenceRepository
from ...timesheets.repository import TimesheetRepository
from .base import IssueFixer
from .missing_presence import MissingPresenceFixer
from .status_conflict import StatusConflictFixer


def build_fixers(presence: PresenceRepository, timesheets: TimesheetRepository) -> Dict[IssueType, Optional[IssueFixer]]:
    """Every issue type maps to a fixer, or None when it always needs a human."""
    fixers: Dict[IssueType, Optional[IssueFixer]] = {
        IssueType.TIME_MISMATCH: None,
        IssueType.MISSING_PRESENCE: MissingPresenceFixer(presence, timesheets),
        IssueType.MISSING_TIMESHEET: None,
        IssueType.STATUS_CONFLICT: StatusConflictFixer(timesheets),
        IssueType.DATA_INCONSISTENCY: None,
        IssueType.VALIDATION_ERROR: None,
    }
    missing = set(IssueType) - set(fixers)
    if missing:
        raise RuntimeError(f"No fixer entry for: {sorted(t.value for t in missing)}")
    return fixers
