from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import EntryType, ImportWarningType


@dataclass(frozen=True)
class ConversionWarning:
    kind: ImportWarningType
    message: str


@dataclass(frozen=True)
class ConvertedTimeEntryCandidate:
    """Ephemeral conversion output, never persisted as-is.

    Carries provenance back to its presence record (and break, when the
    candidate comes from one).
    """

    employee_id: str
    date: str
    start: datetime
    end: datetime
    duration_minutes: int
    entry_type: EntryType
    source_presence_id: str
    source_break_id: Optional[str] = None
    project_id: Optional[str] = None
    activity_code_id: Optional[str] = None
    description: str = ""
    billable: bool = False
    errors: Sequence[str] = field(default_factory=tuple)
    warnings: Sequence[str] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class ConversionResult:
    candidates: Sequence[ConvertedTimeEntryCandidate] = field(default_factory=tuple)
    warnings: Sequence[ConversionWarning] = field(default_factory=tuple)

    @property
    def valid_candidates(self) -> list[ConvertedTimeEntryCandidate]:
        return [c for c in self.candidates if c.is_valid]

    @property
    def invalid_candidates(self) -> list[ConvertedTimeEntryCandidate]:
        return [c for c in self.candidates if not c.is_valid]

    @property
    def total_minutes(self) -> int:
        return sum(c.duration_minutes for c in self.valid_candidates)
