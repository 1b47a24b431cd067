from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ..core.enums import IssueStatus, ResolutionStrategy
from ..sync.model import SyncConflict


@dataclass(frozen=True)
class IssueResolution:
    status: IssueStatus
    reviewed_by: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class ConflictResolutionResult:
    conflict: SyncConflict
    strategy: ResolutionStrategy
    resolved: bool
    error: Optional[str] = None


@dataclass
class ReconcileOutcome:
    resolved: int = 0
    failed: int = 0
    deferred: int = 0
    results: List[ConflictResolutionResult] = field(default_factory=list)


@dataclass(frozen=True)
class BatchFixOutcome:
    attempted: int
    fixed: int
    failed: int
