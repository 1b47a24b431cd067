from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from ..core.enums import ConflictStatus, ConflictType, IssueSeverity, ResolutionStrategy, SyncDirection, SyncStatus


@dataclass(frozen=True)
class SyncConflict:
    """Pairwise inconsistency found while syncing one (employee, day)."""

    conflict_id: str
    tenant_id: str
    sync_id: str
    conflict_type: ConflictType
    employee_id: str
    date: str
    severity: IssueSeverity
    description: str
    presence_id: Optional[str] = None
    presence_minutes: int = 0
    timesheet_minutes: int = 0
    entry_ids: Sequence[str] = field(default_factory=tuple)
    presence_updated_at: Optional[datetime] = None
    timesheet_updated_at: Optional[datetime] = None
    difference_minutes: int = 0
    status: ConflictStatus = ConflictStatus.PENDING
    resolution_strategy: Optional[ResolutionStrategy] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class SyncResult:
    sync_id: str
    tenant_id: str
    direction: SyncDirection
    start: str
    end: str
    performed_by: str
    employee_ids: Optional[Sequence[str]] = None
    status: SyncStatus = SyncStatus.SUCCESS
    records_processed: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_skipped: int = 0
    records_errored: int = 0
    conflicts: List[SyncConflict] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None

    def finish_status(self) -> SyncStatus:
        if self.records_errored and self.records_errored >= self.records_processed:
            return SyncStatus.FAILED
        if self.records_errored:
            return SyncStatus.PARTIAL
        return SyncStatus.SUCCESS


@dataclass(frozen=True)
class SyncStatistics:
    total_syncs: int
    successful_syncs: int
    partial_syncs: int
    failed_syncs: int
    total_conflicts: int
    pending_conflicts: int
    resolved_conflicts: int
    last_sync_at: Optional[datetime]


@dataclass(frozen=True)
class ChangeSet:
    presence_changes: Sequence[str]
    timesheet_changes: Sequence[str]

    @property
    def has_changes(self) -> bool:
        return bool(self.presence_changes or self.timesheet_changes)
