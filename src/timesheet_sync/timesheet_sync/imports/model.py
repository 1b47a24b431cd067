from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from ..common.datetime_utils import DayRange
from ..core.enums import ErrorSeverity, ImportErrorType, ImportKind, ImportTrigger, ImportWarningType, JobStatus
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class ImportRecordError:
    record_id: str
    employee_id: str
    date: str
    error_type: ImportErrorType
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR


@dataclass(frozen=True)
class ImportRecordWarning:
    record_id: str
    employee_id: str
    date: str
    warning_type: ImportWarningType
    message: str


@dataclass
class ImportJob:
    """Batched, resumable presence import.

    pending -> running -> completed | failed | cancelled. Terminal states are
    absorbing; progress never goes down while running.
    """

    job_id: str
    tenant_id: str
    trigger: ImportTrigger
    import_kind: ImportKind
    start: str
    end: str
    employee_ids: Optional[Sequence[str]] = None
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    total_records: int = 0
    processed_records: int = 0
    imported_records: int = 0
    skipped_records: int = 0
    error_records: int = 0
    errors: List[ImportRecordError] = field(default_factory=list)
    warnings: List[ImportRecordWarning] = field(default_factory=list)
    scheduled_by: Optional[str] = None
    cancelled_by: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def day_range(self) -> DayRange:
        return DayRange(self.start, self.end)

    def covers_scope(self, day_range: DayRange, employee_ids: Optional[Sequence[str]]) -> bool:
        """True if this job's tenant scope intersects the given one."""
        if not self.day_range.overlaps(day_range):
            return False
        if not self.employee_ids or not employee_ids:
            return True
        return bool(set(self.employee_ids) & set(employee_ids))

    # -------- Transitions --------
    def _ensure_not_terminal(self) -> None:
        if self.status.is_terminal:
            raise ValidationError(f"Import job {self.job_id} is {self.status.value}; terminal jobs are final")

    def mark_running(self, now: datetime) -> None:
        self._ensure_not_terminal()
        self.status = JobStatus.RUNNING
        self.started_at = now
        self.updated_at = now

    def record_imported(self) -> None:
        self._ensure_not_terminal()
        self.imported_records += 1

    def record_skipped(self) -> None:
        self._ensure_not_terminal()
        self.skipped_records += 1

    def record_error(self, error: ImportRecordError) -> None:
        self._ensure_not_terminal()
        self.error_records += 1
        self.errors.append(error)

    def add_warning(self, warning: ImportRecordWarning) -> None:
        self._ensure_not_terminal()
        self.warnings.append(warning)

    def advance(self, now: datetime) -> None:
        """One more source record visited."""
        self._ensure_not_terminal()
        self.processed_records += 1
        total = max(self.total_records, self.processed_records)
        progress = round(self.processed_records / total * 100)
        if progress < self.progress:
            raise ValidationError("Import progress cannot decrease")
        self.progress = progress
        self.updated_at = now

    def complete(self, now: datetime, duration_ms: int) -> None:
        self._ensure_not_terminal()
        self.status = JobStatus.COMPLETED
        self.progress = 100
        self._finish(now, duration_ms)

    def fail(self, now: datetime, duration_ms: int, error: ImportRecordError) -> None:
        self._ensure_not_terminal()
        self.errors.append(error)
        self.status = JobStatus.FAILED
        self._finish(now, duration_ms)

    def cancel(self, now: datetime, cancelled_by: str) -> None:
        self._ensure_not_terminal()
        self.status = JobStatus.CANCELLED
        self.cancelled_by = cancelled_by
        self._finish(now, None)

    def _finish(self, now: datetime, duration_ms: Optional[int]) -> None:
        self.completed_at = now
        self.updated_at = now
        self.duration_ms = duration_ms


@dataclass(frozen=True)
class ImportStatistics:
    total_jobs: int
    successful_jobs: int
    failed_jobs: int
    cancelled_jobs: int
    total_records_processed: int
    total_records_imported: int
    average_job_duration_ms: float
    jobs_by_kind: dict
