from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from ...conversion.model import ConversionResult
from ...core.enums import ImportErrorType, ImportWarningType, TimesheetStatus
from ...core.exceptions import RecordError
from ...policy.model import ReconciliationPolicy
from ...presence.model import PresenceRecord
from ...timesheets.model import Timesheet
from ..model import ImportJob, ImportRecordWarning


class RecordOutcome(str, Enum):
    IMPORTED = "imported"
    SKIPPED = "skipped"


@dataclass
class ImportContext:
    job: ImportJob
    policy: ReconciliationPolicy
    performed_by: str

    def warn(self, record: PresenceRecord, kind: ImportWarningType, message: str) -> None:
        self.job.add_warning(
            ImportRecordWarning(
                record_id=record.presence_id,
                employee_id=record.employee_id,
                date=record.date,
                warning_type=kind,
                message=message,
            )
        )

    def warn_conversion(self, record: PresenceRecord, result: ConversionResult) -> None:
        """Copy conversion warnings and rejected candidates onto the job."""
        for w in result.warnings:
            self.warn(record, w.kind, w.message)
        for c in result.invalid_candidates:
            self.warn(
                record,
                ImportWarningType.ASSUMPTION,
                f"Invalid entry {c.start:%H:%M}-{c.end:%H:%M}: {', '.join(c.errors)}",
            )
        for c in result.valid_candidates:
            for message in c.warnings:
                self.warn(record, ImportWarningType.DATA_QUALITY, message)


class ImportHandler(ABC):
    """Strategy Pattern: how one presence record is imported for an import kind."""

    @abstractmethod
    def process(self, ctx: ImportContext, record: PresenceRecord) -> RecordOutcome:
        raise NotImplementedError

    @staticmethod
    def _writable(ctx: ImportContext, record: PresenceRecord, timesheet: Optional[Timesheet]) -> Optional[Timesheet]:
        """Only draft timesheets take imported entries; anything else is skipped with a warning."""
        if timesheet and timesheet.status != TimesheetStatus.DRAFT:
            ctx.warn(
                record,
                ImportWarningType.PARTIAL_DATA,
                f"Timesheet {timesheet.timesheet_id} is {timesheet.status.value}, entries not imported",
            )
            return None
        return timesheet


@contextmanager
def record_step(record: PresenceRecord, error_type: ImportErrorType) -> Iterator[None]:
    """Re-raise any failure inside the block as a RecordError for this record."""
    try:
        yield
    except RecordError:
        raise
    except Exception as exc:
        raise RecordError(
            str(exc) or exc.__class__.__name__, record_id=record.presence_id, error_type=error_type.value
        ) from exc
