from __future__ import annotations

from enum import Enum


class PresenceStatus(str, Enum):
    """Presence day status as captured by the clocking system."""

    PRESENT = "present"
    ABSENT = "absent"
    PARTIAL = "partial"
    INCOMPLETE = "incomplete"


class PresenceSource(str, Enum):
    MANUAL = "manual"
    BADGE = "badge"
    MOBILE = "mobile"
    IMPORTED = "imported"
    SYSTEM = "system"


class BreakCategory(str, Enum):
    LUNCH = "lunch"
    COFFEE = "coffee"
    PERSONAL = "personal"
    MEETING = "meeting"
    OTHER = "other"


class TimesheetStatus(str, Enum):
    """Shared by timesheet headers and their entries."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class EntryType(str, Enum):
    WORK = "work"
    BREAK = "break"


class EntrySource(str, Enum):
    MANUAL = "manual"
    PRESENCE_IMPORT = "presence_import"
    SYNC = "sync"


class ImportTrigger(str, Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"
    TRIGGERED = "triggered"


class ImportKind(str, Enum):
    PRESENCE_TO_TIMESHEET = "presence_to_timesheet"
    PRE_FILL = "pre_fill"
    BREAK_CONVERSION = "break_conversion"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}


class ImportErrorType(str, Enum):
    VALIDATION = "validation"
    CONVERSION = "conversion"
    WRITE = "write"
    RECORD = "record"
    CONFLICT = "conflict"
    SYSTEM = "system"


class ImportWarningType(str, Enum):
    DATA_QUALITY = "data_quality"
    MISSING_INFO = "missing_info"
    ASSUMPTION = "assumption"
    PARTIAL_DATA = "partial_data"


class ErrorSeverity(str, Enum):
    ERROR = "error"
    CRITICAL = "critical"


class CheckKind(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ON_DEMAND = "on_demand"


class CheckStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class IssueType(str, Enum):
    TIME_MISMATCH = "time_mismatch"
    MISSING_PRESENCE = "missing_presence"
    MISSING_TIMESHEET = "missing_timesheet"
    STATUS_CONFLICT = "status_conflict"
    DATA_INCONSISTENCY = "data_inconsistency"
    VALIDATION_ERROR = "validation_error"


class IssueSeverity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    INFO = "info"


class IssueStatus(str, Enum):
    OPEN = "open"
    FIXED = "fixed"
    IGNORED = "ignored"
    MANUAL_REVIEW = "manual_review"

    @property
    def is_terminal(self) -> bool:
        return self in {IssueStatus.FIXED, IssueStatus.IGNORED}


class ConflictType(str, Enum):
    TIME_MISMATCH = "time_mismatch"
    DATE_MISMATCH = "date_mismatch"


class ConflictStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    IGNORED = "ignored"


class ResolutionStrategy(str, Enum):
    MANUAL = "manual"
    PRESENCE_PRIORITY = "presence_priority"
    TIMESHEET_PRIORITY = "timesheet_priority"
    LATEST_WINS = "latest_wins"


class SyncDirection(str, Enum):
    PRESENCE_TO_TIMESHEET = "presence_to_timesheet"
    TIMESHEET_TO_PRESENCE = "timesheet_to_presence"
    BIDIRECTIONAL = "bidirectional"


class SyncStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
