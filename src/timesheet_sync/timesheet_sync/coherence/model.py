from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..core.enums import CheckKind, CheckStatus, IssueSeverity, IssueStatus, IssueType
from ..imports.model import ImportRecordError


@dataclass
class CoherenceCheck:
    check_id: str
    tenant_id: str
    check_kind: CheckKind
    start: str
    end: str
    performed_by: str
    employee_ids: Optional[Sequence[str]] = None
    auto_fix: bool = False
    status: CheckStatus = CheckStatus.RUNNING
    records_checked: int = 0
    issues_found: int = 0
    auto_fixed: int = 0
    manual_review: int = 0
    errors: List[ImportRecordError] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None


@dataclass(frozen=True)
class CoherenceIssue:
    """One detected inconsistency for an employee/day.

    `issue_id` is derived from (type, employee, day) so re-detection over the
    same data lands on the same row.
    """

    issue_id: str
    tenant_id: str
    check_id: str
    issue_type: IssueType
    severity: IssueSeverity
    employee_id: str
    date: str
    description: str
    auto_fixable: bool
    status: IssueStatus
    presence_data: Optional[Dict[str, Any]] = None
    timesheet_data: Optional[Dict[str, Any]] = None
    difference_minutes: Optional[int] = None
    suggested_action: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class IssueFilter:
    check_id: Optional[str] = None
    issue_type: Optional[IssueType] = None
    severity: Optional[IssueSeverity] = None
    status: Optional[IssueStatus] = None
    employee_id: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    limit: int = 100


@dataclass(frozen=True)
class CoherenceStatistics:
    total_checks: int
    total_issues: int
    issues_by_type: Dict[str, int]
    issues_by_severity: Dict[str, int]
    auto_fix_rate: float
    resolution_rate: float


@dataclass(frozen=True)
class DayComparison:
    employee_id: str
    date: str
    presence_hours: float
    timesheet_hours: float
    difference_hours: float
    classification: str
    notes: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class CrossValidationReport:
    days: Sequence[DayComparison]
    summary: Dict[str, int]
