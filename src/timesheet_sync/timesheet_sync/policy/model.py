from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from ..core.constants import SYSTEM_ACTOR
from ..core.enums import BreakCategory, ResolutionStrategy


@dataclass(frozen=True)
class BreakConversionRule:
    """How a break category is turned into a time entry (if at all)."""

    convert_to_activity: bool = False
    billable: bool = False
    activity_code_id: Optional[str] = None
    description: Optional[str] = None


def _default_break_rules() -> Dict[str, BreakConversionRule]:
    return {
        BreakCategory.LUNCH.value: BreakConversionRule(),
        BreakCategory.COFFEE.value: BreakConversionRule(),
        BreakCategory.MEETING.value: BreakConversionRule(
            convert_to_activity=True,
            billable=True,
            description="Meeting time",
        ),
    }


@dataclass(frozen=True)
class ReconciliationPolicy:
    """Per-tenant reconciliation settings; every field has a tenant default.

    Durations are minutes unless the name says hours.
    """

    tenant_id: str

    enabled: bool = True
    sync_enabled: bool = True

    split_by_breaks: bool = True
    convert_breaks: bool = False
    minimum_entry_duration: int = 15
    break_conversion_rules: Dict[str, BreakConversionRule] = field(default_factory=_default_break_rules)
    default_project_id: Optional[str] = None

    time_difference_tolerance: int = 15
    auto_resolve_threshold: int = 120
    minimum_work_duration: int = 30
    maximum_work_duration: int = 720
    require_minimum_hours: bool = False
    minimum_daily_hours: float = 7.0

    conflict_resolution: ResolutionStrategy = ResolutionStrategy.MANUAL
    allow_timesheet_without_presence: bool = False
    allow_presence_without_timesheet: bool = False

    updated_by: str = SYSTEM_ACTOR
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def defaults(cls, tenant_id: str) -> "ReconciliationPolicy":
        return cls(tenant_id=tenant_id)

    def rule_for(self, category: str) -> Optional[BreakConversionRule]:
        return self.break_conversion_rules.get(str(category))
