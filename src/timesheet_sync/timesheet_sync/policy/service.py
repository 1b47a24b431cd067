from __future__ import annotations

import dataclasses
import logging
from threading import RLock
from typing import Any, Dict, Mapping

from ..common.datetime_utils import utcnow
from ..common.validators import require_enum, require_non_empty, require_non_negative
from ..core.enums import ResolutionStrategy
from ..core.exceptions import ValidationError
from .model import BreakConversionRule, ReconciliationPolicy
from .repository import PolicyRepository

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = {"tenant_id", "created_at", "updated_at", "updated_by"}
_MINUTE_FIELDS = {
    "minimum_entry_duration",
    "time_difference_tolerance",
    "auto_resolve_threshold",
    "minimum_work_duration",
    "maximum_work_duration",
}
_FLAG_FIELDS = {
    "enabled",
    "sync_enabled",
    "split_by_breaks",
    "convert_breaks",
    "require_minimum_hours",
    "allow_timesheet_without_presence",
    "allow_presence_without_timesheet",
}


class PolicyService:
    """Lazily creates tenant policies with defaults and caches them per tenant."""

    def __init__(self, policies: PolicyRepository):
        self._policies = policies
        self._cache: Dict[str, ReconciliationPolicy] = {}
        self._lock = RLock()

    def get_policy(self, tenant_id: str) -> ReconciliationPolicy:
        tenant_id = require_non_empty(tenant_id, "tenant_id")
        with self._lock:
            cached = self._cache.get(tenant_id)
            if cached:
                return cached

            policy = self._policies.get(tenant_id)
            if policy is None:
                now = utcnow()
                policy = dataclasses.replace(ReconciliationPolicy.defaults(tenant_id), created_at=now, updated_at=now)
                self._policies.save(policy)
                logger.info("Created default reconciliation policy for tenant %s", tenant_id)

            self._cache[tenant_id] = policy
            return policy

    def update_policy(self, tenant_id: str, changes: Mapping[str, Any], updated_by: str) -> ReconciliationPolicy:
        current = self.get_policy(tenant_id)
        updates = self._validate_changes(changes)
        updated = dataclasses.replace(
            current,
            **updates,
            updated_by=require_non_empty(updated_by, "updated_by"),
            updated_at=utcnow(),
        )
        if updated.minimum_work_duration > updated.maximum_work_duration:
            raise ValidationError("minimum_work_duration must be <= maximum_work_duration")

        with self._lock:
            self._policies.save(updated)
            self._cache[updated.tenant_id] = updated
        logger.info("Policy for tenant %s updated by %s: %s", tenant_id, updated_by, sorted(updates))
        return updated

    @staticmethod
    def _validate_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
        known = {f.name for f in dataclasses.fields(ReconciliationPolicy)} - _IMMUTABLE_FIELDS
        out: Dict[str, Any] = {}
        for name, value in (changes or {}).items():
            if name not in known:
                raise ValidationError(f"Unknown policy field: {name}")
            if name in _MINUTE_FIELDS:
                out[name] = int(require_non_negative(value, name))
            elif name == "minimum_daily_hours":
                out[name] = require_non_negative(value, name)
            elif name in _FLAG_FIELDS:
                if not isinstance(value, bool):
                    raise ValidationError(f"{name} must be true or false")
                out[name] = value
            elif name == "conflict_resolution":
                out[name] = require_enum(ResolutionStrategy, value, name)
            elif name == "break_conversion_rules":
                out[name] = parse_break_rules(value)
            elif name == "default_project_id":
                out[name] = (str(value).strip() or None) if value is not None else None
        return out


def parse_break_rules(raw: Any) -> Dict[str, BreakConversionRule]:
    if not isinstance(raw, Mapping):
        raise ValidationError("break_conversion_rules must be an object keyed by break category")
    rules: Dict[str, BreakConversionRule] = {}
    for category, rule in raw.items():
        if isinstance(rule, BreakConversionRule):
            rules[str(category)] = rule
            continue
        if not isinstance(rule, Mapping):
            raise ValidationError(f"Rule for break category {category!r} must be an object")
        rules[str(category)] = BreakConversionRule(
            convert_to_activity=bool(rule.get("convert_to_activity", False)),
            billable=bool(rule.get("billable", False)),
            activity_code_id=rule.get("activity_code_id"),
            description=rule.get("description"),
        )
    return rules
