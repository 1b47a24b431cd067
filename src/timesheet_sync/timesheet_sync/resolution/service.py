from __future__ import annotations

import dataclasses
import logging
from typing import Dict, Optional, Sequence

from ..coherence.model import CoherenceIssue, IssueFilter
from ..coherence.repository import CoherenceIssueRepository
from ..common.datetime_utils import utcnow
from ..common.validators import require_enum, require_non_empty
from ..core.enums import ConflictStatus, IssueStatus, IssueType, ResolutionStrategy
from ..core.exceptions import DomainError, NotFoundError, ValidationError
from ..policy.service import PolicyService
from ..presence.repository import PresenceRepository
from ..sync.model import SyncConflict
from ..tasks.locks import TenantLocks
from ..timesheets.repository import TimesheetRepository
from .fixers.base import IssueFixer
from .fixers.registry import build_fixers
from .model import BatchFixOutcome, ConflictResolutionResult, IssueResolution, ReconcileOutcome
from .strategies.factory import ConflictStrategyFactory

logger = logging.getLogger(__name__)

_MAX_BATCH_ISSUES = 10_000


class ConflictResolutionService:
    """Applies automated fixes to issues and policy strategies to sync conflicts."""

    def __init__(
        self,
        issues: CoherenceIssueRepository,
        presence: PresenceRepository,
        timesheets: TimesheetRepository,
        policies: PolicyService,
        *,
        strategies: ConflictStrategyFactory | None = None,
        locks: TenantLocks | None = None,
    ):
        self._issues = issues
        self._policies = policies
        self._fixers: Dict[IssueType, Optional[IssueFixer]] = build_fixers(presence, timesheets)
        self._strategies = strategies or ConflictStrategyFactory(presence, timesheets)
        self._locks = locks or TenantLocks()

    # -------- Issues --------
    def can_auto_fix(self, issue: CoherenceIssue) -> bool:
        return issue.auto_fixable and self._fixers[issue.issue_type] is not None

    def apply_fix(self, issue: CoherenceIssue, performed_by: str) -> CoherenceIssue:
        """Run the issue's fixer and return it marked fixed (not persisted)."""
        if issue.status.is_terminal:
            raise ValidationError(f"Issue {issue.issue_id} is already {issue.status.value}")
        fixer = self._fixers[issue.issue_type]
        if not issue.auto_fixable or fixer is None:
            raise ValidationError(f"Issue type {issue.issue_type.value} requires manual review")

        fixer.fix(issue, performed_by)
        now = utcnow()
        return dataclasses.replace(
            issue,
            status=IssueStatus.FIXED,
            resolved_by=performed_by,
            resolved_at=now,
            resolution_notes="Auto-fixed",
            updated_at=now,
        )

    def auto_fix(self, tenant_id: str, issue: CoherenceIssue, performed_by: str) -> bool:
        performed_by = require_non_empty(performed_by, "performed_by")
        if issue.tenant_id != tenant_id:
            raise NotFoundError(f"Issue {issue.issue_id} not found")
        if not self.can_auto_fix(issue):
            return False

        with self._locks.hold(tenant_id):
            try:
                fixed = self.apply_fix(issue, performed_by)
            except DomainError as exc:
                logger.warning("Auto-fix of issue %s failed: %s", issue.issue_id, exc)
                return False
            self._issues.save(fixed)
        logger.info("Issue %s auto-fixed by %s", issue.issue_id, performed_by)
        return True

    def resolve_issue(self, tenant_id: str, issue_id: str, resolution: IssueResolution) -> CoherenceIssue:
        status = require_enum(IssueStatus, resolution.status, "status")
        if not status.is_terminal:
            raise ValidationError("A resolution must move the issue to fixed or ignored")
        reviewed_by = require_non_empty(resolution.reviewed_by, "reviewed_by")

        issue = self._issues.get(tenant_id=tenant_id, issue_id=issue_id)
        if not issue:
            raise NotFoundError(f"Issue {issue_id} not found")
        if issue.status.is_terminal:
            raise ValidationError(f"Issue {issue_id} is already {issue.status.value}")

        now = utcnow()
        resolved = dataclasses.replace(
            issue,
            status=status,
            resolved_by=reviewed_by,
            resolved_at=now,
            resolution_notes=resolution.notes,
            updated_at=now,
        )
        self._issues.save(resolved)
        logger.info("Issue %s marked %s by %s", issue_id, status.value, reviewed_by)
        return resolved

    def resolve_open_issues(self, tenant_id: str, performed_by: str, check_id: Optional[str] = None) -> BatchFixOutcome:
        performed_by = require_non_empty(performed_by, "performed_by")
        open_issues = self._issues.find(
            tenant_id=tenant_id,
            filters=IssueFilter(check_id=check_id, status=IssueStatus.OPEN, limit=_MAX_BATCH_ISSUES),
        )
        attempted = fixed = 0
        for issue in open_issues:
            if not self.can_auto_fix(issue):
                continue
            attempted += 1
            if self.auto_fix(tenant_id, issue, performed_by):
                fixed += 1
        logger.info("Batch auto-fix for tenant %s: %s/%s fixed", tenant_id, fixed, attempted)
        return BatchFixOutcome(attempted=attempted, fixed=fixed, failed=attempted - fixed)

    # -------- Sync conflicts --------
    def reconcile_conflicts(
        self,
        tenant_id: str,
        conflicts: Sequence[SyncConflict],
        resolved_by: str,
        *,
        strategy: ResolutionStrategy | str | None = None,
    ) -> ReconcileOutcome:
        policy = self._policies.get_policy(tenant_id)
        chosen = require_enum(ResolutionStrategy, strategy, "strategy") if strategy else policy.conflict_resolution
        handler = self._strategies.for_strategy(chosen)
        outcome = ReconcileOutcome()

        with self._locks.hold(tenant_id):
            for conflict in conflicts:
                if conflict.tenant_id != tenant_id or conflict.status != ConflictStatus.PENDING:
                    continue
                try:
                    resolved = handler.resolve(conflict, policy=policy, performed_by=resolved_by)
                except Exception as exc:
                    logger.warning("Conflict %s not resolved with %s: %s", conflict.conflict_id, chosen.value, exc)
                    outcome.failed += 1
                    outcome.results.append(ConflictResolutionResult(conflict, chosen, False, str(exc)))
                    continue

                if not resolved:
                    outcome.deferred += 1
                    outcome.results.append(ConflictResolutionResult(conflict, chosen, False))
                    continue

                outcome.resolved += 1
                outcome.results.append(
                    ConflictResolutionResult(
                        dataclasses.replace(
                            conflict,
                            status=ConflictStatus.RESOLVED,
                            resolution_strategy=chosen,
                            resolved_by=resolved_by,
                            resolved_at=utcnow(),
                        ),
                        chosen,
                        True,
                    )
                )
        return outcome
