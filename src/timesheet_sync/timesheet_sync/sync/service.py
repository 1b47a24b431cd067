from __future__ import annotations

import logging
import time
from collections import Counter, defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from ..common.datetime_utils import DayRange, utcnow
from ..common.ids import derive_conflict_id, new_id
from ..common.pagination import collect_pages
from ..common.validators import normalize_employee_ids, require_enum, require_non_empty
from ..conversion.converter import TimeSegmentationConverter
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_PAGE_SIZE, SYNTHESIZED_PRESENCE_NOTE
from ..core.enums import (
    ConflictStatus,
    ConflictType,
    EntrySource,
    IssueSeverity,
    PresenceSource,
    PresenceStatus,
    ResolutionStrategy,
    SyncDirection,
    SyncStatus,
    TimesheetStatus,
)
from ..core.exceptions import ValidationError
from ..policy.model import ReconciliationPolicy
from ..policy.service import PolicyService
from ..presence.model import PresenceRecord
from ..presence.repository import PresenceRepository
from ..resolution.model import ReconcileOutcome
from ..resolution.service import ConflictResolutionService
from ..tasks.locks import TenantLocks
from ..timesheets.model import TimesheetEntry
from ..timesheets.repository import TimesheetRepository
from ..timesheets.service import TimesheetWriter
from .model import ChangeSet, SyncConflict, SyncResult, SyncStatistics
from .repository import SyncRepository

logger = logging.getLogger(__name__)

DayKey = Tuple[str, str]

_HISTORY_SCAN_LIMIT = 10_000


class SynchronizationService:
    """Pairs presence and timesheet data by (employee, day) and reconciles them.

    Bidirectional runs do presence -> timesheet first, then re-read the
    timesheet side so entries created in pass one feed pass two.
    """

    def __init__(
        self,
        results: SyncRepository,
        presence: PresenceRepository,
        timesheets: TimesheetRepository,
        policies: PolicyService,
        resolution: ConflictResolutionService,
        *,
        converter: TimeSegmentationConverter | None = None,
        locks: TenantLocks | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self._results = results
        self._presence = presence
        self._timesheets = timesheets
        self._writer = TimesheetWriter(timesheets)
        self._policies = policies
        self._resolution = resolution
        self._converter = converter or TimeSegmentationConverter()
        self._locks = locks or TenantLocks()
        self._page_size = int(page_size)

    def synchronize(
        self,
        tenant_id: str,
        direction: SyncDirection | str,
        start,
        end,
        performed_by: str,
        employee_ids: Optional[Sequence[str]] = None,
    ) -> SyncResult:
        tenant_id = require_non_empty(tenant_id, "tenant_id")
        direction = require_enum(SyncDirection, direction, "direction")
        day_range = DayRange.of(start, end)
        policy = self._policies.get_policy(tenant_id)
        if not policy.sync_enabled:
            raise ValidationError("Synchronization is disabled for this tenant")

        result = SyncResult(
            sync_id=new_id(),
            tenant_id=tenant_id,
            direction=direction,
            start=day_range.start,
            end=day_range.end,
            performed_by=require_non_empty(performed_by, "performed_by"),
            employee_ids=normalize_employee_ids(employee_ids),
            started_at=utcnow(),
        )
        logger.info("Sync %s started for tenant %s (%s, %s..%s)", result.sync_id, tenant_id, direction.value, result.start, result.end)

        started = time.monotonic()
        with self._locks.hold(tenant_id):
            try:
                presence = self._load_presence(result)
                if direction in (SyncDirection.PRESENCE_TO_TIMESHEET, SyncDirection.BIDIRECTIONAL):
                    self._presence_to_timesheet(result, policy, presence, self._load_entries(result))
                if direction in (SyncDirection.TIMESHEET_TO_PRESENCE, SyncDirection.BIDIRECTIONAL):
                    self._timesheet_to_presence(result, policy, presence, self._load_entries(result))
                result.status = result.finish_status()
            except Exception as exc:
                logger.exception("Sync %s failed", result.sync_id)
                result.status = SyncStatus.FAILED
                result.errors.append(str(exc))
            finally:
                result.completed_at = utcnow()
                result.duration_ms = int((time.monotonic() - started) * 1000)
                self._results.save_result(result)

        logger.info(
            "Sync %s %s: processed=%s created=%s updated=%s skipped=%s errors=%s conflicts=%s",
            result.sync_id, result.status.value, result.records_processed, result.records_created,
            result.records_updated, result.records_skipped, result.records_errored, len(result.conflicts),
        )
        return result

    # -------- Loading --------
    def _load_presence(self, result: SyncResult) -> List[PresenceRecord]:
        return collect_pages(
            lambda cursor: self._presence.list_for_range(
                tenant_id=result.tenant_id,
                start=result.start,
                end=result.end,
                employee_ids=result.employee_ids,
                cursor=cursor,
                limit=self._page_size,
            )
        )

    def _load_entries(self, result: SyncResult) -> Dict[DayKey, List[TimesheetEntry]]:
        entries = collect_pages(
            lambda cursor: self._timesheets.list_entries_for_range(
                tenant_id=result.tenant_id,
                start=result.start,
                end=result.end,
                employee_ids=result.employee_ids,
                cursor=cursor,
                limit=self._page_size,
            )
        )
        by_day: Dict[DayKey, List[TimesheetEntry]] = defaultdict(list)
        for entry in entries:
            by_day[(entry.employee_id, entry.date)].append(entry)
        return dict(by_day)

    # -------- Passes --------
    def _presence_to_timesheet(
        self,
        result: SyncResult,
        policy: ReconciliationPolicy,
        presence: List[PresenceRecord],
        entries_by_day: Dict[DayKey, List[TimesheetEntry]],
    ) -> None:
        for record in presence:
            result.records_processed += 1
            try:
                entries = entries_by_day.get((record.employee_id, record.date))
                if entries:
                    self._reconcile_pair(result, policy, record, entries)
                elif policy.allow_presence_without_timesheet:
                    result.records_skipped += 1
                else:
                    self._create_entries(result, policy, record)
            except Exception as exc:
                self._record_error(result, record.presence_id, exc)

    def _timesheet_to_presence(
        self,
        result: SyncResult,
        policy: ReconciliationPolicy,
        presence: List[PresenceRecord],
        entries_by_day: Dict[DayKey, List[TimesheetEntry]],
    ) -> None:
        presence_by_day = {(p.employee_id, p.date): p for p in presence}
        for key in sorted(entries_by_day):
            result.records_processed += 1
            entries = entries_by_day[key]
            try:
                record = presence_by_day.get(key)
                if record is not None:
                    if result.direction == SyncDirection.BIDIRECTIONAL:
                        # already reconciled in the presence pass
                        result.records_skipped += 1
                    else:
                        self._reconcile_pair(result, policy, record, entries)
                elif policy.allow_timesheet_without_presence:
                    result.records_skipped += 1
                else:
                    self._create_presence(result, key, entries)
            except Exception as exc:
                self._record_error(result, f"{key[0]}/{key[1]}", exc)

    def _create_entries(self, result: SyncResult, policy: ReconciliationPolicy, record: PresenceRecord) -> None:
        conversion = self._converter.convert(record, policy)
        result.warnings.extend(f"{record.presence_id}: {w.message}" for w in conversion.warnings)
        candidates = conversion.valid_candidates
        if not candidates:
            result.records_skipped += 1
            return

        timesheet = self._writer.get_or_create_timesheet(
            tenant_id=record.tenant_id, employee_id=record.employee_id, day=record.date, created_by=result.performed_by
        )
        if timesheet.status != TimesheetStatus.DRAFT:
            result.warnings.append(f"{record.presence_id}: timesheet {timesheet.timesheet_id} is {timesheet.status.value}")
            result.records_skipped += 1
            return

        self._writer.add_candidates(timesheet, candidates, source=EntrySource.SYNC)
        result.records_created += 1

    def _create_presence(self, result: SyncResult, key: DayKey, entries: List[TimesheetEntry]) -> None:
        employee_id, day = key
        existing = self._presence.get_for_employee_day(tenant_id=result.tenant_id, employee_id=employee_id, day=day)
        if existing:
            result.records_skipped += 1
            return

        minutes = sum(e.duration_minutes for e in entries)
        starts = [e.start_time for e in entries if e.start_time]
        ends = [e.end_time for e in entries if e.end_time]
        now = utcnow()
        self._presence.create(
            PresenceRecord(
                presence_id=new_id(),
                tenant_id=result.tenant_id,
                employee_id=employee_id,
                date=day,
                clock_in=min(starts) if starts else None,
                clock_out=max(ends) if ends else None,
                total_presence_minutes=minutes,
                effective_work_minutes=minutes,
                status=PresenceStatus.PRESENT,
                source=PresenceSource.SYSTEM,
                notes=SYNTHESIZED_PRESENCE_NOTE,
                created_at=now,
                updated_at=now,
            )
        )
        result.records_created += 1

    def _reconcile_pair(
        self,
        result: SyncResult,
        policy: ReconciliationPolicy,
        record: PresenceRecord,
        entries: List[TimesheetEntry],
    ) -> None:
        conflicts = detect_pair_conflicts(result.sync_id, policy, record, entries, now=utcnow())
        if not conflicts:
            result.records_skipped += 1
            return

        outcome = self._resolution.reconcile_conflicts(result.tenant_id, conflicts, result.performed_by)
        result.conflicts.extend(r.conflict for r in outcome.results)
        if outcome.failed:
            result.records_errored += 1
            result.errors.extend(f"{r.conflict.conflict_id}: {r.error}" for r in outcome.results if r.error)
        elif outcome.resolved:
            result.records_updated += 1
        else:
            result.records_skipped += 1

    @staticmethod
    def _record_error(result: SyncResult, record_key: str, exc: Exception) -> None:
        logger.warning("Sync %s: record %s failed: %s", result.sync_id, record_key, exc)
        result.records_errored += 1
        result.errors.append(f"{record_key}: {exc}")

    # -------- Conflicts --------
    def reconcile_pending(
        self,
        tenant_id: str,
        resolved_by: str,
        conflict_ids: Optional[Sequence[str]] = None,
        strategy: ResolutionStrategy | str | None = None,
    ) -> ReconcileOutcome:
        pending = self._results.list_conflicts(
            tenant_id=tenant_id, status=ConflictStatus.PENDING, conflict_ids=conflict_ids or None
        )
        outcome = self._resolution.reconcile_conflicts(
            tenant_id, pending, require_non_empty(resolved_by, "resolved_by"), strategy=strategy
        )
        changed = [r.conflict for r in outcome.results if r.resolved]
        if changed:
            self._results.save_conflicts(changed)
        return outcome

    def get_pending_conflicts(self, tenant_id: str) -> List[SyncConflict]:
        return list(self._results.list_conflicts(tenant_id=tenant_id, status=ConflictStatus.PENDING))

    # -------- Queries --------
    def get_sync_history(self, tenant_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[SyncResult]:
        return list(self._results.list_history(tenant_id=tenant_id, limit=max(1, int(limit))))

    def get_sync_statistics(self, tenant_id: str) -> SyncStatistics:
        history = self._results.list_history(tenant_id=tenant_id, limit=_HISTORY_SCAN_LIMIT)
        by_status = Counter(r.status for r in history)
        conflicts = Counter(c.status for c in self._results.list_conflicts(tenant_id=tenant_id))
        return SyncStatistics(
            total_syncs=len(history),
            successful_syncs=by_status[SyncStatus.SUCCESS],
            partial_syncs=by_status[SyncStatus.PARTIAL],
            failed_syncs=by_status[SyncStatus.FAILED],
            total_conflicts=sum(conflicts.values()),
            pending_conflicts=conflicts[ConflictStatus.PENDING],
            resolved_conflicts=conflicts[ConflictStatus.RESOLVED],
            last_sync_at=max((r.started_at for r in history if r.started_at), default=None),
        )

    def detect_changes(
        self, tenant_id: str, since: datetime, employee_ids: Optional[Sequence[str]] = None
    ) -> ChangeSet:
        employees = normalize_employee_ids(employee_ids)
        presence = self._presence.list_changed_since(tenant_id=tenant_id, since=since, employee_ids=employees)
        entries = self._timesheets.list_entries_changed_since(tenant_id=tenant_id, since=since, employee_ids=employees)
        return ChangeSet(
            presence_changes=[p.presence_id for p in presence],
            timesheet_changes=[e.entry_id for e in entries],
        )


def detect_pair_conflicts(
    sync_id: str,
    policy: ReconciliationPolicy,
    record: PresenceRecord,
    entries: Sequence[TimesheetEntry],
    *,
    now: datetime,
) -> List[SyncConflict]:
    """Pairwise checks for one (employee, day) present on both sides."""
    conflicts: List[SyncConflict] = []
    timesheet_key = "+".join(sorted({e.timesheet_id for e in entries}))
    timesheet_minutes = sum(e.duration_minutes for e in entries)
    timesheet_updated = max((e.updated_at for e in entries if e.updated_at), default=None)
    common = dict(
        tenant_id=record.tenant_id,
        sync_id=sync_id,
        employee_id=record.employee_id,
        date=record.date,
        presence_id=record.presence_id,
        presence_minutes=record.effective_work_minutes,
        timesheet_minutes=timesheet_minutes,
        entry_ids=tuple(e.entry_id for e in entries),
        presence_updated_at=record.updated_at,
        timesheet_updated_at=timesheet_updated,
        created_at=now,
    )

    difference = abs(record.effective_work_minutes - timesheet_minutes)
    if difference > policy.time_difference_tolerance:
        conflicts.append(
            SyncConflict(
                conflict_id=derive_conflict_id(ConflictType.TIME_MISMATCH.value, record.presence_id, timesheet_key),
                conflict_type=ConflictType.TIME_MISMATCH,
                severity=IssueSeverity.MAJOR if difference > policy.auto_resolve_threshold else IssueSeverity.MINOR,
                description=(
                    f"Time difference of {difference} minutes between presence "
                    f"({record.effective_work_minutes}min) and timesheet ({timesheet_minutes}min)"
                ),
                difference_minutes=difference,
                **common,
            )
        )

    foreign = [e for e in entries if e.source_presence_id and e.source_presence_id != record.presence_id]
    if foreign:
        conflicts.append(
            SyncConflict(
                conflict_id=derive_conflict_id(ConflictType.DATE_MISMATCH.value, record.presence_id, timesheet_key),
                conflict_type=ConflictType.DATE_MISMATCH,
                severity=IssueSeverity.MAJOR,
                description=f"{len(foreign)} entries on {record.date} were generated from another day's presence",
                difference_minutes=difference,
                **common,
            )
        )
    return conflicts
