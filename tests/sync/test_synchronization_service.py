import dataclasses
from datetime import datetime

import pytest

from src.timesheet_sync.timesheet_sync.core.constants import SYNTHESIZED_PRESENCE_NOTE
from src.timesheet_sync.timesheet_sync.core.enums import (
    ConflictStatus,
    ConflictType,
    EntrySource,
    IssueSeverity,
    PresenceSource,
    ResolutionStrategy,
    SyncDirection,
    SyncStatus,
    TimesheetStatus,
)
from src.timesheet_sync.timesheet_sync.core.exceptions import ValidationError
from src.timesheet_sync.timesheet_sync.policy.model import ReconciliationPolicy
from src.timesheet_sync.timesheet_sync.sync.service import detect_pair_conflicts
from tests.fakes import DAY, TENANT, at, build_services, make_entry, make_presence, make_timesheet


def _sync(svc, direction=SyncDirection.BIDIRECTIONAL, **kwargs):
    return svc.sync_service.synchronize(TENANT, direction, DAY, DAY, "sync-bot", **kwargs)


def _timed_entry(entry_id, start, end, employee_id="E2"):
    entry = make_entry(entry_id, 0, employee_id)
    return dataclasses.replace(
        entry,
        start_time=at(DAY, start),
        end_time=at(DAY, end),
        duration_minutes=int((at(DAY, end) - at(DAY, start)).total_seconds() // 60),
    )


def test_presence_to_timesheet_creates_entries():
    svc = build_services([make_presence("p1", "E1")])

    result = _sync(svc, SyncDirection.PRESENCE_TO_TIMESHEET)

    assert result.status == SyncStatus.SUCCESS
    assert (result.records_processed, result.records_created) == (1, 1)
    (entry,) = svc.timesheets_repo.for_day("E1")
    assert entry.source == EntrySource.SYNC
    assert entry.source_presence_id == "p1"
    assert svc.sync_repo.results[result.sync_id].status == SyncStatus.SUCCESS


def test_presence_without_timesheet_can_be_allowed():
    svc = build_services([make_presence("p1", "E1")], policy_changes={"allow_presence_without_timesheet": True})

    result = _sync(svc, SyncDirection.PRESENCE_TO_TIMESHEET)

    assert (result.records_created, result.records_skipped) == (0, 1)
    assert svc.timesheets_repo.entries == {}


def test_timesheet_to_presence_synthesizes_presence():
    svc = build_services(entries=[_timed_entry("e1", "08:00", "12:00"), _timed_entry("e2", "13:00", "16:30")])

    result = _sync(svc, SyncDirection.TIMESHEET_TO_PRESENCE)

    assert (result.records_processed, result.records_created) == (1, 1)
    created = svc.presence_repo.get_for_employee_day(tenant_id=TENANT, employee_id="E2", day=DAY)
    assert created.effective_work_minutes == 450
    assert (created.clock_in, created.clock_out) == (at(DAY, "08:00"), at(DAY, "16:30"))
    assert created.source == PresenceSource.SYSTEM
    assert created.notes == SYNTHESIZED_PRESENCE_NOTE


def test_timesheet_without_presence_can_be_allowed():
    svc = build_services(entries=[make_entry("e1", 480, "E2")], policy_changes={"allow_timesheet_without_presence": True})

    result = _sync(svc, SyncDirection.TIMESHEET_TO_PRESENCE)

    assert result.records_skipped == 1
    assert svc.presence_repo.records == {}


def test_bidirectional_fills_both_sides_once():
    svc = build_services([make_presence("p1", "E1")], [make_entry("e1", 480, "E2")])

    result = _sync(svc)

    assert result.status == SyncStatus.SUCCESS
    assert result.records_processed == 3
    assert result.records_created == 2
    assert result.records_skipped == 1
    assert len(svc.timesheets_repo.for_day("E1")) == 1
    assert svc.presence_repo.get_for_employee_day(tenant_id=TENANT, employee_id="E2", day=DAY) is not None


def test_manual_policy_leaves_conflict_pending():
    svc = build_services([make_presence("p1")], [make_entry("e1", 300)])

    result = _sync(svc)

    assert result.status == SyncStatus.SUCCESS
    (conflict,) = result.conflicts
    assert conflict.conflict_type == ConflictType.TIME_MISMATCH
    assert conflict.status == ConflictStatus.PENDING
    assert conflict.difference_minutes == 180
    assert conflict.severity == IssueSeverity.MAJOR
    assert [c.conflict_id for c in svc.sync_service.get_pending_conflicts(TENANT)] == [conflict.conflict_id]
    assert svc.presence_repo.records["p1"].effective_work_minutes == 480


def test_reconcile_pending_applies_requested_strategy():
    svc = build_services([make_presence("p1")], [make_entry("e1", 300)])
    _sync(svc)

    outcome = svc.sync_service.reconcile_pending(TENANT, "lead", strategy=ResolutionStrategy.TIMESHEET_PRIORITY)

    assert outcome.resolved == 1
    assert svc.sync_service.get_pending_conflicts(TENANT) == []
    assert svc.presence_repo.records["p1"].effective_work_minutes == 300
    stats = svc.sync_service.get_sync_statistics(TENANT)
    assert (stats.total_conflicts, stats.pending_conflicts, stats.resolved_conflicts) == (1, 0, 1)


def test_policy_strategy_resolves_during_sync():
    svc = build_services(
        [make_presence("p1")],
        [make_entry("e1", 300)],
        [make_timesheet("ts1")],
        policy_changes={"conflict_resolution": "presence_priority"},
    )

    result = _sync(svc, SyncDirection.PRESENCE_TO_TIMESHEET)

    assert result.records_updated == 1
    assert result.conflicts[0].status == ConflictStatus.RESOLVED
    assert [e.duration_minutes for e in svc.timesheets_repo.for_day()] == [480]


def test_some_failures_make_sync_partial():
    svc = build_services(
        [make_presence("p1", "E1"), make_presence("p2", "E2")],
        [make_entry("e1", 300, "E1", status=TimesheetStatus.SUBMITTED)],
        policy_changes={"conflict_resolution": "presence_priority"},
    )

    result = _sync(svc, SyncDirection.PRESENCE_TO_TIMESHEET)

    assert result.status == SyncStatus.PARTIAL
    assert (result.records_processed, result.records_errored, result.records_created) == (2, 1, 1)
    assert any("submitted" in e for e in result.errors)


def test_all_failures_make_sync_failed():
    svc = build_services(
        [make_presence("p1", "E1")],
        [make_entry("e1", 300, "E1", status=TimesheetStatus.APPROVED)],
        policy_changes={"conflict_resolution": "presence_priority"},
    )

    result = _sync(svc, SyncDirection.PRESENCE_TO_TIMESHEET)

    assert result.status == SyncStatus.FAILED


def test_store_failure_is_recorded(monkeypatch):
    svc = build_services([make_presence("p1")])

    def boom(**kwargs):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(svc.timesheets_repo, "list_entries_for_range", boom)

    result = _sync(svc)

    assert result.status == SyncStatus.FAILED
    assert result.errors == ["store unavailable"]
    assert svc.sync_repo.results[result.sync_id].status == SyncStatus.FAILED


def test_disabled_sync_and_bad_range_are_rejected():
    svc = build_services(policy_changes={"sync_enabled": False})

    with pytest.raises(ValidationError):
        _sync(svc)
    with pytest.raises(ValidationError):
        build_services().sync_service.synchronize(TENANT, "bidirectional", "2024-03-05", "2024-03-01", "bot")
    assert svc.sync_repo.results == {}


def test_entries_from_another_presence_are_a_date_mismatch():
    policy = ReconciliationPolicy.defaults(TENANT)
    record = make_presence("p1")
    entries = [make_entry("e1", 480, source_presence_id="p9")]

    conflicts = detect_pair_conflicts("s1", policy, record, entries, now=datetime(2024, 3, 5))

    assert [c.conflict_type for c in conflicts] == [ConflictType.DATE_MISMATCH]
    assert conflicts[0].conflict_id == "date_mismatch_p1_ts1"


def test_detect_changes_since_timestamp():
    svc = build_services(
        [make_presence("p1", updated_at=datetime(2024, 3, 4, 18))],
        [make_entry("old", 60, updated_at=datetime(2024, 3, 1)), make_entry("new", 60, updated_at=datetime(2024, 3, 5))],
    )

    changes = svc.sync_service.detect_changes(TENANT, datetime(2024, 3, 4))

    assert changes.has_changes
    assert list(changes.presence_changes) == ["p1"]
    assert list(changes.timesheet_changes) == ["new"]


def test_history_lists_latest_runs():
    svc = build_services([make_presence("p1")])
    _sync(svc, SyncDirection.PRESENCE_TO_TIMESHEET)

    history = svc.sync_service.get_sync_history(TENANT)

    assert len(history) == 1
    assert history[0].direction == SyncDirection.PRESENCE_TO_TIMESHEET
