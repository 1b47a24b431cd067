import dataclasses
from datetime import datetime

import pytest

from src.timesheet_sync.timesheet_sync.coherence.model import CoherenceIssue
from src.timesheet_sync.timesheet_sync.core.enums import (
    ConflictStatus,
    ConflictType,
    EntrySource,
    IssueSeverity,
    IssueStatus,
    IssueType,
    ResolutionStrategy,
    TimesheetStatus,
)
from src.timesheet_sync.timesheet_sync.core.exceptions import NotFoundError, ValidationError
from src.timesheet_sync.timesheet_sync.resolution.model import IssueResolution
from src.timesheet_sync.timesheet_sync.sync.model import SyncConflict
from tests.fakes import DAY, TENANT, build_services, make_entry, make_presence, make_timesheet


def _issue(issue_type=IssueType.MISSING_PRESENCE, status=IssueStatus.OPEN, auto_fixable=True, tenant_id=TENANT):
    return CoherenceIssue(
        issue_id=f"{issue_type.value}_E_{DAY}",
        tenant_id=tenant_id,
        check_id="c1",
        issue_type=issue_type,
        severity=IssueSeverity.MAJOR,
        employee_id="E",
        date=DAY,
        description="test issue",
        auto_fixable=auto_fixable,
        status=status,
    )


def _conflict(presence_at=None, timesheet_at=None, status=ConflictStatus.PENDING):
    return SyncConflict(
        conflict_id="time_mismatch_p1_ts1",
        tenant_id=TENANT,
        sync_id="s1",
        conflict_type=ConflictType.TIME_MISMATCH,
        employee_id="E",
        date=DAY,
        severity=IssueSeverity.MAJOR,
        description="presence 480 vs timesheet 300",
        presence_id="p1",
        presence_minutes=480,
        timesheet_minutes=300,
        entry_ids=("e1",),
        presence_updated_at=presence_at,
        timesheet_updated_at=timesheet_at,
        difference_minutes=180,
        status=status,
    )


def _mismatched_day(entry_status=TimesheetStatus.DRAFT):
    return build_services(
        [make_presence("p1")],
        [make_entry("e1", 300, status=entry_status)],
        [make_timesheet("ts1")],
    )


def test_resolve_issue_marks_it_ignored():
    svc = build_services()
    svc.issues_repo.save(_issue(IssueType.TIME_MISMATCH, IssueStatus.MANUAL_REVIEW, False))

    resolved = svc.resolution_service.resolve_issue(
        TENANT, f"time_mismatch_E_{DAY}", IssueResolution(IssueStatus.IGNORED, "lead", "public holiday")
    )

    assert resolved.status == IssueStatus.IGNORED
    assert resolved.resolved_by == "lead"
    assert resolved.resolved_at is not None
    assert svc.issues_repo.get(tenant_id=TENANT, issue_id=resolved.issue_id).resolution_notes == "public holiday"


def test_resolve_issue_rejects_terminal_and_unknown_issues():
    svc = build_services()
    svc.issues_repo.save(_issue(status=IssueStatus.FIXED))

    with pytest.raises(ValidationError):
        svc.resolution_service.resolve_issue(
            TENANT, f"missing_presence_E_{DAY}", IssueResolution(IssueStatus.IGNORED, "lead")
        )
    with pytest.raises(NotFoundError):
        svc.resolution_service.resolve_issue(TENANT, "nope", IssueResolution(IssueStatus.IGNORED, "lead"))
    with pytest.raises(ValidationError):
        svc.resolution_service.resolve_issue(
            TENANT, f"missing_presence_E_{DAY}", IssueResolution(IssueStatus.OPEN, "lead")
        )


def test_auto_fix_refuses_manual_issue_types():
    svc = build_services([make_presence("p1")])
    issue = _issue(IssueType.MISSING_TIMESHEET, auto_fixable=False)

    assert svc.resolution_service.can_auto_fix(issue) is False
    assert svc.resolution_service.auto_fix(TENANT, issue, "admin") is False
    with pytest.raises(ValidationError):
        svc.resolution_service.apply_fix(issue, "admin")


def test_auto_fix_other_tenant_issue_is_not_found():
    svc = build_services()

    with pytest.raises(NotFoundError):
        svc.resolution_service.auto_fix(TENANT, _issue(tenant_id="t2"), "admin")


def test_auto_fix_failure_leaves_issue_open():
    # presence already exists, so nothing may be synthesized
    svc = build_services([make_presence("p1")], [make_entry("e1", 480)])
    issue = _issue()
    svc.issues_repo.save(issue)

    assert svc.resolution_service.auto_fix(TENANT, issue, "admin") is False
    assert svc.issues_repo.get(tenant_id=TENANT, issue_id=issue.issue_id).status == IssueStatus.OPEN
    assert len(svc.presence_repo.records) == 1


def test_resolve_open_issues_counts_fixes():
    svc = build_services(entries=[make_entry("e1", 480)])
    svc.issues_repo.save(_issue())
    svc.issues_repo.save(_issue(IssueType.TIME_MISMATCH, IssueStatus.MANUAL_REVIEW, False))

    outcome = svc.resolution_service.resolve_open_issues(TENANT, "admin")

    assert (outcome.attempted, outcome.fixed, outcome.failed) == (1, 1, 0)
    assert svc.issues_repo.get(tenant_id=TENANT, issue_id=f"missing_presence_E_{DAY}").status == IssueStatus.FIXED


def test_manual_strategy_defers():
    svc = _mismatched_day()

    outcome = svc.resolution_service.reconcile_conflicts(TENANT, [_conflict()], "admin")

    assert (outcome.resolved, outcome.deferred, outcome.failed) == (0, 1, 0)
    assert outcome.results[0].conflict.status == ConflictStatus.PENDING


def test_presence_priority_regenerates_draft_entries():
    svc = _mismatched_day()

    outcome = svc.resolution_service.reconcile_conflicts(
        TENANT, [_conflict()], "admin", strategy=ResolutionStrategy.PRESENCE_PRIORITY
    )

    assert outcome.resolved == 1
    resolved = outcome.results[0].conflict
    assert resolved.status == ConflictStatus.RESOLVED
    assert resolved.resolution_strategy == ResolutionStrategy.PRESENCE_PRIORITY
    assert resolved.resolved_by == "admin"
    day = svc.timesheets_repo.for_day()
    assert [e.duration_minutes for e in day] == [480]
    assert day[0].source == EntrySource.SYNC
    assert day[0].timesheet_id == "ts1"


def test_presence_priority_never_overwrites_submitted_entries():
    svc = _mismatched_day(TimesheetStatus.SUBMITTED)

    outcome = svc.resolution_service.reconcile_conflicts(
        TENANT, [_conflict()], "admin", strategy="presence_priority"
    )

    assert outcome.failed == 1
    assert "submitted" in outcome.results[0].error
    assert [e.entry_id for e in svc.timesheets_repo.for_day()] == ["e1"]


def test_timesheet_priority_rewrites_presence_minutes():
    svc = _mismatched_day()

    outcome = svc.resolution_service.reconcile_conflicts(
        TENANT, [_conflict()], "admin", strategy=ResolutionStrategy.TIMESHEET_PRIORITY
    )

    assert outcome.resolved == 1
    record = svc.presence_repo.records["p1"]
    assert record.effective_work_minutes == 300
    assert record.notes == "Adjusted to timesheet total by admin"


def test_latest_wins_follows_most_recent_side():
    svc = _mismatched_day()
    newer_timesheet = _conflict(presence_at=datetime(2024, 3, 4, 18), timesheet_at=datetime(2024, 3, 5, 9))

    svc.resolution_service.reconcile_conflicts(TENANT, [newer_timesheet], "admin", strategy="latest_wins")

    assert svc.presence_repo.records["p1"].effective_work_minutes == 300
    assert [e.entry_id for e in svc.timesheets_repo.for_day()] == ["e1"]


def test_latest_wins_tie_goes_to_presence():
    svc = _mismatched_day()
    same_time = datetime(2024, 3, 4, 18)

    svc.resolution_service.reconcile_conflicts(
        TENANT, [_conflict(same_time, same_time)], "admin", strategy="latest_wins"
    )

    assert [e.duration_minutes for e in svc.timesheets_repo.for_day()] == [480]


def test_resolved_and_foreign_conflicts_are_ignored():
    svc = _mismatched_day()
    foreign = dataclasses.replace(_conflict(), tenant_id="t2")

    outcome = svc.resolution_service.reconcile_conflicts(
        TENANT,
        [_conflict(status=ConflictStatus.RESOLVED), foreign],
        "admin",
        strategy=ResolutionStrategy.TIMESHEET_PRIORITY,
    )

    assert outcome.results == []
    assert svc.presence_repo.records["p1"].effective_work_minutes == 480
