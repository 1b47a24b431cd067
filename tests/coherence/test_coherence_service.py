import pytest

from src.timesheet_sync.timesheet_sync.coherence.model import IssueFilter
from src.timesheet_sync.timesheet_sync.core.constants import SYNTHESIZED_PRESENCE_NOTE
from src.timesheet_sync.timesheet_sync.core.enums import (
    CheckKind,
    CheckStatus,
    ErrorSeverity,
    IssueSeverity,
    IssueStatus,
    IssueType,
    PresenceSource,
    PresenceStatus,
    TimesheetStatus,
)
from src.timesheet_sync.timesheet_sync.core.exceptions import NotFoundError
from src.timesheet_sync.timesheet_sync.resolution.model import IssueResolution
from tests.fakes import DAY, TENANT, build_services, make_entry, make_presence, make_timesheet


def _check(svc, auto_fix=False, **kwargs):
    check = svc.coherence_service.perform_coherence_check(
        TENANT, CheckKind.ON_DEMAND, DAY, DAY, "auditor", auto_fix=auto_fix, **kwargs
    )
    return svc.coherence_service.get_coherence_check(TENANT, check.check_id)


def test_small_mismatch_is_minor_and_needs_review():
    svc = build_services([make_presence("p1")], [make_entry("e1", 430)])

    check = _check(svc)

    assert check.status == CheckStatus.COMPLETED
    assert check.records_checked == 2
    (issue,) = svc.issues_repo.by_type(IssueType.TIME_MISMATCH)
    assert issue.severity == IssueSeverity.MINOR
    assert issue.difference_minutes == 50
    assert issue.status == IssueStatus.MANUAL_REVIEW
    assert issue.auto_fixable is False
    assert check.manual_review == 1


def test_large_mismatch_is_major():
    svc = build_services([make_presence("p1")], [make_entry("e1", 330)])

    _check(svc)

    (issue,) = svc.issues_repo.by_type(IssueType.TIME_MISMATCH)
    assert issue.severity == IssueSeverity.MAJOR
    assert issue.difference_minutes == 150


def test_difference_within_tolerance_is_not_an_issue():
    svc = build_services([make_presence("p1")], [make_entry("e1", 470)])

    check = _check(svc)

    assert check.issues_found == 0
    assert svc.issues_repo.issues == {}


def test_missing_presence_is_synthesized_on_auto_fix():
    svc = build_services(entries=[make_entry("e1", 480)])

    check = _check(svc, auto_fix=True)

    assert check.auto_fixed == 1
    (issue,) = svc.issues_repo.by_type(IssueType.MISSING_PRESENCE)
    assert issue.issue_id == f"missing_presence_E_{DAY}"
    assert issue.status == IssueStatus.FIXED
    assert issue.resolved_by == "auditor"
    created = svc.presence_repo.get_for_employee_day(tenant_id=TENANT, employee_id="E", day=DAY)
    assert created.total_hours == 8
    assert created.status == PresenceStatus.PRESENT
    assert created.source == PresenceSource.SYSTEM
    assert created.notes == SYNTHESIZED_PRESENCE_NOTE


def test_missing_timesheet_and_mismatch_are_never_auto_fixed():
    svc = build_services([make_presence("p1")])

    check = _check(svc, auto_fix=True)

    assert check.issues_found == 2
    assert check.auto_fixed == 0
    assert check.manual_review == 2
    assert {i.issue_type for i in svc.issues_repo.issues.values()} == {
        IssueType.MISSING_TIMESHEET,
        IssueType.TIME_MISMATCH,
    }
    assert svc.timesheets_repo.entries == {}


def test_status_conflict_is_fixed_by_approving_entries():
    svc = build_services(
        [make_presence("p1")],
        [make_entry("e1", 240, status=TimesheetStatus.APPROVED), make_entry("e2", 240)],
        [make_timesheet("ts1", status=TimesheetStatus.APPROVED)],
    )

    check = _check(svc, auto_fix=True)

    (issue,) = svc.issues_repo.by_type(IssueType.STATUS_CONFLICT)
    assert issue.status == IssueStatus.FIXED
    assert issue.timesheet_data["conflicting_entry_ids"] == ["e2"]
    assert svc.timesheets_repo.entries["e2"].status == TimesheetStatus.APPROVED
    assert check.auto_fixed == 1


def test_rerun_keeps_issue_identity():
    svc = build_services([make_presence("p1")], [make_entry("e1", 300)])

    first = _check(svc)
    (before,) = svc.issues_repo.issues.values()
    second = _check(svc)
    (after,) = svc.issues_repo.issues.values()

    assert before.issue_id == after.issue_id
    assert after.created_at == before.created_at
    assert (before.check_id, after.check_id) == (first.check_id, second.check_id)


def test_ignored_issue_stays_ignored():
    svc = build_services([make_presence("p1")], [make_entry("e1", 300)])
    _check(svc)
    (issue,) = svc.issues_repo.issues.values()
    svc.resolution_service.resolve_issue(TENANT, issue.issue_id, IssueResolution(IssueStatus.IGNORED, "lead", "known"))

    _check(svc)

    stored = svc.issues_repo.get(tenant_id=TENANT, issue_id=issue.issue_id)
    assert stored.status == IssueStatus.IGNORED
    assert stored.resolution_notes == "known"


def test_fixed_issue_keeps_its_resolution_on_recheck():
    svc = build_services([make_presence("p1")], [make_entry("e1", 300)])
    _check(svc)
    (issue,) = svc.issues_repo.by_type(IssueType.TIME_MISMATCH)
    svc.resolution_service.resolve_issue(
        TENANT, issue.issue_id, IssueResolution(IssueStatus.FIXED, "lead", "handled offline")
    )

    check = _check(svc, auto_fix=True)

    stored = svc.issues_repo.get(tenant_id=TENANT, issue_id=issue.issue_id)
    assert stored.status == IssueStatus.FIXED
    assert (stored.resolved_by, stored.resolution_notes) == ("lead", "handled offline")
    assert stored.resolved_at is not None
    assert check.auto_fixed == 0
    assert check.manual_review == 0


def test_store_failure_marks_check_failed(monkeypatch):
    svc = build_services([make_presence("p1")])

    def boom(**kwargs):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(svc.presence_repo, "list_for_range", boom)

    check = _check(svc)

    assert check.status == CheckStatus.FAILED
    assert check.errors[0].severity == ErrorSeverity.CRITICAL
    assert "store unavailable" in check.errors[0].message
    assert check.completed_at is not None


def test_employee_filter_limits_detection():
    svc = build_services(
        [make_presence("p1", "E1"), make_presence("p2", "E2")],
        [make_entry("e1", 480, "E1"), make_entry("e2", 100, "E2")],
    )

    _check(svc, employee_ids=["E1"])

    assert svc.issues_repo.issues == {}


def test_issue_queries_and_statistics():
    svc = build_services([make_presence("p1", "E1")], [make_entry("e1", 300, "E1"), make_entry("e2", 480, "E2")])
    _check(svc, auto_fix=True)

    open_review = svc.coherence_service.get_coherence_issues(TENANT, IssueFilter(status=IssueStatus.MANUAL_REVIEW))
    stats = svc.coherence_service.get_coherence_statistics(TENANT)

    assert [i.issue_type for i in open_review] == [IssueType.TIME_MISMATCH]
    assert stats.total_checks == 1
    assert stats.total_issues == 2
    assert stats.issues_by_type == {"time_mismatch": 1, "missing_presence": 1}
    assert stats.auto_fix_rate == 100.0
    assert stats.resolution_rate == 50.0
    assert [c.check_kind for c in svc.coherence_service.get_coherence_checks(TENANT)] == [CheckKind.ON_DEMAND]


def test_unknown_check_raises_not_found():
    svc = build_services()

    with pytest.raises(NotFoundError):
        svc.coherence_service.get_coherence_check(TENANT, "nope")


def test_cross_validation_classifies_each_day():
    svc = build_services(
        [
            make_presence("p1", "E1"),
            make_presence("p2", "E2"),
            make_presence("p3", "E3"),
            make_presence("p4", "E4"),
        ],
        [
            make_entry("e1", 480, "E1", status=TimesheetStatus.APPROVED),
            make_entry("e2", 470, "E2", status=TimesheetStatus.APPROVED),
            make_entry("e3", 300, "E3"),
        ],
    )

    report = svc.coherence_service.cross_validate(TENANT, DAY, DAY)

    by_employee = {d.employee_id: d for d in report.days}
    assert by_employee["E1"].classification == "match"
    assert by_employee["E2"].classification == "minor_difference"
    assert by_employee["E3"].classification == "major_difference"
    assert "Timesheet is still in draft" in by_employee["E3"].notes
    assert by_employee["E4"].classification == "missing_data"
    assert report.summary == {
        "total_validated": 4,
        "matches": 1,
        "minor_differences": 1,
        "major_differences": 1,
        "missing_data": 1,
    }
