from datetime import datetime

from src.timesheet_sync.timesheet_sync.coherence.detectors.base import DatasetSnapshot
from src.timesheet_sync.timesheet_sync.coherence.detectors.registry import DETECTORS, active_detectors
from src.timesheet_sync.timesheet_sync.coherence.detectors.time_mismatch import TimeMismatchDetector, mismatch_severity
from src.timesheet_sync.timesheet_sync.core.enums import IssueSeverity, IssueType, PresenceStatus
from src.timesheet_sync.timesheet_sync.policy.model import ReconciliationPolicy
from tests.fakes import DAY, TENANT, make_entry, make_presence

NOW = datetime(2024, 3, 5, 6, 0)


def _detect(detector, presence=(), entries=(), timesheets=()):
    snapshot = DatasetSnapshot(presence=list(presence), entries=list(entries), timesheets=list(timesheets))
    return detector.detect(snapshot, ReconciliationPolicy.defaults(TENANT), tenant_id=TENANT, check_id="c1", now=NOW)


def test_every_issue_type_has_a_registry_entry():
    assert set(DETECTORS) == set(IssueType)
    assert {d.issue_type for d in active_detectors()} == {
        IssueType.TIME_MISMATCH,
        IssueType.MISSING_PRESENCE,
        IssueType.MISSING_TIMESHEET,
        IssueType.STATUS_CONFLICT,
    }


def test_severity_escalates_only_past_threshold():
    policy = ReconciliationPolicy.defaults(TENANT)

    assert mismatch_severity(120, policy) == IssueSeverity.MINOR
    assert mismatch_severity(121, policy) == IssueSeverity.MAJOR


def test_mismatch_sums_every_entry_of_the_day():
    issues = _detect(
        TimeMismatchDetector(),
        [make_presence("p1", effective=450)],
        [make_entry("e1", 200), make_entry("e2", 200)],
    )

    (issue,) = issues
    assert issue.difference_minutes == 50
    assert issue.severity == IssueSeverity.MINOR
    assert issue.issue_id == f"time_mismatch_E_{DAY}"
    assert issue.presence_data["presence_id"] == "p1"
    assert issue.timesheet_data["entry_ids"] == ["e1", "e2"]


def test_absent_presence_needs_no_timesheet():
    issues = _detect(DETECTORS[IssueType.MISSING_TIMESHEET], [make_presence("p1", status=PresenceStatus.ABSENT)])

    assert issues == []
