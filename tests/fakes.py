"""In-memory gateways and builders shared by the service tests."""

from __future__ import annotations

import copy
import dataclasses
from datetime import datetime
from types import SimpleNamespace
from typing import Dict, List, Optional, Sequence, Tuple

from src.timesheet_sync.timesheet_sync.coherence.model import CoherenceCheck, CoherenceIssue, IssueFilter
from src.timesheet_sync.timesheet_sync.coherence.service import CoherenceService
from src.timesheet_sync.timesheet_sync.common.pagination import Page
from src.timesheet_sync.timesheet_sync.conversion.converter import TimeSegmentationConverter
from src.timesheet_sync.timesheet_sync.core.enums import (
    ConflictStatus,
    EntrySource,
    EntryType,
    PresenceStatus,
    TimesheetStatus,
)
from src.timesheet_sync.timesheet_sync.imports.factory import ImportHandlerFactory
from src.timesheet_sync.timesheet_sync.imports.model import ImportJob
from src.timesheet_sync.timesheet_sync.imports.service import ImportJobService
from src.timesheet_sync.timesheet_sync.policy.model import ReconciliationPolicy
from src.timesheet_sync.timesheet_sync.policy.service import PolicyService
from src.timesheet_sync.timesheet_sync.presence.model import Break, PresenceRecord
from src.timesheet_sync.timesheet_sync.resolution.service import ConflictResolutionService
from src.timesheet_sync.timesheet_sync.sync.model import SyncConflict, SyncResult
from src.timesheet_sync.timesheet_sync.sync.service import SynchronizationService
from src.timesheet_sync.timesheet_sync.tasks.locks import TenantLocks
from src.timesheet_sync.timesheet_sync.tasks.runner import InlineRunner
from src.timesheet_sync.timesheet_sync.timesheets.model import Timesheet, TimesheetEntry

TENANT = "t1"
DAY = "2024-03-04"


def at(day: str, clock: str) -> datetime:
    return datetime.strptime(f"{day} {clock}", "%Y-%m-%d %H:%M")


def make_break(break_id: str, start: str, end: Optional[str], category: str = "lunch", day: str = DAY) -> Break:
    return Break(break_id=break_id, start=at(day, start), end=at(day, end) if end else None, category=category)


def make_presence(
    presence_id: str,
    employee_id: str = "E",
    day: str = DAY,
    clock_in: Optional[str] = "09:00",
    clock_out: Optional[str] = "17:00",
    breaks: Sequence[Break] = (),
    *,
    effective: Optional[int] = None,
    status: PresenceStatus = PresenceStatus.PRESENT,
    tenant_id: str = TENANT,
    updated_at: Optional[datetime] = None,
) -> PresenceRecord:
    start = at(day, clock_in) if clock_in else None
    end = at(day, clock_out) if clock_out else None
    presence = int((end - start).total_seconds() // 60) if start and end and end > start else 0
    break_minutes = sum(max(b.duration_minutes or 0, 0) for b in breaks) if presence else 0
    return PresenceRecord(
        presence_id=presence_id,
        tenant_id=tenant_id,
        employee_id=employee_id,
        date=day,
        clock_in=start,
        clock_out=end,
        breaks=tuple(breaks),
        total_presence_minutes=presence,
        total_break_minutes=break_minutes,
        effective_work_minutes=max(presence - break_minutes, 0) if effective is None else effective,
        status=status,
        created_at=updated_at or datetime(2024, 3, 4, 18, 0),
        updated_at=updated_at or datetime(2024, 3, 4, 18, 0),
    )


def make_timesheet(
    timesheet_id: str,
    employee_id: str = "E",
    start: str = DAY,
    end: str = DAY,
    status: TimesheetStatus = TimesheetStatus.DRAFT,
    tenant_id: str = TENANT,
) -> Timesheet:
    return Timesheet(
        timesheet_id=timesheet_id,
        tenant_id=tenant_id,
        employee_id=employee_id,
        period_start=start,
        period_end=end,
        status=status,
        created_by="tester",
        created_at=datetime(2024, 3, 1, 8, 0),
        updated_at=datetime(2024, 3, 1, 8, 0),
    )


def make_entry(
    entry_id: str,
    minutes: int,
    employee_id: str = "E",
    day: str = DAY,
    timesheet_id: str = "ts1",
    *,
    status: TimesheetStatus = TimesheetStatus.DRAFT,
    source_presence_id: Optional[str] = None,
    updated_at: Optional[datetime] = None,
    tenant_id: str = TENANT,
) -> TimesheetEntry:
    return TimesheetEntry(
        entry_id=entry_id,
        tenant_id=tenant_id,
        employee_id=employee_id,
        timesheet_id=timesheet_id,
        date=day,
        duration_minutes=minutes,
        entry_type=EntryType.WORK,
        description="logged",
        status=status,
        source=EntrySource.MANUAL,
        source_presence_id=source_presence_id,
        created_at=updated_at or datetime(2024, 3, 4, 18, 0),
        updated_at=updated_at or datetime(2024, 3, 4, 18, 0),
    )


def _page(items: List, key: str, cursor: Optional[str], limit: int) -> Page:
    items = sorted(items, key=lambda i: getattr(i, key))
    if cursor:
        items = [i for i in items if getattr(i, key) > cursor]
    chunk = items[:limit]
    next_cursor = getattr(chunk[-1], key) if len(items) > limit and chunk else None
    return Page(items=tuple(chunk), next_cursor=next_cursor)


def _in_scope(item, tenant_id: str, employee_ids: Optional[Sequence[str]]) -> bool:
    return item.tenant_id == tenant_id and (not employee_ids or item.employee_id in employee_ids)


class FakePolicyRepo:
    def __init__(self):
        self.policies: Dict[str, ReconciliationPolicy] = {}
        self.saves = 0

    def get(self, tenant_id):
        return self.policies.get(tenant_id)

    def save(self, policy):
        self.saves += 1
        self.policies[policy.tenant_id] = policy


class FakePresenceRepo:
    def __init__(self, records: Sequence[PresenceRecord] = ()):
        self.records: Dict[str, PresenceRecord] = {r.presence_id: r for r in records}

    def list_for_range(self, *, tenant_id, start, end, employee_ids=None, cursor=None, limit=500):
        matching = [
            r for r in self.records.values() if _in_scope(r, tenant_id, employee_ids) and start <= r.date <= end
        ]
        return _page(matching, "presence_id", cursor, limit)

    def get_for_employee_day(self, *, tenant_id, employee_id, day):
        for r in self.records.values():
            if r.tenant_id == tenant_id and r.employee_id == employee_id and r.date == day:
                return r
        return None

    def create(self, record):
        self.records[record.presence_id] = record
        return record.presence_id

    def update_work_time(self, *, tenant_id, presence_id, effective_work_minutes, status, notes, updated_at):
        record = self.records.get(presence_id)
        if not record or record.tenant_id != tenant_id:
            return False
        self.records[presence_id] = dataclasses.replace(
            record, effective_work_minutes=effective_work_minutes, status=status, notes=notes, updated_at=updated_at
        )
        return True

    def list_changed_since(self, *, tenant_id, since, employee_ids=None):
        return [
            r for r in self.records.values()
            if _in_scope(r, tenant_id, employee_ids) and r.updated_at and r.updated_at > since
        ]


class FakeTimesheetRepo:
    def __init__(self, timesheets: Sequence[Timesheet] = (), entries: Sequence[TimesheetEntry] = ()):
        self.timesheets: Dict[str, Timesheet] = {t.timesheet_id: t for t in timesheets}
        self.entries: Dict[str, TimesheetEntry] = {e.entry_id: e for e in entries}
        self.add_calls = 0

    def list_entries_for_range(self, *, tenant_id, start, end, employee_ids=None, cursor=None, limit=500):
        matching = [
            e for e in self.entries.values() if _in_scope(e, tenant_id, employee_ids) and start <= e.date <= end
        ]
        return _page(matching, "entry_id", cursor, limit)

    def list_entries_for_day(self, *, tenant_id, employee_id, day):
        return [
            e for e in self.entries.values()
            if e.tenant_id == tenant_id and e.employee_id == employee_id and e.date == day
        ]

    def list_entries_for_timesheet(self, *, tenant_id, timesheet_id):
        return [e for e in self.entries.values() if e.tenant_id == tenant_id and e.timesheet_id == timesheet_id]

    def add_entries(self, entries):
        self.add_calls += 1
        for e in entries:
            self.entries[e.entry_id] = e
        return [e.entry_id for e in entries]

    def update_entry_statuses(self, *, tenant_id, entry_ids, status, updated_at):
        count = 0
        for entry_id in entry_ids:
            e = self.entries.get(entry_id)
            if e and e.tenant_id == tenant_id:
                self.entries[entry_id] = dataclasses.replace(e, status=status, updated_at=updated_at)
                count += 1
        return count

    def delete_entries(self, *, tenant_id, entry_ids):
        count = 0
        for entry_id in entry_ids:
            e = self.entries.get(entry_id)
            if e and e.tenant_id == tenant_id:
                del self.entries[entry_id]
                count += 1
        return count

    def list_entries_changed_since(self, *, tenant_id, since, employee_ids=None):
        return [
            e for e in self.entries.values()
            if _in_scope(e, tenant_id, employee_ids) and e.updated_at and e.updated_at > since
        ]

    def list_timesheets_for_range(self, *, tenant_id, start, end, employee_ids=None, status=None, cursor=None, limit=500):
        matching = [
            t for t in self.timesheets.values()
            if _in_scope(t, tenant_id, employee_ids)
            and start <= t.period_start
            and t.period_end <= end
            and (status is None or t.status == status)
        ]
        return _page(matching, "timesheet_id", cursor, limit)

    def find_timesheet_covering(self, *, tenant_id, employee_id, day):
        for t in self.timesheets.values():
            if t.tenant_id == tenant_id and t.employee_id == employee_id and t.covers(day):
                return t
        return None

    def create_timesheet(self, timesheet):
        self.timesheets[timesheet.timesheet_id] = timesheet
        return timesheet.timesheet_id

    # helpers
    def for_day(self, employee_id: str = "E", day: str = DAY) -> List[TimesheetEntry]:
        return sorted(
            (e for e in self.entries.values() if e.employee_id == employee_id and e.date == day),
            key=lambda e: (e.start_time or datetime.min, e.entry_id),
        )


class FakeImportJobRepo:
    """Stores copies so the running job object and the stored row can diverge (like a real table)."""

    def __init__(self):
        self.jobs: Dict[str, ImportJob] = {}

    def create(self, job):
        self.jobs[job.job_id] = copy.deepcopy(job)

    def get(self, *, tenant_id, job_id):
        job = self.jobs.get(job_id)
        return copy.deepcopy(job) if job and job.tenant_id == tenant_id else None

    def save_progress(self, job):
        stored = self.jobs.get(job.job_id)
        if stored is None or stored.status.is_terminal:
            return False
        self.jobs[job.job_id] = copy.deepcopy(job)
        return True

    def cancel(self, *, tenant_id, job_id, cancelled_by, at):
        stored = self.jobs.get(job_id)
        if not stored or stored.tenant_id != tenant_id or stored.status.is_terminal:
            return False
        stored.cancel(at, cancelled_by)
        return True

    def list_history(self, *, tenant_id, limit):
        jobs = [j for j in self.jobs.values() if j.tenant_id == tenant_id]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return [copy.deepcopy(j) for j in jobs[:limit]]

    def list_active(self, *, tenant_id):
        return [copy.deepcopy(j) for j in self.jobs.values() if j.tenant_id == tenant_id and not j.status.is_terminal]

    def list_created_between(self, *, tenant_id, since=None, until=None):
        return [
            copy.deepcopy(j) for j in self.jobs.values()
            if j.tenant_id == tenant_id
            and (since is None or j.created_at >= since)
            and (until is None or j.created_at <= until)
        ]


class FakeCheckRepo:
    def __init__(self):
        self.checks: Dict[str, CoherenceCheck] = {}

    def create(self, check):
        self.checks[check.check_id] = copy.deepcopy(check)

    def save(self, check):
        self.checks[check.check_id] = copy.deepcopy(check)

    def get(self, *, tenant_id, check_id):
        check = self.checks.get(check_id)
        return copy.deepcopy(check) if check and check.tenant_id == tenant_id else None

    def list(self, *, tenant_id, status=None, check_kind=None, limit=50):
        checks = [
            c for c in self.checks.values()
            if c.tenant_id == tenant_id
            and (status is None or c.status == status)
            and (check_kind is None or c.check_kind == check_kind)
        ]
        checks.sort(key=lambda c: c.started_at, reverse=True)
        return checks[:limit]

    def count(self, *, tenant_id):
        return sum(1 for c in self.checks.values() if c.tenant_id == tenant_id)


class FakeIssueRepo:
    def __init__(self):
        self.issues: Dict[Tuple[str, str], CoherenceIssue] = {}

    def get(self, *, tenant_id, issue_id):
        return self.issues.get((tenant_id, issue_id))

    def get_many(self, *, tenant_id, issue_ids):
        return [self.issues[(tenant_id, i)] for i in issue_ids if (tenant_id, i) in self.issues]

    def upsert_many(self, issues):
        for i in issues:
            self.issues[(i.tenant_id, i.issue_id)] = i

    def save(self, issue):
        self.upsert_many([issue])

    def find(self, *, tenant_id, filters: IssueFilter):
        out = [
            i for (t, _), i in self.issues.items()
            if t == tenant_id
            and (not filters.check_id or i.check_id == filters.check_id)
            and (filters.issue_type is None or i.issue_type == filters.issue_type)
            and (filters.severity is None or i.severity == filters.severity)
            and (filters.status is None or i.status == filters.status)
            and (not filters.employee_id or i.employee_id == filters.employee_id)
            and (not filters.start or i.date >= filters.start)
            and (not filters.end or i.date <= filters.end)
        ]
        out.sort(key=lambda i: (i.date, i.issue_id))
        return out[: filters.limit]

    def list_all(self, *, tenant_id):
        return [i for (t, _), i in self.issues.items() if t == tenant_id]

    def by_type(self, issue_type) -> List[CoherenceIssue]:
        return [i for i in self.issues.values() if i.issue_type == issue_type]


class FakeSyncRepo:
    def __init__(self):
        self.results: Dict[str, SyncResult] = {}
        self.conflicts: Dict[Tuple[str, str, str], SyncConflict] = {}

    def save_result(self, result):
        self.results[result.sync_id] = copy.deepcopy(result)
        self.save_conflicts(result.conflicts)

    def list_history(self, *, tenant_id, limit):
        results = [r for r in self.results.values() if r.tenant_id == tenant_id]
        results.sort(key=lambda r: r.started_at, reverse=True)
        return results[:limit]

    def list_conflicts(self, *, tenant_id, status=None, conflict_ids=None):
        return [
            c for c in self.conflicts.values()
            if c.tenant_id == tenant_id
            and (status is None or c.status == status)
            and (not conflict_ids or c.conflict_id in conflict_ids)
        ]

    def save_conflicts(self, conflicts):
        for c in conflicts:
            self.conflicts[(c.tenant_id, c.sync_id, c.conflict_id)] = c

    def pending(self) -> List[SyncConflict]:
        return [c for c in self.conflicts.values() if c.status == ConflictStatus.PENDING]


def build_services(
    presence: Sequence[PresenceRecord] = (),
    entries: Sequence[TimesheetEntry] = (),
    timesheets: Sequence[Timesheet] = (),
    *,
    policy_changes: Optional[dict] = None,
    converter: Optional[TimeSegmentationConverter] = None,
    page_size: int = 500,
) -> SimpleNamespace:
    """Every service wired over in-memory fakes, running inline."""
    presence_repo = FakePresenceRepo(presence)
    timesheets_repo = FakeTimesheetRepo(timesheets, entries)
    policies_repo = FakePolicyRepo()
    jobs_repo = FakeImportJobRepo()
    checks_repo = FakeCheckRepo()
    issues_repo = FakeIssueRepo()
    sync_repo = FakeSyncRepo()
    locks = TenantLocks()
    runner = InlineRunner()
    converter = converter or TimeSegmentationConverter()

    policy_service = PolicyService(policies_repo)
    if policy_changes:
        policy_service.update_policy(TENANT, policy_changes, "tester")

    import_service = ImportJobService(
        jobs_repo,
        presence_repo,
        policy_service,
        ImportHandlerFactory(timesheets_repo, converter),
        runner=runner,
        locks=locks,
        page_size=page_size,
    )
    resolution_service = ConflictResolutionService(issues_repo, presence_repo, timesheets_repo, policy_service, locks=locks)
    coherence_service = CoherenceService(
        checks_repo,
        issues_repo,
        presence_repo,
        timesheets_repo,
        policy_service,
        resolution_service,
        runner=runner,
        locks=locks,
        page_size=page_size,
    )
    sync_service = SynchronizationService(
        sync_repo,
        presence_repo,
        timesheets_repo,
        policy_service,
        resolution_service,
        converter=converter,
        locks=locks,
        page_size=page_size,
    )
    return SimpleNamespace(
        presence_repo=presence_repo,
        timesheets_repo=timesheets_repo,
        policies_repo=policies_repo,
        jobs_repo=jobs_repo,
        checks_repo=checks_repo,
        issues_repo=issues_repo,
        sync_repo=sync_repo,
        policy_service=policy_service,
        import_service=import_service,
        resolution_service=resolution_service,
        coherence_service=coherence_service,
        sync_service=sync_service,
    )
