from __future__ import annotations

import logging
import time
from collections import Counter
from datetime import datetime
from typing import List, Optional, Sequence

from ..common.datetime_utils import DayRange, utcnow
from ..common.ids import new_id
from ..common.pagination import collect_pages
from ..common.validators import normalize_employee_ids, require_enum, require_non_empty
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_PAGE_SIZE, SYSTEM_ACTOR, SYSTEM_RECORD_ID
from ..core.enums import ErrorSeverity, ImportErrorType, ImportKind, ImportTrigger, JobStatus
from ..core.exceptions import ConcurrentRunError, NotFoundError, RecordError, ValidationError
from ..policy.service import PolicyService
from ..presence.model import PresenceRecord
from ..presence.repository import PresenceRepository
from ..tasks.locks import TenantLocks
from ..tasks.runner import InlineRunner, PendingTasks, TaskRunner
from .factory import ImportHandlerFactory
from .handlers.base import ImportContext, RecordOutcome
from .model import ImportJob, ImportRecordError, ImportStatistics
from .repository import ImportJobRepository

logger = logging.getLogger(__name__)


class ImportJobService:
    """Runs presence imports as background jobs, one record at a time.

    A bad record is recorded on the job and the loop moves on; only failures
    outside the loop (policy lookup, loading the record set) fail the job.
    """

    def __init__(
        self,
        jobs: ImportJobRepository,
        presence: PresenceRepository,
        policies: PolicyService,
        handlers: ImportHandlerFactory,
        *,
        runner: TaskRunner | None = None,
        locks: TenantLocks | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self._jobs = jobs
        self._presence = presence
        self._policies = policies
        self._handlers = handlers
        self._runner = runner or InlineRunner()
        self._locks = locks or TenantLocks()
        self._page_size = int(page_size)
        self._pending = PendingTasks()

    # -------- Commands --------
    def start_import_job(
        self,
        tenant_id: str,
        trigger: ImportTrigger | str,
        import_kind: ImportKind | str,
        start,
        end,
        scheduled_by: str,
        employee_ids: Optional[Sequence[str]] = None,
    ) -> ImportJob:
        tenant_id = require_non_empty(tenant_id, "tenant_id")
        day_range = DayRange.of(start, end)
        employees = normalize_employee_ids(employee_ids)

        for active in self._jobs.list_active(tenant_id=tenant_id):
            if active.covers_scope(day_range, employees):
                raise ConcurrentRunError(
                    f"Import job {active.job_id} is already {active.status.value} for {active.start}..{active.end}"
                )

        now = utcnow()
        job = ImportJob(
            job_id=new_id(),
            tenant_id=tenant_id,
            trigger=require_enum(ImportTrigger, trigger, "trigger"),
            import_kind=require_enum(ImportKind, import_kind, "import_kind"),
            start=day_range.start,
            end=day_range.end,
            employee_ids=employees,
            scheduled_by=require_non_empty(scheduled_by, "scheduled_by"),
            created_at=now,
            updated_at=now,
        )
        self._jobs.create(job)
        logger.info(
            "Import job %s created for tenant %s (%s, %s..%s)",
            job.job_id, tenant_id, job.import_kind.value, job.start, job.end,
        )

        self._pending.track(job.job_id, self._runner.submit(self.run_import_job, job))
        return job

    def run_import_job(self, job: ImportJob) -> ImportJob:
        started = time.monotonic()
        with self._locks.hold(job.tenant_id):
            try:
                policy = self._policies.get_policy(job.tenant_id)
                if not policy.enabled:
                    raise ValidationError("Presence import is disabled for this tenant")

                job.mark_running(utcnow())
                if not self._jobs.save_progress(job):
                    logger.info("Import job %s was cancelled before it started", job.job_id)
                    return job

                records = self._load_records(job)
                job.total_records = len(records)
                ctx = ImportContext(job=job, policy=policy, performed_by=job.scheduled_by or SYSTEM_ACTOR)
                handler = self._handlers.for_kind(job.import_kind)

                for record in records:
                    self._process_record(ctx, handler, record)
                    job.advance(utcnow())
                    if not self._jobs.save_progress(job):
                        logger.info("Import job %s cancelled after %s records", job.job_id, job.processed_records)
                        return job

                job.complete(utcnow(), _elapsed_ms(started))
                self._jobs.save_progress(job)
                logger.info(
                    "Import job %s completed: imported=%s skipped=%s errors=%s warnings=%s",
                    job.job_id, job.imported_records, job.skipped_records, job.error_records, len(job.warnings),
                )
            except Exception as exc:
                if job.status.is_terminal:
                    raise
                if isinstance(exc, ValidationError):
                    logger.warning("Import job %s failed: %s", job.job_id, exc)
                    error_type = ImportErrorType.VALIDATION
                else:
                    logger.exception("Import job %s failed", job.job_id)
                    error_type = ImportErrorType.SYSTEM
                job.fail(
                    utcnow(),
                    _elapsed_ms(started),
                    ImportRecordError(
                        record_id=SYSTEM_RECORD_ID,
                        employee_id=SYSTEM_ACTOR,
                        date=job.start,
                        error_type=error_type,
                        message=str(exc),
                        severity=ErrorSeverity.CRITICAL,
                    ),
                )
                self._jobs.save_progress(job)
        return job

    def _load_records(self, job: ImportJob) -> List[PresenceRecord]:
        return collect_pages(
            lambda cursor: self._presence.list_for_range(
                tenant_id=job.tenant_id,
                start=job.start,
                end=job.end,
                employee_ids=job.employee_ids,
                cursor=cursor,
                limit=self._page_size,
            )
        )

    def _process_record(self, ctx: ImportContext, handler, record: PresenceRecord) -> None:
        try:
            outcome = handler.process(ctx, record)
        except RecordError as exc:
            self._record_failure(ctx.job, record, require_enum(ImportErrorType, exc.error_type, "error_type"), str(exc))
            return
        except Exception as exc:
            self._record_failure(ctx.job, record, ImportErrorType.RECORD, str(exc) or exc.__class__.__name__)
            return

        if outcome == RecordOutcome.IMPORTED:
            ctx.job.record_imported()
        else:
            ctx.job.record_skipped()

    @staticmethod
    def _record_failure(job: ImportJob, record: PresenceRecord, error_type: ImportErrorType, message: str) -> None:
        logger.warning("Import job %s: record %s failed: %s", job.job_id, record.presence_id, message)
        job.record_error(
            ImportRecordError(
                record_id=record.presence_id,
                employee_id=record.employee_id,
                date=record.date,
                error_type=error_type,
                message=message,
            )
        )

    def cancel_import_job(self, tenant_id: str, job_id: str, cancelled_by: str) -> bool:
        job = self.get_import_job(tenant_id, job_id)
        if job.status.is_terminal:
            return False
        cancelled = self._jobs.cancel(
            tenant_id=tenant_id,
            job_id=job_id,
            cancelled_by=require_non_empty(cancelled_by, "cancelled_by"),
            at=utcnow(),
        )
        if cancelled:
            logger.info("Import job %s cancelled by %s", job_id, cancelled_by)
        return cancelled

    def wait_for(self, job_id: str, timeout: float | None = None) -> Optional[ImportJob]:
        """Block until a job started by this service finishes; None if it already has."""
        return self._pending.wait(job_id, timeout=timeout)

    # -------- Queries --------
    def get_import_job(self, tenant_id: str, job_id: str) -> ImportJob:
        job = self._jobs.get(tenant_id=tenant_id, job_id=job_id)
        if not job:
            raise NotFoundError(f"Import job {job_id} not found")
        return job

    def get_import_history(self, tenant_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[ImportJob]:
        return list(self._jobs.list_history(tenant_id=tenant_id, limit=max(1, int(limit))))

    def get_active_import_jobs(self, tenant_id: str) -> List[ImportJob]:
        return list(self._jobs.list_active(tenant_id=tenant_id))

    def get_import_statistics(
        self,
        tenant_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> ImportStatistics:
        jobs = self._jobs.list_created_between(tenant_id=tenant_id, since=since, until=until)
        durations = [j.duration_ms for j in jobs if j.duration_ms is not None]
        return ImportStatistics(
            total_jobs=len(jobs),
            successful_jobs=sum(1 for j in jobs if j.status == JobStatus.COMPLETED),
            failed_jobs=sum(1 for j in jobs if j.status == JobStatus.FAILED),
            cancelled_jobs=sum(1 for j in jobs if j.status == JobStatus.CANCELLED),
            total_records_processed=sum(j.processed_records for j in jobs),
            total_records_imported=sum(j.imported_records for j in jobs),
            average_job_duration_ms=(sum(durations) / len(durations)) if durations else 0.0,
            jobs_by_kind=dict(Counter(j.import_kind.value for j in jobs)),
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
