from __future__ import annotations

from dataclasses import dataclass

from .coherence.mysql_coherence_repository import MySQLCoherenceCheckRepository, MySQLCoherenceIssueRepository
from .coherence.service import CoherenceService
from .conversion.converter import TimeSegmentationConverter
from .database.connection import DBConfig, DatabaseConnection
from .imports.factory import ImportHandlerFactory
from .imports.mysql_import_job_repository import MySQLImportJobRepository
from .imports.service import ImportJobService
from .policy.mysql_policy_repository import MySQLPolicyRepository
from .policy.service import PolicyService
from .presence.mysql_presence_repository import MySQLPresenceRepository
from .resolution.service import ConflictResolutionService
from .resolution.strategies.factory import ConflictStrategyFactory
from .sync.mysql_sync_repository import MySQLSyncRepository
from .sync.service import SynchronizationService
from .tasks.locks import TenantLocks
from .tasks.runner import BackgroundRunner
from .timesheets.mysql_timesheet_repository import MySQLTimesheetRepository


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection
    runner: BackgroundRunner
    locks: TenantLocks

    policies_repo: MySQLPolicyRepository
    presence_repo: MySQLPresenceRepository
    timesheets_repo: MySQLTimesheetRepository
    jobs_repo: MySQLImportJobRepository
    checks_repo: MySQLCoherenceCheckRepository
    issues_repo: MySQLCoherenceIssueRepository
    sync_repo: MySQLSyncRepository

    policy_service: PolicyService
    import_service: ImportJobService
    resolution_service: ConflictResolutionService
    coherence_service: CoherenceService
    sync_service: SynchronizationService


def build_container(*, db_config: dict, worker_threads: int = 4, page_size: int = 500) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
    runner = BackgroundRunner(max_workers=worker_threads)
    locks = TenantLocks()
    converter = TimeSegmentationConverter()

    policies_repo = MySQLPolicyRepository(conn)
    presence_repo = MySQLPresenceRepository(conn)
    timesheets_repo = MySQLTimesheetRepository(conn)
    jobs_repo = MySQLImportJobRepository(conn)
    checks_repo = MySQLCoherenceCheckRepository(conn)
    issues_repo = MySQLCoherenceIssueRepository(conn)
    sync_repo = MySQLSyncRepository(conn)

    policy_service = PolicyService(policies_repo)
    import_service = ImportJobService(
        jobs_repo,
        presence_repo,
        policy_service,
        ImportHandlerFactory(timesheets_repo, converter),
        runner=runner,
        locks=locks,
        page_size=page_size,
    )
    resolution_service = ConflictResolutionService(
        issues_repo,
        presence_repo,
        timesheets_repo,
        policy_service,
        strategies=ConflictStrategyFactory(presence_repo, timesheets_repo, converter),
        locks=locks,
    )
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

    return Container(
        conn=conn,
        runner=runner,
        locks=locks,
        policies_repo=policies_repo,
        presence_repo=presence_repo,
        timesheets_repo=timesheets_repo,
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
