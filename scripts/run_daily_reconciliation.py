"""Nightly job: import yesterday's presence, then run a daily coherence check.

Usage: python scripts/run_daily_reconciliation.py TENANT_ID [TENANT_ID ...] [--day YYYY-MM-DD] [--auto-fix]
"""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.timesheet_sync.timesheet_sync.container import build_container
from src.timesheet_sync.timesheet_sync.core.constants import SYSTEM_ACTOR
from src.timesheet_sync.timesheet_sync.core.enums import CheckKind, ImportKind, ImportTrigger
from src.timesheet_sync.timesheet_sync.core.exceptions import DomainError

logger = logging.getLogger("daily_reconciliation")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("tenants", nargs="+")
    parser.add_argument("--day", default=(date.today() - timedelta(days=1)).isoformat())
    parser.add_argument("--auto-fix", action="store_true")
    args = parser.parse_args(argv)

    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(level=getattr(settings, "LOG_LEVEL", "INFO"), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    container = build_container(
        db_config=settings.DB_CONFIG,
        worker_threads=int(getattr(settings, "WORKER_THREADS", 4)),
        page_size=int(getattr(settings, "PAGE_SIZE", 500)),
    )

    failures = 0
    for tenant_id in args.tenants:
        try:
            job = container.import_service.start_import_job(
                tenant_id, ImportTrigger.SCHEDULED, ImportKind.PRESENCE_TO_TIMESHEET, args.day, args.day, SYSTEM_ACTOR
            )
            container.import_service.wait_for(job.job_id)
            job = container.import_service.get_import_job(tenant_id, job.job_id)
            logger.info("[%s] import %s: %s", tenant_id, job.job_id, job.status.value)

            check = container.coherence_service.perform_coherence_check(
                tenant_id, CheckKind.DAILY, args.day, args.day, SYSTEM_ACTOR, auto_fix=args.auto_fix
            )
            container.coherence_service.wait_for(check.check_id)
            check = container.coherence_service.get_coherence_check(tenant_id, check.check_id)
            logger.info("[%s] check %s: %s, %s issues", tenant_id, check.check_id, check.status.value, check.issues_found)
        except DomainError as exc:
            failures += 1
            logger.error("[%s] reconciliation skipped: %s", tenant_id, exc)

    container.runner.shutdown()
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
