from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import ImportJob


class ImportJobRepository(Protocol):
    def create(self, job: ImportJob) -> None:
        raise NotImplementedError

    def get(self, *, tenant_id: str, job_id: str) -> Optional[ImportJob]:
        raise NotImplementedError

    def save_progress(self, job: ImportJob) -> bool:
        """Persist status, progress, counters and outcome lists.

        Must be a no-op returning False when the stored job is already
        terminal (e.g. cancelled from outside while running).
        """

        raise NotImplementedError

    def cancel(self, *, tenant_id: str, job_id: str, cancelled_by: str, at: datetime) -> bool:
        """Cancel only a pending/running job; False otherwise."""

        raise NotImplementedError

    def list_history(self, *, tenant_id: str, limit: int) -> Sequence[ImportJob]:
        """Newest first."""

        raise NotImplementedError

    def list_active(self, *, tenant_id: str) -> Sequence[ImportJob]:
        raise NotImplementedError

    def list_created_between(
        self,
        *,
        tenant_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> Sequence[ImportJob]:
        raise NotImplementedError
