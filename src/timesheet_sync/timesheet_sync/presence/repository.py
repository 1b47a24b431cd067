from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..common.pagination import Page
from ..core.enums import PresenceStatus
from .model import PresenceRecord


class PresenceRepository(Protocol):
    def list_for_range(
        self,
        *,
        tenant_id: str,
        start: str,
        end: str,
        employee_ids: Optional[Sequence[str]] = None,
        cursor: Optional[str] = None,
        limit: int = 500,
    ) -> Page[PresenceRecord]:
        """Records with start <= date <= end, ordered by presence_id."""

        raise NotImplementedError

    def get_for_employee_day(self, *, tenant_id: str, employee_id: str, day: str) -> Optional[PresenceRecord]:
        raise NotImplementedError

    def create(self, record: PresenceRecord) -> str:
        raise NotImplementedError

    def update_work_time(
        self,
        *,
        tenant_id: str,
        presence_id: str,
        effective_work_minutes: int,
        status: PresenceStatus,
        notes: Optional[str],
        updated_at: datetime,
    ) -> bool:
        raise NotImplementedError

    def list_changed_since(
        self,
        *,
        tenant_id: str,
        since: datetime,
        employee_ids: Optional[Sequence[str]] = None,
    ) -> Sequence[PresenceRecord]:
        raise NotImplementedError
