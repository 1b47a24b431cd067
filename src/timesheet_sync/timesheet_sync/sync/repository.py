from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import ConflictStatus
from .model import SyncConflict, SyncResult


class SyncRepository(Protocol):
    def save_result(self, result: SyncResult) -> None:
        """Insert or replace the run summary together with its conflicts."""

        raise NotImplementedError

    def list_history(self, *, tenant_id: str, limit: int) -> Sequence[SyncResult]:
        """Newest first."""

        raise NotImplementedError

    def list_conflicts(
        self,
        *,
        tenant_id: str,
        status: Optional[ConflictStatus] = None,
        conflict_ids: Optional[Sequence[str]] = None,
    ) -> Sequence[SyncConflict]:
        raise NotImplementedError

    def save_conflicts(self, conflicts: Sequence[SyncConflict]) -> None:
        raise NotImplementedError
