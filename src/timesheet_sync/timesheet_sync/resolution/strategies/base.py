from __future__ import annotations

from abc import ABC, abstractmethod

from ...policy.model import ReconciliationPolicy
from ...sync.model import SyncConflict


class ConflictStrategy(ABC):
    """Strategy Pattern: decide which side of a sync conflict wins.

    `resolve` returns False when the strategy defers to a human and raises
    when the winning side cannot be applied.
    """

    @abstractmethod
    def resolve(self, conflict: SyncConflict, *, policy: ReconciliationPolicy, performed_by: str) -> bool:
        raise NotImplementedError
