from __future__ import annotations

from ...policy.model import ReconciliationPolicy
from ...sync.model import SyncConflict
from .base import ConflictStrategy


class ManualStrategy(ConflictStrategy):
    """Never guesses; the conflict stays pending."""

    def resolve(self, conflict: SyncConflict, *, policy: ReconciliationPolicy, performed_by: str) -> bool:
        return False
