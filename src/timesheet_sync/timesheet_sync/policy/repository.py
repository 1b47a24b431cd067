from __future__ import annotations

from typing import Optional, Protocol

from .model import ReconciliationPolicy


class PolicyRepository(Protocol):
    def get(self, tenant_id: str) -> Optional[ReconciliationPolicy]:
        raise NotImplementedError

    def save(self, policy: ReconciliationPolicy) -> None:
        """Insert or replace the tenant's policy."""

        raise NotImplementedError
