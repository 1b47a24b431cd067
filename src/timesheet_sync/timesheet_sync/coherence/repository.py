from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import CheckKind, CheckStatus
from .model import CoherenceCheck, CoherenceIssue, IssueFilter


class CoherenceCheckRepository(Protocol):
    def create(self, check: CoherenceCheck) -> None:
        raise NotImplementedError

    def save(self, check: CoherenceCheck) -> None:
        raise NotImplementedError

    def get(self, *, tenant_id: str, check_id: str) -> Optional[CoherenceCheck]:
        raise NotImplementedError

    def list(
        self,
        *,
        tenant_id: str,
        status: Optional[CheckStatus] = None,
        check_kind: Optional[CheckKind] = None,
        limit: int = 50,
    ) -> Sequence[CoherenceCheck]:
        """Newest first."""

        raise NotImplementedError

    def count(self, *, tenant_id: str) -> int:
        raise NotImplementedError


class CoherenceIssueRepository(Protocol):
    def get(self, *, tenant_id: str, issue_id: str) -> Optional[CoherenceIssue]:
        raise NotImplementedError

    def get_many(self, *, tenant_id: str, issue_ids: Sequence[str]) -> Sequence[CoherenceIssue]:
        raise NotImplementedError

    def upsert_many(self, issues: Sequence[CoherenceIssue]) -> None:
        """Insert or replace by (tenant_id, issue_id) in one batch."""

        raise NotImplementedError

    def save(self, issue: CoherenceIssue) -> None:
        raise NotImplementedError

    def find(self, *, tenant_id: str, filters: IssueFilter) -> Sequence[CoherenceIssue]:
        raise NotImplementedError

    def list_all(self, *, tenant_id: str) -> Sequence[CoherenceIssue]:
        raise NotImplementedError
