from __future__ import annotations

from abc import ABC, abstractmethod

from ...coherence.model import CoherenceIssue


class IssueFixer(ABC):
    """Automated repair for one auto-fixable issue type.

    Raises on failure; the caller decides whether that fails a batch.
    """

    @abstractmethod
    def fix(self, issue: CoherenceIssue, performed_by: str) -> None:
        raise NotImplementedError
