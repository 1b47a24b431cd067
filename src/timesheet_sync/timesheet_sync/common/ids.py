from __future__ import annotations

import uuid

from ..core.enums import IssueType


def new_id() -> str:
    return uuid.uuid4().hex


def derive_issue_id(issue_type: IssueType, employee_id: str, day: str) -> str:
    """Natural key of a coherence issue.

    Must stay a pure function of its inputs: re-detection over unchanged data
    has to land on the same identity.
    """
    return f"{IssueType(issue_type).value}_{employee_id}_{day}"


def derive_conflict_id(conflict_type: str, presence_id: str, timesheet_key: str) -> str:
    return f"{conflict_type}_{presence_id}_{timesheet_key}"
