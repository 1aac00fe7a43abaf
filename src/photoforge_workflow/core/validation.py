from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from photoforge_workflow.util.errors import ValidationError


@dataclass(frozen=True)
class ValidationIssue:
    field_id: str
    message: str


def first_issue(issues: Iterable[ValidationIssue]) -> ValidationIssue | None:
    for issue in issues:
        return issue
    return None


def raise_for_issues(issues: list[ValidationIssue]) -> None:
    """Raise ValidationError carrying every issue, worded after the first one."""
    issue = first_issue(issues)
    if issue is None:
        return
    raise ValidationError(issue.message, issues)
