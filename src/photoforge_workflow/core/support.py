from __future__ import annotations

from dataclasses import dataclass

from photoforge_workflow.api.client import PhotoForgeApi
from photoforge_workflow.core.result import OperationResult, capture
from photoforge_workflow.core.validation import ValidationIssue, raise_for_issues

CATEGORIES = {
    "technical": "Technical Issue",
    "billing": "Billing Question",
    "feature": "Feature Request",
    "general": "General Inquiry",
}


@dataclass
class SupportTicketDraft:
    subject: str = ""
    message: str = ""
    category: str = "technical"


def validate_ticket(draft: SupportTicketDraft) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if not draft.subject.strip() or not draft.message.strip():
        field_id = "subject" if not draft.subject.strip() else "message"
        issues.append(ValidationIssue(field_id, "Please fill in all fields"))
    if draft.category not in CATEGORIES:
        issues.append(ValidationIssue("category", f"Category must be one of: {', '.join(CATEGORIES)}."))
    return issues


async def submit_support_ticket(api: PhotoForgeApi, draft: SupportTicketDraft) -> OperationResult[str]:
    raise_for_issues(validate_ticket(draft))
    return await capture(
        api.submit_support_ticket(draft.subject.strip(), draft.message.strip(), draft.category),
        "Support ticket submitted.",
    )
