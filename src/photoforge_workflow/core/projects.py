from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from photoforge_workflow.api.client import PhotoForgeApi
from photoforge_workflow.core.models import DEFAULT_ALTITUDE_M, DEFAULT_OVERLAP_PCT, FlightSettings, Project, ProjectDetail
from photoforge_workflow.core.result import OperationResult, capture
from photoforge_workflow.core.validation import ValidationIssue, raise_for_issues

MIN_ALTITUDE_M = 1
MAX_ALTITUDE_M = 1000
MIN_OVERLAP_PCT = 1
MAX_OVERLAP_PCT = 99


def _parse_int(text: str, default: int) -> int | None:
    """Blank means default; anything else must be a whole number."""
    v = (text or "").strip()
    if not v:
        return default
    try:
        return int(v)
    except ValueError:
        return None


@dataclass
class ProjectDraft:
    """Form values for a new project, kept as text the way the user typed them."""
    name: str = ""
    location: str = ""
    description: str = ""
    altitude: str = str(DEFAULT_ALTITUDE_M)
    overlap: str = str(DEFAULT_OVERLAP_PCT)

    def flight_settings(self) -> FlightSettings:
        altitude = _parse_int(self.altitude, DEFAULT_ALTITUDE_M)
        overlap = _parse_int(self.overlap, DEFAULT_OVERLAP_PCT)
        return FlightSettings(
            altitude=DEFAULT_ALTITUDE_M if altitude is None else altitude,
            overlap_pct=DEFAULT_OVERLAP_PCT if overlap is None else overlap,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name.strip(),
            "status": "active",
            "flight_settings": self.flight_settings().to_payload(),
        }
        if self.location.strip():
            payload["location"] = self.location.strip()
        if self.description.strip():
            payload["description"] = self.description.strip()
        return payload


def validate_project_draft(draft: ProjectDraft) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    if not draft.name.strip():
        issues.append(ValidationIssue("name", "Please enter a project name"))

    altitude = _parse_int(draft.altitude, DEFAULT_ALTITUDE_M)
    if altitude is None or not MIN_ALTITUDE_M <= altitude <= MAX_ALTITUDE_M:
        issues.append(
            ValidationIssue("altitude", f"Altitude must be a whole number from {MIN_ALTITUDE_M} to {MAX_ALTITUDE_M} m.")
        )

    overlap = _parse_int(draft.overlap, DEFAULT_OVERLAP_PCT)
    if overlap is None or not MIN_OVERLAP_PCT <= overlap <= MAX_OVERLAP_PCT:
        issues.append(
            ValidationIssue("overlap", f"Overlap must be a whole number from {MIN_OVERLAP_PCT} to {MAX_OVERLAP_PCT}%.")
        )

    return issues


async def create_project(api: PhotoForgeApi, draft: ProjectDraft) -> OperationResult[Project]:
    raise_for_issues(validate_project_draft(draft))
    return await capture(api.create_project(draft.to_payload()), "Project created successfully!")


async def list_projects(api: PhotoForgeApi) -> OperationResult[list[Project]]:
    return await capture(api.list_projects())


async def load_project(api: PhotoForgeApi, project_id: str) -> OperationResult[ProjectDetail]:
    """Fetch one project with its media files and processed models."""
    return await capture(api.get_project(project_id))
