from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from photoforge_workflow.core.credentials import MemoryCredentialStore
from photoforge_workflow.core.gallery import Gallery
from photoforge_workflow.core.models import GalleryImage, Project, ProjectDetail
from photoforge_workflow.core.projects import (
    ProjectDraft,
    create_project,
    list_projects,
    load_project,
    validate_project_draft,
)
from photoforge_workflow.core.run_logger import RunLogger
from photoforge_workflow.core.session import sign_in, sign_out
from photoforge_workflow.core.support import SupportTicketDraft, submit_support_ticket, validate_ticket
from photoforge_workflow.core.validation import first_issue
from photoforge_workflow.util.errors import AuthError, RemoteRequestError, TransientNetworkError, ValidationError


class FakeApi:
    def __init__(self) -> None:
        self.valid_keys = {"pf_live_good"}
        self.created: list[dict] = []
        self.tickets: list[tuple[str, str, str]] = []
        self.gallery = [
            GalleryImage(id="g1", url="https://cdn.example/g1.png"),
            GalleryImage(id="g2", url="https://cdn.example/g2.png"),
        ]
        self.fail_gallery_delete = False
        self.validate_error: Exception | None = None

    async def validate_key(self, access_key: str) -> tuple[bool, str]:
        if self.validate_error:
            raise self.validate_error
        if access_key in self.valid_keys:
            return True, "Access key is valid."
        return False, "Invalid access key"

    async def list_projects(self) -> list[Project]:
        if self.validate_error:
            raise self.validate_error
        return [Project(id="proj-1", name="Quarry"), Project(id="proj-2", name="Dam")]

    async def get_project(self, project_id: str) -> ProjectDetail:
        return ProjectDetail(project=Project(id=project_id, name="Quarry"))

    async def create_project(self, project: dict) -> Project:
        self.created.append(project)
        return Project(id="proj-1", name=project["name"])

    async def submit_support_ticket(self, subject: str, message: str, category: str) -> str:
        self.tickets.append((subject, message, category))
        return "T-1"

    async def list_gallery(self) -> list[GalleryImage]:
        return list(self.gallery)

    async def generate_image(self, prompt: str, negative_prompt: str = "") -> str:
        return f"https://cdn.example/{prompt.replace(' ', '_')}.png"

    async def delete_gallery_image(self, image_id: str) -> None:
        if self.fail_gallery_delete:
            raise RemoteRequestError("Failed to delete image")


def test_sign_in_stores_valid_key(tmp_path: Path) -> None:
    store = MemoryCredentialStore()
    logger = RunLogger(tmp_path / "session.log")
    result = asyncio.run(sign_in(store, FakeApi(), "  pf_live_good ", logger))
    assert result.ok is True
    assert store.get() == "pf_live_good"
    # Logs never carry the full key
    assert all("pf_live_good" not in line for line in logger.lines())

    sign_out(store, logger)
    assert store.get() is None


def test_sign_in_rejects_invalid_key_without_storing() -> None:
    store = MemoryCredentialStore()
    result = asyncio.run(sign_in(store, FakeApi(), "pf_live_bad"))
    assert result.ok is False
    assert result.requires_reauth is True
    assert result.message == "Invalid access key"
    assert store.get() is None


def test_sign_in_network_error_is_a_result() -> None:
    api = FakeApi()
    api.validate_error = TransientNetworkError("Network error")
    result = asyncio.run(sign_in(MemoryCredentialStore(), api, "pf_live_good"))
    assert result.ok is False
    assert result.requires_reauth is False


def test_sign_in_blank_key_raises() -> None:
    with pytest.raises(ValidationError, match="access key"):
        asyncio.run(sign_in(MemoryCredentialStore(), FakeApi(), "   "))


def test_project_draft_validation() -> None:
    issues = validate_project_draft(ProjectDraft(name="", altitude="0", overlap="abc"))
    assert [i.field_id for i in issues] == ["name", "altitude", "overlap"]
    assert first_issue(issues).message == "Please enter a project name"
    assert validate_project_draft(ProjectDraft(name="Dam", altitude="", overlap="")) == []


def test_create_project_sends_payload() -> None:
    api = FakeApi()
    draft = ProjectDraft(name=" Dam survey ", location="Hoover", altitude="120", overlap="80")
    result = asyncio.run(create_project(api, draft))
    assert result.ok is True
    assert result.value.id == "proj-1"
    assert api.created == [
        {
            "name": "Dam survey",
            "status": "active",
            "flight_settings": {"altitude": 120, "overlap": 80},
            "location": "Hoover",
        }
    ]


def test_create_project_invalid_draft_makes_no_call() -> None:
    api = FakeApi()
    with pytest.raises(ValidationError):
        asyncio.run(create_project(api, ProjectDraft(name="Dam", altitude="5000")))
    assert api.created == []


def test_support_ticket() -> None:
    assert first_issue(validate_ticket(SupportTicketDraft(subject="Help"))).message == "Please fill in all fields"
    assert validate_ticket(SupportTicketDraft(subject="a", message="b", category="sales"))[0].field_id == "category"

    api = FakeApi()
    result = asyncio.run(submit_support_ticket(api, SupportTicketDraft(subject=" Help ", message="Broken", category="billing")))
    assert result.value == "T-1"
    assert api.tickets == [("Help", "Broken", "billing")]


def test_gallery_refresh_generate_and_delete() -> None:
    api = FakeApi()
    gallery = Gallery(api)

    async def run() -> None:
        assert (await gallery.refresh()).ok
        assert gallery.images.ids() == ["g1", "g2"]

        generated = await gallery.generate("survey drone")
        assert generated.value == "https://cdn.example/survey_drone.png"

        api.fail_gallery_delete = True
        failed = await gallery.delete("g1")
        assert failed.ok is False
        assert gallery.images.ids() == ["g1", "g2"]

        api.fail_gallery_delete = False
        assert (await gallery.delete("g1")).ok
        assert gallery.images.ids() == ["g2"]

    asyncio.run(run())


def test_gallery_rejects_blank_prompt_and_unknown_image() -> None:
    gallery = Gallery(FakeApi())
    with pytest.raises(ValidationError):
        asyncio.run(gallery.generate(" "))
    with pytest.raises(KeyError):
        asyncio.run(gallery.delete("missing"))


def test_auth_error_result_requires_reauth() -> None:
    class ExpiredApi(FakeApi):
        async def list_gallery(self) -> list[GalleryImage]:
            raise AuthError("Invalid access key")

    result = asyncio.run(Gallery(ExpiredApi()).refresh())
    assert result.requires_reauth is True


def test_list_and_load_projects() -> None:
    api = FakeApi()
    listed = asyncio.run(list_projects(api))
    assert [p.id for p in listed.value] == ["proj-1", "proj-2"]

    loaded = asyncio.run(load_project(api, "proj-2"))
    assert loaded.ok is True
    assert loaded.value.project.id == "proj-2"
    assert loaded.value.media == ()


def test_list_projects_failure_is_a_result() -> None:
    api = FakeApi()
    api.validate_error = AuthError("Invalid access key")
    result = asyncio.run(list_projects(api))
    assert result.ok is False
    assert result.requires_reauth is True
