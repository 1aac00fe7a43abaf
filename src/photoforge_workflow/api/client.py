from __future__ import annotations

from typing import Any, Mapping

from photoforge_workflow.api.http import AiohttpJsonClient, JsonHttpClient, error_message
from photoforge_workflow.core.credentials import AccessCredentialStore
from photoforge_workflow.core.job import JobUpdate
from photoforge_workflow.core.models import (
    GalleryImage,
    MediaFile,
    ProcessedModel,
    Project,
    ProjectDetail,
    as_str,
    first_value,
)
from photoforge_workflow.core.processing_settings import ProcessingSettings
from photoforge_workflow.core.settings import DEFAULT_API_BASE_URL, AppSettings
from photoforge_workflow.core.upload_task import LocalMediaRef
from photoforge_workflow.util.errors import RemoteRequestError


class PhotoForgeApi:
    """Typed request functions for the PhotoForge backend.

    Every call raises a PhotoForgeError subclass on failure; turning those into
    user-facing results is the controller's job.
    """

    def __init__(
        self,
        credentials: AccessCredentialStore,
        http_client: JsonHttpClient | None = None,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
    ) -> None:
        self.credentials = credentials
        self._http = http_client or AiohttpJsonClient()
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: AppSettings, credentials: AccessCredentialStore) -> "PhotoForgeApi":
        http = AiohttpJsonClient(timeout_seconds=settings.request_timeout_seconds)
        return cls(credentials, http, base_url=settings.api_base_url)

    async def close(self) -> None:
        await self._http.close()

    @property
    def functions_base(self) -> str:
        return f"{self.base_url}/api/functions"

    @property
    def entities_base(self) -> str:
        return f"{self.base_url}/api/entities"

    @property
    def integrations_base(self) -> str:
        return f"{self.base_url}/api/integrations"

    def _auth_headers(self) -> dict[str, str]:
        # Read on every request so a key changed mid-session is picked up
        return {"Authorization": f"Bearer {self.credentials.require()}"}

    # Authentication

    async def validate_key(self, access_key: str) -> tuple[bool, str]:
        data = await self._http.request_json(
            "POST",
            f"{self.base_url}/api/validate-key",
            json_body={"accessKey": access_key},
        )
        data = data if isinstance(data, Mapping) else {}
        return bool(data.get("isValid")), as_str(data.get("message")) or ""

    # Projects

    async def create_project(self, project: Mapping[str, Any]) -> Project:
        data = await self._http.request_json(
            "POST",
            f"{self.functions_base}/createProjectMobile",
            json_body={"access_key": self.credentials.require(), "project": dict(project)},
        )
        body = _unwrap(data, "Failed to create project")
        if not isinstance(body, Mapping):
            raise RemoteRequestError("Failed to create project: unexpected response shape.")
        return Project.from_payload(body)

    async def list_projects(self) -> list[Project]:
        data = await self._http.request_json(
            "POST",
            f"{self.functions_base}/getProjectsMobile",
            json_body={"access_key": self.credentials.require()},
        )
        return [Project.from_payload(item) for item in _as_list(data, "projects")]

    async def get_project(self, project_id: str) -> ProjectDetail:
        data = await self._http.request_json(
            "POST",
            f"{self.functions_base}/getProjectDetailMobile",
            json_body={"access_key": self.credentials.require(), "project_id": project_id},
        )
        body = _unwrap(data, "Failed to load project detail")
        if not isinstance(body, Mapping):
            raise RemoteRequestError("Failed to load project detail: unexpected response shape.")
        return ProjectDetail.from_payload(body)

    # Media

    async def upload_file(self, ref: LocalMediaRef) -> str:
        data = await self._http.post_file(
            f"{self.integrations_base}/Core/UploadFile",
            path=ref.path,
            filename=ref.name,
            content_type=ref.mime_type,
            headers=self._auth_headers(),
        )
        _unwrap(data, "File upload failed")
        file_url = as_str(first_value(data, "file_url", "fileUrl", "url")) if isinstance(data, Mapping) else None
        if file_url is None:
            raise RemoteRequestError(f"File upload of {ref.name} returned no file URL.")
        return file_url

    async def create_media_file(self, project_id: str, ref: LocalMediaRef, file_url: str) -> MediaFile:
        data = await self._http.request_json(
            "POST",
            f"{self.entities_base}/MediaFile",
            json_body={
                "project_id": project_id,
                "file_url": file_url,
                "file_name": ref.name,
                "file_type": ref.mime_type,
                "metadata": ref.metadata(),
            },
            headers=self._auth_headers(),
        )
        body = _unwrap(data, "Failed to register media file")
        if not isinstance(body, Mapping):
            raise RemoteRequestError("Failed to register media file: unexpected response shape.")
        return MediaFile.from_payload(body, project_id=project_id)

    async def upload_media(self, project_id: str, ref: LocalMediaRef) -> MediaFile:
        """Send the file, then register it against the project."""
        file_url = await self.upload_file(ref)
        return await self.create_media_file(project_id, ref, file_url)

    async def get_media_files(self, project_id: str) -> list[MediaFile]:
        data = await self._http.request_json(
            "GET",
            f"{self.entities_base}/MediaFile",
            params={"project_id": project_id},
            headers=self._auth_headers(),
        )
        return [MediaFile.from_payload(item, project_id=project_id) for item in _as_list(data, "media files")]

    async def delete_media(self, media_id: str) -> None:
        data = await self._http.request_json(
            "DELETE",
            f"{self.entities_base}/MediaFile/{media_id}",
            headers=self._auth_headers(),
        )
        _unwrap(data, "Failed to delete media file")

    # Processing

    async def get_processed_models(self, project_id: str) -> list[ProcessedModel]:
        data = await self._http.request_json(
            "GET",
            f"{self.entities_base}/ProcessedModel",
            params={"project_id": project_id},
            headers=self._auth_headers(),
        )
        return [ProcessedModel.from_payload(item) for item in _as_list(data, "processed models")]

    async def start_job(self, project_id: str, image_urls: list[str], settings: ProcessingSettings) -> str:
        data = await self._http.request_json(
            "POST",
            f"{self.functions_base}/autodeskRealityCapture",
            json_body={
                "project_id": project_id,
                "image_urls": list(image_urls),
                "processing_settings": settings.to_payload(),
            },
            headers=self._auth_headers(),
        )
        body = _unwrap(data, "Failed to start processing")
        job_id = None
        for source in (body, data):
            if isinstance(source, Mapping):
                job_id = as_str(first_value(source, "job_id", "jobId", "id"))
                if job_id:
                    break
        if job_id is None:
            raise RemoteRequestError("Processing was accepted but no job id was returned.")
        return job_id

    async def get_job_status(self, job_id: str) -> JobUpdate:
        data = await self._http.request_json(
            "POST",
            f"{self.functions_base}/getProcessingStatus",
            json_body={"job_id": job_id},
            headers=self._auth_headers(),
        )
        body = _unwrap(data, "Failed to get processing status")
        if not isinstance(body, Mapping):
            raise RemoteRequestError("Processing status response had an unexpected shape.")
        return JobUpdate.from_payload(job_id, body)

    # Support

    async def submit_support_ticket(self, subject: str, message: str, category: str) -> str:
        data = await self._http.request_json(
            "POST",
            f"{self.functions_base}/submitSupportTicket",
            json_body={"subject": subject, "message": message, "category": category},
            headers=self._auth_headers(),
        )
        _unwrap(data, "Failed to submit ticket")
        ticket_id = as_str(first_value(data, "ticket_id", "ticketId")) if isinstance(data, Mapping) else None
        return ticket_id or ""

    # Image generation and gallery

    async def generate_image(self, prompt: str, negative_prompt: str = "") -> str:
        data = await self._http.request_json(
            "POST",
            f"{self.base_url}/api/generate",
            json_body={"prompt": prompt, "negativePrompt": negative_prompt},
            headers=self._auth_headers(),
        )
        image_url = as_str(first_value(data, "imageUrl", "image_url")) if isinstance(data, Mapping) else None
        if image_url is None:
            raise RemoteRequestError(error_message(data) or "Image generation failed.")
        return image_url

    async def list_gallery(self) -> list[GalleryImage]:
        data = await self._http.request_json(
            "GET",
            f"{self.base_url}/api/gallery",
            headers=self._auth_headers(),
        )
        images = data.get("images") if isinstance(data, Mapping) else data
        return [GalleryImage.from_payload(item) for item in _as_list(images, "gallery images")]

    async def delete_gallery_image(self, image_id: str) -> None:
        await self._http.request_json(
            "DELETE",
            f"{self.base_url}/api/gallery/{image_id}",
            headers=self._auth_headers(),
        )


def _unwrap(data: Any, failure: str) -> Any:
    """Strip the {success, data} envelope some endpoints use; raise if success is false."""
    if isinstance(data, Mapping) and "success" in data:
        if not data.get("success"):
            raise RemoteRequestError(error_message(data) or failure)
        inner = data.get("data")
        return inner if inner is not None else data
    return data


def _as_list(data: Any, what: str) -> list[Mapping[str, Any]]:
    body = _unwrap(data, f"Failed to load {what}")
    if body is None:
        return []
    if isinstance(body, Mapping):
        for key in ("items", "results", "data"):
            if isinstance(body.get(key), list):
                body = body[key]
                break
    if not isinstance(body, list):
        raise RemoteRequestError(f"Failed to load {what}: unexpected response shape.")
    return [item for item in body if isinstance(item, Mapping)]
