from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from photoforge_workflow.util.errors import RemoteRequestError
from photoforge_workflow.util.timeparse import parse_api_timestamp

DEFAULT_ALTITUDE_M = 100
DEFAULT_OVERLAP_PCT = 70


def first_value(data: Mapping[str, Any], *keys: str) -> Any:
    """Return the first non-None value among keys (backend mixes snake_case and camelCase)."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def as_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def require_id(data: Mapping[str, Any], kind: str) -> str:
    value = as_str(first_value(data, "id", "_id"))
    if value is None:
        raise RemoteRequestError(f"{kind} payload is missing an id.")
    return value


@dataclass(frozen=True)
class FlightSettings:
    altitude: int = DEFAULT_ALTITUDE_M
    overlap_pct: int = DEFAULT_OVERLAP_PCT

    @classmethod
    def from_payload(cls, data: Mapping[str, Any] | None) -> "FlightSettings":
        if not data:
            return cls()
        altitude = as_int(data.get("altitude"))
        overlap = as_int(first_value(data, "overlap", "overlap_pct", "overlapPct"))
        return cls(
            altitude=DEFAULT_ALTITUDE_M if altitude is None else altitude,
            overlap_pct=DEFAULT_OVERLAP_PCT if overlap is None else overlap,
        )

    def to_payload(self) -> dict[str, int]:
        return {"altitude": self.altitude, "overlap": self.overlap_pct}


@dataclass
class Project:
    id: str
    name: str
    status: str = "active"
    location: str | None = None
    description: str | None = None
    flight_settings: FlightSettings = field(default_factory=FlightSettings)
    created_at: datetime | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "Project":
        flight = first_value(data, "flight_settings", "flightSettings")
        return cls(
            id=require_id(data, "Project"),
            name=as_str(data.get("name")) or "Untitled project",
            status=as_str(data.get("status")) or "active",
            location=as_str(data.get("location")),
            description=as_str(data.get("description")),
            flight_settings=FlightSettings.from_payload(flight if isinstance(flight, Mapping) else None),
            created_at=parse_api_timestamp(first_value(data, "created_date", "created_at", "createdAt")),
        )


@dataclass(frozen=True)
class MediaFile:
    id: str
    file_url: str
    project_id: str
    file_name: str | None = None
    thumbnail_url: str | None = None
    exif: Mapping[str, Any] | None = None
    width: int | None = None
    height: int | None = None
    created_at: datetime | None = None

    @property
    def has_gps(self) -> bool:
        return bool(self.exif and self.exif.get("GPSLatitude") is not None)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any], project_id: str = "") -> "MediaFile":
        file_url = as_str(first_value(data, "file_url", "fileUrl", "url"))
        if file_url is None:
            raise RemoteRequestError("Media file payload is missing its file URL.")
        metadata = data.get("metadata")
        metadata = metadata if isinstance(metadata, Mapping) else {}
        exif = first_value(data, "exif_data", "exif")
        if exif is None:
            exif = metadata.get("exif")
        return cls(
            id=require_id(data, "Media file"),
            file_url=file_url,
            project_id=as_str(first_value(data, "project_id", "projectId")) or project_id,
            file_name=as_str(first_value(data, "file_name", "fileName")),
            thumbnail_url=as_str(first_value(data, "thumbnail_url", "thumbnailUrl")),
            exif=exif if isinstance(exif, Mapping) and exif else None,
            width=as_int(first_value(data, "width") or metadata.get("width")),
            height=as_int(first_value(data, "height") or metadata.get("height")),
            created_at=parse_api_timestamp(first_value(data, "created_at", "createdAt", "created_date")),
        )


@dataclass(frozen=True)
class DownloadUrls:
    mesh: str | None = None
    textures: str | None = None
    point_cloud: str | None = None
    orthomosaic: str | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any] | None) -> "DownloadUrls":
        if not data:
            return cls()
        return cls(
            mesh=as_str(data.get("mesh")),
            textures=as_str(data.get("textures")),
            point_cloud=as_str(first_value(data, "point_cloud", "pointCloud")),
            orthomosaic=as_str(data.get("orthomosaic")),
        )

    def available(self) -> dict[str, str]:
        items = {
            "mesh": self.mesh,
            "textures": self.textures,
            "point_cloud": self.point_cloud,
            "orthomosaic": self.orthomosaic,
        }
        return {k: v for k, v in items.items() if v}


@dataclass(frozen=True)
class ProcessedModel:
    id: str
    name: str
    format: str | None = None
    file_size_bytes: int | None = None
    poly_count: int | None = None
    download_urls: DownloadUrls = field(default_factory=DownloadUrls)
    thumbnail_url: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ProcessedModel":
        urls = first_value(data, "download_urls", "downloadUrls")
        download_urls = DownloadUrls.from_payload(urls if isinstance(urls, Mapping) else None)
        output_url = as_str(first_value(data, "output_url", "outputUrl"))
        if output_url and not download_urls.mesh:
            # Older entities only carry a single output_url, which is the mesh
            download_urls = DownloadUrls(
                mesh=output_url,
                textures=download_urls.textures,
                point_cloud=download_urls.point_cloud,
                orthomosaic=download_urls.orthomosaic,
            )
        model_id = require_id(data, "Processed model")
        return cls(
            id=model_id,
            name=as_str(data.get("name")) or as_str(first_value(data, "model_type", "modelType")) or model_id,
            format=as_str(data.get("format")),
            file_size_bytes=as_int(first_value(data, "file_size", "fileSize", "file_size_bytes")),
            poly_count=as_int(first_value(data, "poly_count", "polyCount")),
            download_urls=download_urls,
            thumbnail_url=as_str(first_value(data, "thumbnail_url", "thumbnailUrl")),
            created_at=parse_api_timestamp(first_value(data, "created_at", "createdAt", "created_date")),
        )


@dataclass(frozen=True)
class GalleryImage:
    id: str
    url: str
    prompt: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "GalleryImage":
        url = as_str(first_value(data, "url", "imageUrl", "image_url"))
        if url is None:
            raise RemoteRequestError("Gallery image payload is missing its URL.")
        return cls(
            id=require_id(data, "Gallery image"),
            url=url,
            prompt=as_str(data.get("prompt")),
            created_at=parse_api_timestamp(first_value(data, "createdAt", "created_at")),
        )


@dataclass(frozen=True)
class ProjectDetail:
    """A project together with its media files and processed models."""
    project: Project
    media: tuple[MediaFile, ...] = ()
    models: tuple[ProcessedModel, ...] = ()

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ProjectDetail":
        raw_project = data.get("project")
        if not isinstance(raw_project, Mapping):
            raise RemoteRequestError("Project detail payload is missing its project.")
        project = Project.from_payload(raw_project)
        raw_media = first_value(data, "media_files", "mediaFiles")
        raw_models = first_value(data, "models", "processed_models", "processedModels")
        return cls(
            project=project,
            media=tuple(
                MediaFile.from_payload(m, project_id=project.id)
                for m in (raw_media if isinstance(raw_media, list) else [])
                if isinstance(m, Mapping)
            ),
            models=tuple(
                ProcessedModel.from_payload(m)
                for m in (raw_models if isinstance(raw_models, list) else [])
                if isinstance(m, Mapping)
            ),
        )
