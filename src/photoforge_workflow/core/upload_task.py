from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from photoforge_workflow.core.models import MediaFile
from photoforge_workflow.util.paths import guess_mime_type


@dataclass(frozen=True)
class LocalMediaRef:
    """A local image the user picked for upload."""
    path: Path
    name: str
    mime_type: str = "image/jpeg"
    width: int | None = None
    height: int | None = None
    exif: Mapping[str, Any] | None = None

    @classmethod
    def from_path(cls, path: Path, **metadata: Any) -> "LocalMediaRef":
        return cls(path=path, name=path.name, mime_type=guess_mime_type(path), **metadata)

    def metadata(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "exif": dict(self.exif or {}),
        }


class UploadStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"


@dataclass
class UploadTask:
    """Represents one file through a single upload batch.

    - ref: the local file being sent
    - media: the MediaFile the backend created (set once status is DONE)
    """
    ref: LocalMediaRef
    status: UploadStatus = UploadStatus.PENDING
    progress_pct: float = 0.0
    error: Exception | None = None
    media: MediaFile | None = None

    @property
    def settled(self) -> bool:
        return self.status in (UploadStatus.DONE, UploadStatus.FAILED)


@dataclass(frozen=True)
class FailedUpload:
    ref: LocalMediaRef
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


@dataclass
class BatchResult:
    succeeded: list[MediaFile] = field(default_factory=list)
    failed: list[FailedUpload] = field(default_factory=list)
    cancelled: bool = False

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def failed_refs(self) -> list[LocalMediaRef]:
        return [f.ref for f in self.failed]
