from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from photoforge_workflow.core.upload_task import FailedUpload
    from photoforge_workflow.core.validation import ValidationIssue

class PhotoForgeError(Exception):
    """Base exception for the workflow client."""

class AuthError(PhotoForgeError):
    """Raised when the access key is missing or rejected. Never retried."""

class ValidationError(PhotoForgeError):
    """Raised when user input is rejected before any network call."""

    def __init__(self, message: str, issues: Sequence["ValidationIssue"] = ()) -> None:
        super().__init__(message)
        self.issues = list(issues)

class BatchTooLargeError(ValidationError):
    """Raised when an upload batch exceeds the per-job file limit."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"{size} files selected; the maximum is {limit} files per upload.")
        self.size = size
        self.limit = limit

class PartialUploadFailure(PhotoForgeError):
    """A subset of an upload batch failed; the rest were kept."""

    def __init__(self, failed: Sequence["FailedUpload"], total: int) -> None:
        super().__init__(f"{len(failed)} of {total} files failed to upload.")
        self.failed = list(failed)
        self.total = total

class RemoteError(PhotoForgeError):
    """Base for failures reported by (or on the way to) the backend."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status

class TransientNetworkError(RemoteError):
    """Raised when a single request fails for a reason that may clear up on its own."""

class RemoteRequestError(RemoteError):
    """Raised when the backend answers but rejects the request."""

class JobFailure(PhotoForgeError):
    """Raised when the backend reports a processing job as failed."""

    def __init__(self, job_id: str, message: str = "") -> None:
        super().__init__(message or f"Processing job {job_id} failed.")
        self.job_id = job_id

class PollingLostError(PhotoForgeError):
    """Raised when job status polling gives up after repeated transient errors."""

    def __init__(self, job_id: str, attempts: int, last_error: Exception | None = None) -> None:
        super().__init__(f"Lost contact with processing job {job_id} after {attempts} failed status checks.")
        self.job_id = job_id
        self.attempts = attempts
        self.last_error = last_error

class UploadCancelledError(PhotoForgeError):
    """Raised for batch items that were never dispatched because the batch was cancelled."""

class PreconditionError(PhotoForgeError):
    """Raised when a workflow transition is attempted while its guard is unmet."""
