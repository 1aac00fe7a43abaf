from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from photoforge_workflow.core.models import ProcessedModel, as_str, first_value

COMPLETED_TOKENS = {"completed", "complete", "succeeded", "success", "done", "finished"}
FAILED_TOKENS = {"failed", "failure", "error", "errored", "cancelled", "canceled"}


class JobStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @classmethod
    def from_token(cls, token: object) -> "JobStatus":
        """Map a backend status token; anything not known to be terminal is still processing."""
        text = str(token or "").strip().lower()
        if text in COMPLETED_TOKENS:
            return cls.COMPLETED
        if text in FAILED_TOKENS:
            return cls.FAILED
        if text == "idle":
            return cls.IDLE
        return cls.PROCESSING


def _progress(value: Any) -> float:
    try:
        pct = float(value)
    except (TypeError, ValueError):
        return 0.0
    if pct != pct:  # NaN
        return 0.0
    return max(0.0, min(100.0, pct))


@dataclass(frozen=True)
class JobUpdate:
    """One status observation for a job, as produced by a single poll."""
    job_id: str
    status: JobStatus
    progress_pct: float = 0.0
    stage: str = ""
    eta_text: str | None = None
    message: str = ""
    models: tuple[ProcessedModel, ...] = ()
    error: Exception | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_payload(cls, job_id: str, data: Mapping[str, Any]) -> "JobUpdate":
        raw_models = first_value(data, "models", "processed_models", "processedModels")
        models: list[ProcessedModel] = []
        if isinstance(raw_models, list):
            models = [ProcessedModel.from_payload(m) for m in raw_models if isinstance(m, Mapping)]
        status = JobStatus.from_token(data.get("status"))
        progress = _progress(first_value(data, "progress", "progress_pct", "progressPct"))
        if status == JobStatus.COMPLETED:
            progress = 100.0
        return cls(
            job_id=job_id,
            status=status,
            progress_pct=progress,
            # Stage vocabulary belongs to the backend; keep whatever it sends
            stage=as_str(data.get("stage")) or "",
            eta_text=as_str(first_value(data, "eta_text", "etaText", "estimated_time", "estimatedTime")),
            message=as_str(first_value(data, "message", "error")) or "",
            models=tuple(models),
        )


@dataclass
class ProcessingJob:
    job_id: str
    status: JobStatus = JobStatus.IDLE
    progress_pct: float = 0.0
    stage: str = ""
    eta_text: str | None = None
    error_message: str = ""
    polls: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def apply(self, update: JobUpdate) -> None:
        """Fold a poll observation into the job. Terminal jobs never change again."""
        if self.is_terminal:
            return
        self.polls += 1
        self.status = update.status
        # Progress only moves forward while processing
        self.progress_pct = max(self.progress_pct, update.progress_pct)
        if update.stage:
            self.stage = update.stage
        if update.eta_text is not None:
            self.eta_text = update.eta_text
        if update.status == JobStatus.FAILED:
            self.error_message = update.message or "Processing failed."
