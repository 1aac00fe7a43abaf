"""Processing workflow steps and the transitions between them.

This module is pure data plus transitions: no I/O, no asyncio. The controller
feeds it events from the upload coordinator, the job poller, and user actions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from photoforge_workflow.core.job import JobStatus, ProcessingJob
from photoforge_workflow.core.registry import MediaRegistry, ResultsRegistry
from photoforge_workflow.util.errors import PreconditionError


class WorkflowStep(str, Enum):
    UPLOAD = "upload"
    REVIEW = "review"
    CONFIGURE = "configure"
    PROCESSING = "processing"
    RESULTS = "results"


STEP_ORDER = [
    WorkflowStep.UPLOAD,
    WorkflowStep.REVIEW,
    WorkflowStep.CONFIGURE,
    WorkflowStep.PROCESSING,
    WorkflowStep.RESULTS,
]


class WorkflowEvent(str, Enum):
    UPLOAD_SUCCEEDED = "upload_succeeded"
    CONFIGURE_REQUESTED = "configure_requested"
    CONFIGURE_CANCELLED = "configure_cancelled"
    JOB_CREATED = "job_created"
    JOB_COMPLETED = "job_completed"
    JOB_FAILED = "job_failed"
    ADD_MORE_MEDIA = "add_more_media"
    REPROCESS_REQUESTED = "reprocess_requested"


@dataclass(frozen=True)
class Transition:
    source: WorkflowStep
    event: WorkflowEvent
    target: WorkflowStep


def derive_initial_step(media: MediaRegistry, results: ResultsRegistry) -> WorkflowStep:
    """Resume at the furthest stage the project's data supports."""
    if not results.is_empty:
        return WorkflowStep.RESULTS
    if not media.is_empty:
        return WorkflowStep.REVIEW
    return WorkflowStep.UPLOAD


class WorkflowStateMachine:
    def __init__(
        self,
        media: MediaRegistry,
        results: ResultsRegistry,
        step: WorkflowStep | None = None,
    ) -> None:
        self.media = media
        self.results = results
        self._job: ProcessingJob | None = None
        self._pending_job: ProcessingJob | None = None
        self.history: list[Transition] = []
        self._step = step if step is not None else derive_initial_step(media, results)
        self._check_invariant(self._step)

    @property
    def step(self) -> WorkflowStep:
        return self._step

    @property
    def job(self) -> ProcessingJob | None:
        return self._job

    @property
    def step_index(self) -> int:
        return STEP_ORDER.index(self._step)

    @property
    def retry_available(self) -> bool:
        return (
            self._step == WorkflowStep.PROCESSING
            and self._job is not None
            and self._job.status == JobStatus.FAILED
        )

    def resync(self) -> WorkflowStep:
        """Re-derive the step after the registries were reloaded from the backend."""
        self._step = derive_initial_step(self.media, self.results)
        self._job = None
        return self._step

    def attach_job(self, job: ProcessingJob) -> None:
        """Hold a reference to a newly created job ahead of the JOB_CREATED event."""
        if self._step not in (WorkflowStep.CONFIGURE, WorkflowStep.PROCESSING):
            raise PreconditionError(f"Cannot attach a processing job while in the {self._step.value} step.")
        if self._step == WorkflowStep.PROCESSING and not self.retry_available:
            raise PreconditionError("A processing job is already running.")
        self._pending_job = job

    def can_fire(self, event: WorkflowEvent) -> bool:
        try:
            self._resolve(event)
        except PreconditionError:
            return False
        return True

    def fire(self, event: WorkflowEvent) -> WorkflowStep:
        target, on_enter = self._resolve(event)
        source = self._step
        if on_enter is not None:
            on_enter()
        self._step = target
        self.history.append(Transition(source, event, target))
        return target

    # Convenience wrappers, one per row of the transition table

    def upload_succeeded(self) -> WorkflowStep:
        return self.fire(WorkflowEvent.UPLOAD_SUCCEEDED)

    def request_configuration(self) -> WorkflowStep:
        return self.fire(WorkflowEvent.CONFIGURE_REQUESTED)

    def cancel_configuration(self) -> WorkflowStep:
        return self.fire(WorkflowEvent.CONFIGURE_CANCELLED)

    def job_created(self, job: ProcessingJob) -> WorkflowStep:
        self.attach_job(job)
        return self.fire(WorkflowEvent.JOB_CREATED)

    def job_completed(self) -> WorkflowStep:
        return self.fire(WorkflowEvent.JOB_COMPLETED)

    def job_failed(self) -> WorkflowStep:
        return self.fire(WorkflowEvent.JOB_FAILED)

    def add_more_media(self) -> WorkflowStep:
        return self.fire(WorkflowEvent.ADD_MORE_MEDIA)

    def request_reprocessing(self) -> WorkflowStep:
        return self.fire(WorkflowEvent.REPROCESS_REQUESTED)

    def _resolve(self, event: WorkflowEvent) -> tuple[WorkflowStep, Callable[[], None] | None]:
        step = self._step
        pending = self._pending_job

        if event == WorkflowEvent.UPLOAD_SUCCEEDED and step == WorkflowStep.UPLOAD:
            self._require_media("review uploaded files")
            return WorkflowStep.REVIEW, None

        if event == WorkflowEvent.CONFIGURE_REQUESTED and step == WorkflowStep.REVIEW:
            self._require_media("configure processing")
            return WorkflowStep.CONFIGURE, None

        if event == WorkflowEvent.CONFIGURE_CANCELLED and step == WorkflowStep.CONFIGURE:
            self._require_media("return to review")
            return WorkflowStep.REVIEW, None

        if event == WorkflowEvent.JOB_CREATED and (
            step == WorkflowStep.CONFIGURE or (step == WorkflowStep.PROCESSING and self.retry_available)
        ):
            if pending is None:
                raise PreconditionError("No processing job was attached before JOB_CREATED.")
            return WorkflowStep.PROCESSING, self._take_pending_job

        if event == WorkflowEvent.JOB_COMPLETED and step == WorkflowStep.PROCESSING:
            if self._job is None:
                raise PreconditionError("No processing job is attached.")
            if self.results.is_empty:
                raise PreconditionError("Cannot show results: no processed models were produced.")
            return WorkflowStep.RESULTS, None

        if event == WorkflowEvent.JOB_FAILED and step == WorkflowStep.PROCESSING:
            if self._job is None:
                raise PreconditionError("No processing job is attached.")
            return WorkflowStep.PROCESSING, None

        if event == WorkflowEvent.ADD_MORE_MEDIA and step == WorkflowStep.REVIEW:
            return WorkflowStep.UPLOAD, None

        if event == WorkflowEvent.REPROCESS_REQUESTED and step == WorkflowStep.RESULTS:
            # Review needs media; a results-only project goes back to upload instead
            target = WorkflowStep.REVIEW if not self.media.is_empty else WorkflowStep.UPLOAD
            return target, self._drop_job

        raise PreconditionError(f"Event {event.value!r} is not allowed in the {step.value} step.")

    def _take_pending_job(self) -> None:
        self._job = self._pending_job
        self._pending_job = None

    def _drop_job(self) -> None:
        self._job = None

    def _require_media(self, action: str) -> None:
        if self.media.is_empty:
            raise PreconditionError(f"Cannot {action}: no media files have been uploaded.")

    def _check_invariant(self, step: WorkflowStep) -> None:
        if step == WorkflowStep.REVIEW and self.media.is_empty:
            raise PreconditionError("The review step needs at least one media file.")
        if step == WorkflowStep.CONFIGURE and self.media.is_empty:
            raise PreconditionError("The configure step needs at least one media file.")
        if step == WorkflowStep.PROCESSING:
            raise PreconditionError("The processing step needs a processing job; start one from configure.")
        if step == WorkflowStep.RESULTS and self.results.is_empty:
            raise PreconditionError("The results step needs at least one processed model.")
