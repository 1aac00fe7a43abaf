from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Sequence

from photoforge_workflow.api.client import PhotoForgeApi
from photoforge_workflow.core.display import format_file_size
from photoforge_workflow.core.job import JobStatus, JobUpdate, ProcessingJob
from photoforge_workflow.core.job_poller import JobPoller, Sleep
from photoforge_workflow.core.models import MediaFile, ProcessedModel
from photoforge_workflow.core.processing_settings import ProcessingSettings, validate_processing_settings
from photoforge_workflow.core.registry import MediaRegistry, ResultsRegistry
from photoforge_workflow.core.result import OperationResult
from photoforge_workflow.core.run_logger import RunLogger
from photoforge_workflow.core.settings import AppSettings
from photoforge_workflow.core.upload_coordinator import ProgressCb, UploadCoordinator
from photoforge_workflow.core.upload_task import BatchResult, LocalMediaRef
from photoforge_workflow.core.validation import raise_for_issues
from photoforge_workflow.core.workflow import WorkflowStateMachine, WorkflowStep
from photoforge_workflow.util.errors import (
    AuthError,
    JobFailure,
    PartialUploadFailure,
    PhotoForgeError,
    PollingLostError,
    PreconditionError,
    RemoteRequestError,
    ValidationError,
)
from photoforge_workflow.util.paths import collect_images


class ProcessingWorkflow:
    """Drives one project through upload, review, configure, processing and results.

    Remote failures come back as OperationResult values and are also appended to
    `messages`; bad transitions and invalid input raise.
    """

    def __init__(
        self,
        project_id: str,
        api: PhotoForgeApi,
        *,
        settings: AppSettings | None = None,
        logger: RunLogger | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.project_id = project_id
        self.api = api
        self.settings = settings or AppSettings()
        self.logger = logger or RunLogger(AppSettings.project_log_path(project_id))
        self.media = MediaRegistry()
        self.results = ResultsRegistry()
        self.machine = WorkflowStateMachine(self.media, self.results)
        self.coordinator = UploadCoordinator(
            self._upload_one,
            max_batch_files=self.settings.max_batch_files,
            concurrency=self.settings.upload_concurrency,
        )
        self.poller = JobPoller(
            api.get_job_status,
            interval_seconds=self.settings.poll_interval_seconds,
            max_consecutive_failures=self.settings.max_poll_failures,
            sleep=sleep,
        )
        self.messages: list[str] = []
        self.last_error: PhotoForgeError | None = None
        self.last_update: JobUpdate | None = None
        self.last_settings: ProcessingSettings | None = None
        self.polling_lost = False
        self._starting_job = False
        self._completion_task: asyncio.Task[OperationResult[list[ProcessedModel]]] | None = None

    @property
    def step(self) -> WorkflowStep:
        return self.machine.step

    @property
    def job(self) -> ProcessingJob | None:
        return self.machine.job

    @property
    def retry_available(self) -> bool:
        return self.machine.retry_available

    # Loading

    async def load(self) -> OperationResult[WorkflowStep]:
        """Fetch media and models, then resume at the furthest step the data supports."""
        self.poller.cancel()
        self.logger.log(f"Loading project {self.project_id}.")
        outcomes = await asyncio.gather(
            self.api.get_media_files(self.project_id),
            self.api.get_processed_models(self.project_id),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, PhotoForgeError):
                return self._fail(outcome, "Failed to load project data")
            if isinstance(outcome, BaseException):
                raise outcome
        media, models = outcomes
        self.media.replace_all(media)
        self.results.replace_all(models)
        step = self.machine.resync()
        self.logger.log(f"Loaded {len(self.media)} media files and {len(self.results)} models; step={step.value}.")
        return OperationResult.success(step)

    # Upload

    async def upload_media(
        self,
        refs: Sequence[LocalMediaRef],
        progress_cb: ProgressCb | None = None,
    ) -> OperationResult[BatchResult]:
        if self.step != WorkflowStep.UPLOAD:
            raise PreconditionError(f"Uploads start from the upload step, not {self.step.value}.")
        if self.coordinator.running:
            raise PreconditionError("An upload batch is already in progress.")
        self.coordinator.check_batch(refs)

        self.logger.log(f"Starting upload of {len(refs)} files to project {self.project_id}.")
        result = await self.coordinator.upload(refs, progress_cb)
        self.media.extend(result.succeeded)
        if result.succeeded:
            self.logger.log(f"{len(self.media.with_gps())} of {len(self.media)} media files carry GPS tags.")
        self.logger.log(
            f"Upload finished: {len(result.succeeded)} uploaded, {len(result.failed)} failed"
            + (" (cancelled)." if result.cancelled else ".")
        )
        for failure in result.failed:
            self.logger.log(f"  FAILED {failure.ref.name}: {failure.message}")

        if result.succeeded and self.step == WorkflowStep.UPLOAD:
            self._log_transition(self.machine.upload_succeeded())

        if result.all_succeeded:
            return OperationResult.success(result, f"Successfully uploaded all {len(result.succeeded)} files!")

        auth_error = next((f.error for f in result.failed if isinstance(f.error, AuthError)), None)
        error: PhotoForgeError = auth_error or PartialUploadFailure(result.failed, result.total)
        self.last_error = error
        if result.succeeded:
            message = (
                f"Successfully uploaded {len(result.succeeded)} of {result.total} files.\n"
                f"{len(result.failed)} files failed to upload."
            )
        else:
            message = f"Failed to upload images: {result.failed[0].message}"
        self.messages.append(message)
        return OperationResult(ok=bool(result.succeeded), value=result, error=error, message=message)

    async def upload_paths(
        self,
        paths: Sequence[Path],
        progress_cb: ProgressCb | None = None,
    ) -> OperationResult[BatchResult]:
        """Upload picked files and folders; folders are expanded to the images they contain."""
        refs = [LocalMediaRef.from_path(p) for p in collect_images(list(paths))]
        if not refs:
            raise ValidationError("No images found in the selected files.")
        return await self.upload_media(refs, progress_cb)

    async def _upload_one(self, ref: LocalMediaRef) -> MediaFile:
        return await self.api.upload_media(self.project_id, ref)

    async def delete_media(self, media_id: str) -> OperationResult[MediaFile]:
        if self.step not in (WorkflowStep.UPLOAD, WorkflowStep.REVIEW):
            raise PreconditionError("Media files can only be removed while uploading or reviewing.")
        if media_id not in self.media:
            raise PreconditionError(f"Media file {media_id} is not part of this project.")
        try:
            removed = await self.media.delete(media_id, self.api.delete_media)
        except PhotoForgeError as e:
            return self._fail(e, f"Failed to delete media file {media_id}")
        self.logger.log(f"Deleted media file {media_id}.")
        if self.step == WorkflowStep.REVIEW and self.media.is_empty:
            self._log_transition(self.machine.add_more_media())
        return OperationResult.success(removed)

    # User-driven transitions

    def request_configuration(self) -> WorkflowStep:
        return self._log_transition(self.machine.request_configuration())

    def cancel_configuration(self) -> WorkflowStep:
        return self._log_transition(self.machine.cancel_configuration())

    def add_more_media(self) -> WorkflowStep:
        return self._log_transition(self.machine.add_more_media())

    def request_reprocessing(self) -> WorkflowStep:
        self.poller.cancel()
        return self._log_transition(self.machine.request_reprocessing())

    # Processing

    async def start_processing(self, settings: ProcessingSettings) -> OperationResult[ProcessingJob]:
        raise_for_issues(validate_processing_settings(settings))
        if not (self.step == WorkflowStep.CONFIGURE or self.retry_available):
            raise PreconditionError(f"Processing cannot be started from the {self.step.value} step.")
        if self.media.is_empty:
            raise PreconditionError("Cannot start processing without media files.")
        if self._starting_job:
            raise PreconditionError("A processing job is already being created.")

        self._starting_job = True
        self.logger.log(f"Starting processing with {len(self.media)} files: {settings.to_payload()}")
        try:
            job_id = await self.api.start_job(self.project_id, self.media.file_urls(), settings)
        except PhotoForgeError as e:
            return self._fail(e, "Failed to start processing")
        finally:
            self._starting_job = False

        job = ProcessingJob(job_id=job_id, status=JobStatus.PROCESSING)
        try:
            self._log_transition(self.machine.job_created(job))
        except PreconditionError as e:
            # The user moved on while the job was being created
            return self._fail(e, f"Processing job {job_id} was created but the workflow has moved on")

        self.last_settings = settings
        self.polling_lost = False
        self.last_update = None
        self.poller.start(job, self._on_job_update)
        return OperationResult.success(job, f"Your 3D model processing has been queued.\n\nJob ID: {job_id}")

    async def retry_processing(self) -> OperationResult[ProcessingJob]:
        """Start a new job after a failure, reusing the last settings."""
        if not self.retry_available:
            raise PreconditionError("There is no failed processing job to retry.")
        return await self.start_processing(self.last_settings or ProcessingSettings())

    def resume_polling(self) -> None:
        job = self.job
        if self.step != WorkflowStep.PROCESSING or job is None or job.is_terminal:
            raise PreconditionError("There is no running processing job to follow.")
        if self.poller.active:
            return
        self.polling_lost = False
        self.logger.log(f"Resuming status checks for job {job.job_id}.")
        self.poller.start(job, self._on_job_update)

    async def refresh_results(self) -> OperationResult[list[ProcessedModel]]:
        """Fetch models again for a job that completed without delivering any."""
        job = self.job
        if self.step != WorkflowStep.PROCESSING or job is None or job.status != JobStatus.COMPLETED:
            raise PreconditionError("Results can only be refreshed for a completed job.")
        return await self._complete_from_backend(job)

    def _on_job_update(self, update: JobUpdate) -> None:
        job = self.job
        if job is None or job.job_id != update.job_id:
            return
        self.last_update = update

        if update.error is not None:
            self.polling_lost = isinstance(update.error, PollingLostError)
            err = update.error if isinstance(update.error, PhotoForgeError) else PhotoForgeError(str(update.error))
            self._fail(err, f"Status check for job {job.job_id} stopped")
            return

        self.logger.log(
            f"Job {job.job_id}: {update.status.value} {update.progress_pct:.0f}%"
            + (f" stage={update.stage}" if update.stage else "")
            + (f" eta={update.eta_text}" if update.eta_text else "")
        )

        if update.status == JobStatus.FAILED:
            self.logger.log(f"Job {job.job_id} failed after {job.polls} status checks.")
            self._log_transition(self.machine.job_failed())
            self._fail(JobFailure(job.job_id, job.error_message), "Processing failed")
        elif update.status == JobStatus.COMPLETED:
            if update.models:
                self._show_results(job, update.models)
            else:
                loop = asyncio.get_running_loop()
                self._completion_task = loop.create_task(self._complete_from_backend(job))

    async def _complete_from_backend(self, job: ProcessingJob) -> OperationResult[list[ProcessedModel]]:
        try:
            models = await self.api.get_processed_models(self.project_id)
        except PhotoForgeError as e:
            return self._fail(e, "Failed to load processed models")
        if not models:
            return self._fail(
                RemoteRequestError(f"Job {job.job_id} completed but no processed models were returned."),
                "Failed to load processed models",
            )
        if self.job is not job or self.step != WorkflowStep.PROCESSING:
            return OperationResult.success(models)
        self._show_results(job, models)
        return OperationResult.success(models)

    def _show_results(self, job: ProcessingJob, models: Sequence[ProcessedModel]) -> None:
        self.results.extend(models)
        self._log_transition(self.machine.job_completed())
        self.logger.log(
            f"Job {job.job_id} finished after {job.polls} status checks: "
            f"{len(self.results)} models, {format_file_size(self.results.total_size_bytes())}."
        )
        self.messages.append("Processing Complete!")

    # Lifecycle

    def cancel(self) -> None:
        """Stop dispatching uploads and stop polling; backend state is left alone."""
        self.coordinator.cancel()
        self.poller.cancel()
        if self._completion_task is not None and not self._completion_task.done():
            self._completion_task.cancel()
        self.logger.log("Workflow cancelled by user.")

    async def wait_for_job(self) -> None:
        await self.poller.wait()
        task = self._completion_task
        if task is None:
            return
        self._completion_task = None
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def _log_transition(self, step: WorkflowStep) -> WorkflowStep:
        last = self.machine.history[-1] if self.machine.history else None
        if last is not None:
            self.logger.log(f"Step {last.source.value} -> {last.target.value} ({last.event.value}).")
        return step

    def _fail(self, error: PhotoForgeError, context: str) -> OperationResult:
        self.last_error = error
        message = f"{context}: {error}"
        self.messages.append(message)
        self.logger.log(f"ERROR {message}")
        return OperationResult(ok=False, error=error, message=message)
