from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence

from photoforge_workflow.core.models import MediaFile
from photoforge_workflow.core.settings import DEFAULT_MAX_BATCH_FILES, DEFAULT_UPLOAD_CONCURRENCY
from photoforge_workflow.core.upload_task import (
    BatchResult,
    FailedUpload,
    LocalMediaRef,
    UploadStatus,
    UploadTask,
)
from photoforge_workflow.util.errors import BatchTooLargeError, PhotoForgeError, UploadCancelledError

ProgressCb = Callable[[float, str], None]  # percent, message
UploadOne = Callable[[LocalMediaRef], Awaitable[MediaFile]]


class UploadCoordinator:
    """Uploads one batch of local files with a fixed number of workers.

    Every input settles exactly once (done or failed) before upload() returns,
    and progress is reported after each settle as settled/total*100.
    """

    def __init__(
        self,
        upload_one: UploadOne,
        *,
        max_batch_files: int = DEFAULT_MAX_BATCH_FILES,
        concurrency: int = DEFAULT_UPLOAD_CONCURRENCY,
    ) -> None:
        self._upload_one = upload_one
        self.max_batch_files = max_batch_files
        self.concurrency = max(1, concurrency)
        self._cancelled = False
        self._running = False
        self.tasks: list[UploadTask] = []

    @property
    def running(self) -> bool:
        return self._running

    def cancel(self) -> None:
        """Stop dispatching; files already being sent are allowed to finish."""
        self._cancelled = True

    def check_batch(self, batch: Sequence[LocalMediaRef]) -> None:
        if len(batch) > self.max_batch_files:
            raise BatchTooLargeError(len(batch), self.max_batch_files)

    async def upload(self, batch: Sequence[LocalMediaRef], progress_cb: ProgressCb | None = None) -> BatchResult:
        self.check_batch(batch)
        if self._running:
            raise RuntimeError("An upload batch is already running on this coordinator.")

        report = progress_cb or (lambda _pct, _msg: None)
        self._cancelled = False
        self._running = True
        self.tasks = [UploadTask(ref=ref) for ref in batch]
        total = len(self.tasks)
        settled = 0
        last_pct = 0.0

        def on_settled(task: UploadTask) -> None:
            nonlocal settled, last_pct
            settled += 1
            pct = max(last_pct, settled / total * 100.0)
            last_pct = pct
            verb = "Uploaded" if task.status == UploadStatus.DONE else "Failed"
            report(pct, f"{verb} {task.ref.name} ({settled}/{total})")

        queue: asyncio.Queue[UploadTask] = asyncio.Queue()
        for task in self.tasks:
            queue.put_nowait(task)

        async def worker() -> None:
            while True:
                try:
                    task = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                if self._cancelled:
                    task.status = UploadStatus.FAILED
                    task.error = UploadCancelledError(f"Upload of {task.ref.name} was cancelled.")
                else:
                    await self._run_task(task)
                on_settled(task)

        try:
            if total == 0:
                report(100.0, "Nothing to upload.")
            else:
                report(0.0, f"Uploading {total} files...")
                workers = [worker() for _ in range(min(self.concurrency, total))]
                # Barrier: nothing is returned until every file has settled
                await asyncio.gather(*workers)
        finally:
            self._running = False

        result = BatchResult(cancelled=self._cancelled)
        for task in self.tasks:
            if task.status == UploadStatus.DONE and task.media is not None:
                result.succeeded.append(task.media)
            else:
                result.failed.append(
                    FailedUpload(ref=task.ref, error=task.error or PhotoForgeError("Upload did not complete."))
                )
        return result

    async def _run_task(self, task: UploadTask) -> None:
        task.status = UploadStatus.UPLOADING
        try:
            task.media = await self._upload_one(task.ref)
        except (PhotoForgeError, OSError) as e:
            task.status = UploadStatus.FAILED
            task.error = e
            return
        except Exception as e:
            # One bad file must never break the fan-in
            task.status = UploadStatus.FAILED
            task.error = PhotoForgeError(f"Unexpected error uploading {task.ref.name}: {e!r}")
            task.error.__cause__ = e
            return
        task.status = UploadStatus.DONE
        task.progress_pct = 100.0
