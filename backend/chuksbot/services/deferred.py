"""
Deferred Task Runner

Runs slow handler work (catalog fetches, payment and enrollment calls) off
the webhook request path. The participant gets an interim "processing" reply
straight away; the real reply is written to the session and pushed through
the notifier once the task finishes.

Each participant has at most one live job. A newer job supersedes the older
one, and session resets cancel it. A job only writes its result if the
session still points at it (``pending_task``), so a late completion can
never overwrite a session that was reset in the meantime.
"""
import asyncio
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from chuksbot.core.logging import logger, log_session_event
from chuksbot.orchestration import messages
from chuksbot.orchestration.locks import UserLocks
from chuksbot.orchestration.result import DeferredTask, HandlerResult
from chuksbot.orchestration.session import PENDING_TASK_KEY
from chuksbot.orchestration.states import State
from chuksbot.services.notifier import Notifier
from chuksbot.services.session_store import SessionStore


@dataclass
class DeferredJob:
    job_id: str
    user_id: str
    task: DeferredTask
    cancelled: bool = False
    completing: bool = False
    running: Optional[asyncio.Task] = None


class DeferredTaskRunner:
    """Queue plus a pool of asyncio workers executing deferred jobs."""

    def __init__(
        self,
        store: SessionStore,
        notifier: Notifier,
        locks: UserLocks,
        delay_seconds: float = 0.1,
        workers: int = 4,
    ):
        self.store = store
        self.notifier = notifier
        self.locks = locks
        self.delay_seconds = delay_seconds
        self.worker_count = workers
        self._queue: asyncio.Queue = asyncio.Queue()
        self._jobs: Dict[str, DeferredJob] = {}
        self._workers: List[asyncio.Task] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(), name=f"deferred-worker-{i}")
            for i in range(self.worker_count)
        ]
        logger.info(f"Deferred task runner started with {self.worker_count} workers")

    async def stop(self) -> None:
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Deferred task runner stopped")

    async def drain(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def run_deferred(
        self,
        user_id: str,
        interim_message: str,
        task: DeferredTask,
    ) -> HandlerResult:
        """
        Schedule ``task`` and return the interim processing reply.

        The session is moved to the processing state and tagged with the new
        job id before this returns.
        """
        previous = self._jobs.get(user_id)
        if previous is not None:
            self._cancel_job(previous, reason="superseded")

        job = DeferredJob(job_id=uuid.uuid4().hex, user_id=user_id, task=task)
        self._jobs[user_id] = job
        self.store.save(user_id, State.PROCESSING, {PENDING_TASK_KEY: job.job_id})
        self._queue.put_nowait(job)
        logger.info(f"Deferred job {job.job_id} scheduled for {user_id}")

        return HandlerResult(
            message=interim_message,
            state=State.PROCESSING,
            data={PENDING_TASK_KEY: job.job_id},
        )

    def cancel(self, user_id: str) -> bool:
        """Cancel the participant's queued or running job, if any."""
        job = self._jobs.pop(user_id, None)
        if job is None:
            return False
        self._cancel_job(job, reason="cancelled")
        return True

    def has_pending(self, user_id: str) -> bool:
        return user_id in self._jobs

    def _cancel_job(self, job: DeferredJob, reason: str) -> None:
        job.cancelled = True
        if job.running is not None and not job.completing:
            job.running.cancel()
        log_session_event("deferred_" + reason, job.user_id, {"job_id": job.job_id})

    def _forget(self, job: DeferredJob) -> None:
        if self._jobs.get(job.user_id) is job:
            del self._jobs[job.user_id]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _worker(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                if not job.cancelled:
                    job.running = asyncio.create_task(self._run(job))
                    try:
                        await asyncio.wait({job.running})
                    except asyncio.CancelledError:
                        job.running.cancel()
                        raise
            finally:
                self._queue.task_done()

    async def _run(self, job: DeferredJob) -> None:
        try:
            if self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)
            result = await job.task()
        except asyncio.CancelledError:
            logger.info(f"Deferred job {job.job_id} for {job.user_id} cancelled")
            raise
        except Exception as e:
            logger.error(f"Deferred job {job.job_id} for {job.user_id} failed: {e}", exc_info=True)
            job.completing = True
            await self._fail(job)
            return

        job.completing = True
        await self._complete(job, result)

    def _is_current(self, job: DeferredJob) -> bool:
        if job.cancelled:
            return False
        return self.store.get(job.user_id).pending_task == job.job_id

    async def _complete(self, job: DeferredJob, result: HandlerResult) -> None:
        async with self.locks.hold(job.user_id):
            if not self._is_current(job):
                logger.info(f"Discarding stale result of deferred job {job.job_id} for {job.user_id}")
                self._forget(job)
                return
            if result.reset:
                self.store.delete(job.user_id)
                self.store.save(job.user_id, result.state, result.data)
            else:
                self.store.save(job.user_id, result.state, {**result.data, PENDING_TASK_KEY: None})
            self._forget(job)

        log_session_event("deferred_completed", job.user_id, {
            "job_id": job.job_id,
            "state": result.state.value,
        })
        if not await self.notifier.send(job.user_id, result.message):
            logger.warning(f"Could not deliver deferred result to {job.user_id}")

    async def _fail(self, job: DeferredJob) -> None:
        async with self.locks.hold(job.user_id):
            if not self._is_current(job):
                self._forget(job)
                return
            self.store.delete(job.user_id)
            self._forget(job)

        log_session_event("deferred_failed", job.user_id, {"job_id": job.job_id})
        if not await self.notifier.send(job.user_id, messages.DEFERRED_FAILURE):
            logger.warning(f"Could not deliver failure notice to {job.user_id}")
