"""In-process job queue using asyncio.

Each submitted job runs as its own detached task so a slow vendor call in
one run never blocks another. A semaphore caps how many runs are in flight.
No external dependencies (Redis, Celery) needed.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from audioweaver.jobs.dispatcher import JobDispatcher

logger = logging.getLogger(__name__)


class InProcessQueue(JobDispatcher):
    """Local async job queue backed by asyncio tasks."""

    def __init__(
        self,
        run_fn: Callable[[str], Awaitable],
        max_concurrent: int = 4,
        on_abandoned: Optional[Callable[[str], Awaitable]] = None,
    ):
        """
        run_fn: coroutine function run_fn(job_id) that drives a job to a
            terminal state. It is expected to record its own failures.
        on_abandoned: coroutine function called at shutdown for every job
            whose run never started, so it can be marked failed.
        """
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._run_fn = run_fn
        self._on_abandoned = on_abandoned
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent))
        self._task: Optional[asyncio.Task] = None
        self._runs: Set[asyncio.Task] = set()
        self._running = False

    async def submit(self, job_id: str) -> str:
        await self._queue.put(job_id)
        return job_id

    def active_jobs(self) -> int:
        return len(self._runs)

    async def start(self) -> None:
        self._running = True
        self._task = asyncio.create_task(self._worker_loop())

    async def stop(self) -> None:
        """Cancel in-flight runs and abandon jobs that never started."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        for run in list(self._runs):
            run.cancel()
        if self._runs:
            await asyncio.gather(*self._runs, return_exceptions=True)

        while not self._queue.empty():
            job_id = self._queue.get_nowait()
            self._queue.task_done()
            await self._abandon(job_id)

    async def join(self) -> None:
        """Wait until every submitted job has finished running."""
        await self._queue.join()
        while self._runs:
            await asyncio.gather(*list(self._runs), return_exceptions=True)

    async def _worker_loop(self) -> None:
        """Hand each queued job to its own task."""
        while self._running:
            try:
                job_id = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

            run = asyncio.create_task(self._run(job_id), name=f"job-{job_id}")
            self._runs.add(run)
            run.add_done_callback(self._runs.discard)
            self._queue.task_done()

    async def _run(self, job_id: str) -> None:
        started = False
        try:
            async with self._semaphore:
                started = True
                await self._run_fn(job_id)
        except asyncio.CancelledError:
            # Still waiting for a slot: run_fn never saw this job
            if not started:
                await asyncio.shield(self._abandon(job_id))
            raise
        except Exception:
            # run_fn records failures on the job itself; this is a last resort.
            logger.exception("Unhandled error in background run for job %s", job_id)

    async def _abandon(self, job_id: str) -> None:
        logger.warning("Job %s abandoned before it started", job_id)
        if self._on_abandoned is None:
            return
        try:
            await self._on_abandoned(job_id)
        except Exception:
            logger.exception("Failed to mark abandoned job %s", job_id)
