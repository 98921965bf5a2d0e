"""Client-side status poller for processing jobs.

Polls ``GET /api/process/{job_id}/status`` on a fixed cadence until the job
reaches ``completed`` or ``error``, reporting the user-facing phase and
progress along the way. Cancelling the poller never aborts the server-side run.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from audioweaver.api.schemas import JobStatusView, SummaryView
from audioweaver.config import settings
from audioweaver.jobs.models import JobStatus, phase_label

logger = logging.getLogger(__name__)

STATUS_FETCH_FAILED = "Failed to get processing status. Please try again."
MISSING_SUMMARY = "Processing completed but no summary was returned."

StatusFetcher = Callable[[str], Awaitable[JobStatusView]]


class PollingError(Exception):
    """The status endpoint could not be reached or answered with an error."""


@dataclass
class PollOutcome:
    status: JobStatus
    summary: Optional[SummaryView] = None
    error: Optional[str] = None
    polls: int = 0
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.COMPLETED and self.summary is not None


class HttpStatusFetcher:
    """Fetches job status from the HTTP API."""

    def __init__(self, base_url: str, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self._client = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = http_client is None

    async def __call__(self, job_id: str) -> JobStatusView:
        try:
            response = await self._client.get(f"/api/process/{job_id}/status")
        except httpx.HTTPError as e:
            raise PollingError(f"Status request failed: {e}") from e
        if response.status_code != 200:
            raise PollingError(f"Failed to get processing status: {response.status_code} - {response.text[:200]}")
        try:
            return JobStatusView.model_validate(response.json())
        except ValueError as e:
            raise PollingError(f"Malformed status response: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class StatusPoller:
    """Polls one job until it is terminal.

    Callbacks:
        on_update(status, phase_label, progress) after every non-terminal poll
        on_complete(summary) once, when the job completed
        on_error(message) once, when the job failed or polling broke
    """

    def __init__(
        self,
        fetch: StatusFetcher,
        job_id: str,
        *,
        interval: Optional[float] = None,
        on_update: Optional[Callable[[JobStatus, str, int], None]] = None,
        on_complete: Optional[Callable[[SummaryView], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self._fetch = fetch
        self._job_id = job_id
        self._interval = settings.poll_interval_seconds if interval is None else interval
        self._on_update = on_update
        self._on_complete = on_complete
        self._on_error = on_error
        self._task: Optional[asyncio.Task] = None
        self._stopped = False
        self._polls = 0
        self._last_status = JobStatus.PENDING

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name=f"poll-{self._job_id}")
        return self._task

    async def wait(self) -> PollOutcome:
        """Outcome of the poll loop. After cancel() the outcome has cancelled=True."""
        task = self.start()
        try:
            return await task
        except asyncio.CancelledError:
            if not self._stopped:
                raise
            return PollOutcome(status=self._last_status, polls=self._polls, cancelled=True)

    async def cancel(self) -> None:
        """Stop polling and release the background task."""
        if self._task is None or self._task.done():
            return
        self._stopped = True
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "StatusPoller":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.cancel()

    async def run(self) -> PollOutcome:
        while True:
            self._polls += 1
            polls = self._polls
            try:
                view = await self._fetch(self._job_id)
            except PollingError as e:
                logger.warning("Polling job %s failed: %s", self._job_id, e)
                self._notify_error(STATUS_FETCH_FAILED)
                return PollOutcome(status=self._last_status, error=STATUS_FETCH_FAILED, polls=polls)

            self._last_status = view.status
            if view.status == JobStatus.COMPLETED:
                if view.summary is None:
                    self._notify_error(MISSING_SUMMARY)
                    return PollOutcome(status=view.status, error=MISSING_SUMMARY, polls=polls)
                if self._on_complete:
                    self._on_complete(view.summary)
                return PollOutcome(status=view.status, summary=view.summary, polls=polls)

            if view.status == JobStatus.ERROR:
                message = view.error or "An unknown error occurred during processing."
                self._notify_error(message)
                return PollOutcome(status=view.status, error=message, polls=polls)

            if self._on_update:
                self._on_update(view.status, phase_label(view.status), view.progress)
            await asyncio.sleep(self._interval)

    def _notify_error(self, message: str) -> None:
        if self._on_error:
            self._on_error(message)
