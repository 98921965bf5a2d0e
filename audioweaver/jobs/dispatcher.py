"""Job dispatcher interface."""

from abc import ABC, abstractmethod


class JobDispatcher(ABC):
    """Starts background runs for jobs that already exist in the store."""

    @abstractmethod
    async def submit(self, job_id: str) -> str:
        """Schedule a run for the job. Returns immediately with job_id."""
        ...

    @abstractmethod
    def active_jobs(self) -> int:
        """Number of runs currently in flight."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the dispatcher (e.g., start worker loop)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher, cancelling in-flight runs."""
        ...
