"""Job store interface and in-memory implementation."""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from audioweaver.jobs.models import (
    MUTABLE_JOB_FIELDS,
    ApiKeys,
    AudioNote,
    ProcessingJob,
    Reflection,
    Summary,
    Upload,
    UserContext,
)


def check_job_updates(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - MUTABLE_JOB_FIELDS
    if unknown:
        raise ValueError(f"Cannot update immutable job fields: {sorted(unknown)}")


class JobStore(ABC):
    """Durable storage for jobs, summaries and the records around them.

    Backends raise StorageError when the underlying storage cannot be reached.
    """

    # --- jobs -----------------------------------------------------------

    @abstractmethod
    async def create_job(
        self, document_refs: List[str], context: Optional[UserContext] = None
    ) -> ProcessingJob:
        """Create a job in the pending state with progress 0."""
        ...

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[ProcessingJob]:
        ...

    @abstractmethod
    async def update_job(self, job_id: str, **fields: Any) -> Optional[ProcessingJob]:
        """Apply a partial update. Returns None if the job does not exist."""
        ...

    # --- summaries ------------------------------------------------------

    @abstractmethod
    async def create_summary(
        self, *, job_id: str, title: str, description: str, text: str, audio_url: str
    ) -> Summary:
        ...

    @abstractmethod
    async def get_summary(self, summary_id: str) -> Optional[Summary]:
        ...

    @abstractmethod
    async def get_summary_by_job_id(self, job_id: str) -> Optional[Summary]:
        ...

    # --- uploads --------------------------------------------------------

    @abstractmethod
    async def create_upload(self, filename: str, filepath: str, size: int) -> Upload:
        ...

    @abstractmethod
    async def get_upload(self, upload_id: str) -> Optional[Upload]:
        ...

    async def get_uploads(self, upload_ids: List[str]) -> List[Upload]:
        """Fetch uploads in the given order, silently omitting unknown ids."""
        uploads = []
        for upload_id in upload_ids:
            upload = await self.get_upload(upload_id)
            if upload is not None:
                uploads.append(upload)
        return uploads

    # --- api keys -------------------------------------------------------

    @abstractmethod
    async def get_api_keys(self) -> Optional[ApiKeys]:
        ...

    @abstractmethod
    async def save_api_keys(self, gemini: str, elevenlabs: str) -> ApiKeys:
        """Replace the stored key pair."""
        ...

    # --- reflections and audio notes ------------------------------------

    @abstractmethod
    async def create_reflection(self, summary_id: str, **fields: Optional[str]) -> Reflection:
        ...

    @abstractmethod
    async def list_reflections(self, summary_id: str) -> List[Reflection]:
        ...

    @abstractmethod
    async def create_audio_note(self, summary_id: str, timestamp: int, text: str) -> AudioNote:
        ...

    @abstractmethod
    async def list_audio_notes(self, summary_id: str) -> List[AudioNote]:
        """Notes for a summary ordered by their audio timestamp."""
        ...


class InMemoryJobStore(JobStore):
    """Process-local store. Records are copied in and out, never shared."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._jobs: Dict[str, ProcessingJob] = {}
        self._summaries: Dict[str, Summary] = {}
        self._uploads: Dict[str, Upload] = {}
        self._api_keys: Optional[ApiKeys] = None
        self._reflections: List[Reflection] = []
        self._audio_notes: List[AudioNote] = []

    async def create_job(self, document_refs, context=None):
        job = ProcessingJob(document_refs=list(document_refs), context=context)
        async with self._lock:
            self._jobs[job.id] = job
        return job.model_copy(deep=True)

    async def get_job(self, job_id):
        async with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    async def update_job(self, job_id, **fields):
        check_job_updates(fields)
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            updated = job.model_copy(update=fields)
            # Re-validate so a bad progress/status never lands in the store
            updated = ProcessingJob.model_validate(updated.model_dump())
            self._jobs[job_id] = updated
            return updated.model_copy(deep=True)

    async def create_summary(self, *, job_id, title, description, text, audio_url):
        summary = Summary(
            job_id=job_id,
            title=title,
            description=description,
            text=text,
            audio_url=audio_url,
        )
        async with self._lock:
            self._summaries[summary.id] = summary
        return summary.model_copy()

    async def get_summary(self, summary_id):
        async with self._lock:
            summary = self._summaries.get(summary_id)
            return summary.model_copy() if summary else None

    async def get_summary_by_job_id(self, job_id):
        async with self._lock:
            for summary in self._summaries.values():
                if summary.job_id == job_id:
                    return summary.model_copy()
        return None

    async def create_upload(self, filename, filepath, size):
        upload = Upload(filename=filename, filepath=filepath, size=size)
        async with self._lock:
            self._uploads[upload.id] = upload
        return upload.model_copy()

    async def get_upload(self, upload_id):
        async with self._lock:
            upload = self._uploads.get(upload_id)
            return upload.model_copy() if upload else None

    async def get_api_keys(self):
        async with self._lock:
            return self._api_keys.model_copy() if self._api_keys else None

    async def save_api_keys(self, gemini, elevenlabs):
        keys = ApiKeys(gemini=gemini, elevenlabs=elevenlabs, created_at=datetime.utcnow())
        async with self._lock:
            self._api_keys = keys
        return keys.model_copy()

    async def create_reflection(self, summary_id, **fields):
        reflection = Reflection(summary_id=summary_id, **fields)
        async with self._lock:
            self._reflections.append(reflection)
        return reflection.model_copy()

    async def list_reflections(self, summary_id):
        async with self._lock:
            return [r.model_copy() for r in self._reflections if r.summary_id == summary_id]

    async def create_audio_note(self, summary_id, timestamp, text):
        note = AudioNote(summary_id=summary_id, timestamp=timestamp, text=text)
        async with self._lock:
            self._audio_notes.append(note)
        return note.model_copy()

    async def list_audio_notes(self, summary_id):
        async with self._lock:
            notes = [n.model_copy() for n in self._audio_notes if n.summary_id == summary_id]
        return sorted(notes, key=lambda n: n.timestamp)


def build_job_store(backend: str) -> JobStore:
    """Create the store selected by JOB_STORE_BACKEND ("memory" or "supabase")."""
    if backend == "memory":
        return InMemoryJobStore()
    if backend == "supabase":
        from audioweaver.db.supabase_client import get_supabase
        from audioweaver.jobs.supabase_store import SupabaseJobStore

        return SupabaseJobStore(get_supabase())
    raise ValueError(f"Unknown job store backend: {backend!r}")
