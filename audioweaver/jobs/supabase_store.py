"""Supabase-backed job store.

The supabase-py client is synchronous, so every query runs in a worker
thread. Any client failure is re-raised as StorageError.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

from audioweaver.errors import StorageError
from audioweaver.jobs.models import (
    ApiKeys,
    AudioNote,
    ProcessingJob,
    Reflection,
    Summary,
    Upload,
)
from audioweaver.jobs.store import JobStore, check_job_updates

logger = logging.getLogger(__name__)

T = TypeVar("T")

JOBS_TABLE = "processing_jobs"
SUMMARIES_TABLE = "summaries"
UPLOADS_TABLE = "uploads"
API_KEYS_TABLE = "api_keys"
REFLECTIONS_TABLE = "reflections"
AUDIO_NOTES_TABLE = "audio_notes"


def _job_to_row(job: ProcessingJob) -> Dict[str, Any]:
    row = job.model_dump(mode="json")
    row["upload_ids"] = row.pop("document_refs")
    return row


def _row_to_job(row: Dict[str, Any]) -> ProcessingJob:
    data = dict(row)
    data["document_refs"] = [str(ref) for ref in data.pop("upload_ids", None) or []]
    return ProcessingJob.model_validate(data)


def _summary_to_row(summary: Summary) -> Dict[str, Any]:
    row = summary.model_dump(mode="json")
    row["processing_job_id"] = row.pop("job_id")
    return row


def _row_to_summary(row: Dict[str, Any]) -> Summary:
    data = dict(row)
    data["job_id"] = data.pop("processing_job_id")
    return Summary.model_validate(data)


class SupabaseJobStore(JobStore):
    """Persists pipeline records in Supabase (Postgres) tables."""

    def __init__(self, client):
        self._client = client

    async def _execute(
        self,
        action: str,
        query: Callable[[], Any],
        convert: Optional[Callable[[Dict[str, Any]], T]] = None,
    ) -> List[Any]:
        """Run ``query`` off the event loop; ``convert`` turns each row into a record."""
        try:
            response = await asyncio.to_thread(query)
        except Exception as e:
            logger.error("Supabase %s failed: %s", action, e)
            raise StorageError(f"Failed to {action}: {e}") from e

        rows = response.data or []
        if convert is None:
            return rows
        try:
            return [convert(row) for row in rows]
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Supabase %s returned a malformed row: %s", action, e)
            raise StorageError(f"Failed to {action}: malformed row ({e})") from e

    def _table(self, name: str):
        return self._client.table(name)

    # --- jobs -----------------------------------------------------------

    async def create_job(self, document_refs, context=None):
        job = ProcessingJob(document_refs=list(document_refs), context=context)
        jobs = await self._execute(
            "create job",
            lambda: self._table(JOBS_TABLE).insert(_job_to_row(job)).execute(),
            _row_to_job,
        )
        return jobs[0] if jobs else job

    async def get_job(self, job_id):
        jobs = await self._execute(
            "get job",
            lambda: self._table(JOBS_TABLE).select("*").eq("id", job_id).limit(1).execute(),
            _row_to_job,
        )
        return jobs[0] if jobs else None

    async def update_job(self, job_id, **fields):
        check_job_updates(fields)
        payload = {}
        for key, value in fields.items():
            if isinstance(value, datetime):
                value = value.isoformat()
            elif hasattr(value, "value"):
                value = value.value
            payload[key] = value
        jobs = await self._execute(
            "update job",
            lambda: self._table(JOBS_TABLE).update(payload).eq("id", job_id).execute(),
            _row_to_job,
        )
        return jobs[0] if jobs else None

    # --- summaries ------------------------------------------------------

    async def create_summary(self, *, job_id, title, description, text, audio_url):
        summary = Summary(
            job_id=job_id,
            title=title,
            description=description,
            text=text,
            audio_url=audio_url,
        )
        summaries = await self._execute(
            "create summary",
            lambda: self._table(SUMMARIES_TABLE).insert(_summary_to_row(summary)).execute(),
            _row_to_summary,
        )
        return summaries[0] if summaries else summary

    async def get_summary(self, summary_id):
        summaries = await self._execute(
            "get summary",
            lambda: self._table(SUMMARIES_TABLE).select("*").eq("id", summary_id).limit(1).execute(),
            _row_to_summary,
        )
        return summaries[0] if summaries else None

    async def get_summary_by_job_id(self, job_id):
        summaries = await self._execute(
            "get summary",
            lambda: (
                self._table(SUMMARIES_TABLE)
                .select("*")
                .eq("processing_job_id", job_id)
                .limit(1)
                .execute()
            ),
            _row_to_summary,
        )
        return summaries[0] if summaries else None

    # --- uploads --------------------------------------------------------

    async def create_upload(self, filename, filepath, size):
        upload = Upload(filename=filename, filepath=filepath, size=size)
        uploads = await self._execute(
            "create upload",
            lambda: self._table(UPLOADS_TABLE).insert(upload.model_dump(mode="json")).execute(),
            Upload.model_validate,
        )
        return uploads[0] if uploads else upload

    async def get_upload(self, upload_id):
        uploads = await self._execute(
            "get upload",
            lambda: self._table(UPLOADS_TABLE).select("*").eq("id", upload_id).limit(1).execute(),
            Upload.model_validate,
        )
        return uploads[0] if uploads else None

    async def get_uploads(self, upload_ids):
        if not upload_ids:
            return []
        uploads = await self._execute(
            "get uploads",
            lambda: self._table(UPLOADS_TABLE).select("*").in_("id", list(upload_ids)).execute(),
            Upload.model_validate,
        )
        by_id = {upload.id: upload for upload in uploads}
        return [by_id[upload_id] for upload_id in upload_ids if upload_id in by_id]

    # --- api keys -------------------------------------------------------

    async def get_api_keys(self):
        keys = await self._execute(
            "get api keys",
            lambda: (
                self._table(API_KEYS_TABLE)
                .select("*")
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            ),
            ApiKeys.model_validate,
        )
        return keys[0] if keys else None

    async def save_api_keys(self, gemini, elevenlabs):
        keys = ApiKeys(gemini=gemini, elevenlabs=elevenlabs)
        saved = await self._execute(
            "save api keys",
            lambda: self._table(API_KEYS_TABLE).insert(keys.model_dump(mode="json")).execute(),
            ApiKeys.model_validate,
        )
        # Only one pair is kept
        await self._execute(
            "clear api keys",
            lambda: self._table(API_KEYS_TABLE).delete().neq("id", keys.id).execute(),
        )
        return saved[0] if saved else keys

    # --- reflections and audio notes ------------------------------------

    async def create_reflection(self, summary_id, **fields):
        reflection = Reflection(summary_id=summary_id, **fields)
        reflections = await self._execute(
            "create reflection",
            lambda: self._table(REFLECTIONS_TABLE).insert(reflection.model_dump(mode="json")).execute(),
            Reflection.model_validate,
        )
        return reflections[0] if reflections else reflection

    async def list_reflections(self, summary_id):
        return await self._execute(
            "list reflections",
            lambda: (
                self._table(REFLECTIONS_TABLE)
                .select("*")
                .eq("summary_id", summary_id)
                .order("created_at")
                .execute()
            ),
            Reflection.model_validate,
        )

    async def create_audio_note(self, summary_id, timestamp, text):
        note = AudioNote(summary_id=summary_id, timestamp=timestamp, text=text)
        notes = await self._execute(
            "create audio note",
            lambda: self._table(AUDIO_NOTES_TABLE).insert(note.model_dump(mode="json")).execute(),
            AudioNote.model_validate,
        )
        return notes[0] if notes else note

    async def list_audio_notes(self, summary_id):
        return await self._execute(
            "list audio notes",
            lambda: (
                self._table(AUDIO_NOTES_TABLE)
                .select("*")
                .eq("summary_id", summary_id)
                .order("timestamp")
                .execute()
            ),
            AudioNote.model_validate,
        )
