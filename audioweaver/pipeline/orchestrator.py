"""Document-to-audio pipeline orchestrator.

Drives one job through extraction -> summarization -> speech synthesis,
persisting status and progress after every stage:

    pending -> processing(20) -> summarizing(40) -> converting(70) -> completed(100)

Any non-terminal state can fall into ``error``. Per-document extraction
failures are absorbed as placeholder markers; the job only fails when no
document yields text. Summarization failures are fatal. Speech synthesis
failures (or a missing credential) fall back to placeholder audio and the
job still completes.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, Type

from audioweaver.credentials import Credentials, resolve_credentials
from audioweaver.errors import (
    AudioWeaverError,
    CollaboratorError,
    ConfigurationError,
    ExtractionError,
    PipelineError,
    StorageError,
    SummarizationError,
    SynthesisError,
)
from audioweaver.jobs.models import (
    STAGE_PROGRESS,
    JobStatus,
    ProcessingJob,
    Summary,
    Upload,
    UserContext,
    can_transition,
)
from audioweaver.jobs.store import JobStore
from audioweaver.pipeline.narrative import (
    concatenate_documents,
    placeholder_marker,
    split_narrative,
)
from audioweaver.services.base import Narrative, SpeechSynthesizer, Summarizer, TextExtractor
from audioweaver.storage.audio_store import AudioStore

logger = logging.getLogger(__name__)

INTERRUPTED_ERROR = "Processing was interrupted by a server shutdown"

SummarizerFactory = Callable[[str], Summarizer]
SynthesizerFactory = Callable[[str], SpeechSynthesizer]


async def _close(collaborator: Any) -> None:
    aclose = getattr(collaborator, "aclose", None)
    if aclose is not None:
        await aclose()


def normalize_document_refs(document_refs: Sequence[str]) -> List[str]:
    """Validate and de-duplicate document ids, keeping first-seen order."""
    if isinstance(document_refs, (str, bytes)) or not document_refs:
        raise ValueError("At least one document id is required")

    refs: List[str] = []
    for ref in document_refs:
        if not isinstance(ref, str) or not ref.strip():
            raise ValueError("Document ids must be non-empty strings")
        ref = ref.strip()
        if ref not in refs:
            refs.append(ref)
    return refs


class PipelineOrchestrator:
    """Owns every mutation of a job from creation until a terminal state."""

    def __init__(
        self,
        store: JobStore,
        audio_store: AudioStore,
        extractor: TextExtractor,
        summarizer_factory: SummarizerFactory,
        synthesizer_factory: SynthesizerFactory,
        *,
        config,
        timeout: Optional[float] = None,
    ):
        """
        config: object exposing gemini_api_key / elevenlabs_api_key, used
            together with stored keys to resolve credentials once per run.
        timeout: per collaborator call, in seconds. Defaults to
            config.collaborator_timeout_seconds.
        """
        self._store = store
        self._audio_store = audio_store
        self._extractor = extractor
        self._summarizer_factory = summarizer_factory
        self._synthesizer_factory = synthesizer_factory
        self._config = config
        self._timeout = timeout if timeout is not None else config.collaborator_timeout_seconds

    async def create_job(
        self, document_refs: Sequence[str], context: Optional[UserContext] = None
    ) -> ProcessingJob:
        """Validate input and record a pending job. Does not start the run."""
        refs = normalize_document_refs(document_refs)
        job = await self._store.create_job(refs, context)
        logger.info("Created job %s for %d document(s)", job.id, len(refs))
        return job

    async def run(self, job_id: str) -> Optional[Summary]:
        """Run a pending job to a terminal state. Never raises for job-level failures."""
        try:
            job = await self._store.get_job(job_id)
            if job is None:
                logger.error("Job %s not found, nothing to run", job_id)
                return None
            if job.status != JobStatus.PENDING:
                logger.warning("Job %s is already %s, not starting it again", job_id, job.status.value)
                return None

            logger.info("Starting processing for job %s", job_id)
            return await self._run_stages(job)
        except asyncio.CancelledError:
            logger.warning("Run for job %s cancelled during shutdown", job_id)
            await asyncio.shield(self._fail(job_id, INTERRUPTED_ERROR))
            raise
        except AudioWeaverError as e:
            logger.error("Job %s failed: %s", job_id, e)
            await self._fail(job_id, str(e) or type(e).__name__)
        except Exception as e:
            logger.exception("Unexpected error processing job %s", job_id)
            await self._fail(job_id, f"Unexpected error: {type(e).__name__}: {e}")
        return None

    async def abandon(self, job_id: str) -> None:
        """Fail a job whose run was never started, e.g. still queued at shutdown."""
        await self._fail(job_id, INTERRUPTED_ERROR)

    # ------------------------------------------------------------------
    # stages
    # ------------------------------------------------------------------

    async def _run_stages(self, job: ProcessingJob) -> Summary:
        job = await self._advance(job, JobStatus.PROCESSING)

        uploads = await self._store.get_uploads(job.document_refs)
        if not uploads:
            raise PipelineError("No uploads found for this job")
        logger.info(
            "Processing files: %s",
            ", ".join(f"{u.filename} ({round(u.size / 1024)} KB)" for u in uploads),
        )

        text, extracted = await self._extract_documents(job.id, uploads)
        if extracted == 0:
            raise PipelineError(
                f"Could not extract text from any of the {len(uploads)} document(s)"
            )

        job = await self._advance(job, JobStatus.SUMMARIZING)
        credentials = resolve_credentials(self._config, await self._store.get_api_keys())
        narrative = await self._summarize(text, job.context, credentials)
        title, description = split_narrative(narrative.text, narrative.title, narrative.description)

        job = await self._advance(job, JobStatus.CONVERTING)
        audio_url = await self._synthesize(job.id, narrative.text, credentials)

        summary = await self._store.create_summary(
            job_id=job.id,
            title=title,
            description=description,
            text=narrative.text,
            audio_url=audio_url,
        )
        logger.info("Created summary %s for job %s", summary.id, job.id)

        try:
            await self._advance(job, JobStatus.COMPLETED, completed_at=datetime.utcnow())
        except StorageError:
            # The summary exists, so the job must not be downgraded to error.
            logger.critical(
                "Job %s: summary %s stored but the completed state could not be persisted",
                job.id,
                summary.id,
                exc_info=True,
            )
        return summary

    async def _extract_documents(self, job_id: str, uploads: List[Upload]) -> Tuple[str, int]:
        """Extract every document concurrently. Returns (concatenated text, success count)."""
        results = await asyncio.gather(*(self._extract_one(job_id, u) for u in uploads))
        segments = [(upload.filename, body) for upload, (_, body) in zip(uploads, results)]
        extracted = sum(1 for ok, _ in results if ok)
        logger.info("Job %s: extracted text from %d of %d document(s)", job_id, extracted, len(uploads))
        return concatenate_documents(segments), extracted

    async def _extract_one(self, job_id: str, upload: Upload) -> Tuple[bool, str]:
        try:
            text = await self._call(
                self._extractor.extract(upload.filepath), ExtractionError, "Text extraction"
            )
        except Exception as e:
            logger.warning("Job %s: extraction failed for %s: %s", job_id, upload.filename, e)
            return False, placeholder_marker(upload.filename)

        text = (text or "").strip()
        if not text:
            logger.warning("Job %s: no extractable text in %s", job_id, upload.filename)
            return False, placeholder_marker(upload.filename)
        return True, text

    async def _summarize(
        self, text: str, context: Optional[UserContext], credentials: Credentials
    ) -> Narrative:
        if not credentials.gemini:
            raise ConfigurationError("Gemini API key is not available")

        summarizer = None
        try:
            summarizer = self._summarizer_factory(credentials.gemini)
            narrative = await self._call(
                summarizer.summarize(text, context), SummarizationError, "Summarization"
            )
        except Exception as e:
            raise SummarizationError(f"Failed to generate summary: {e}") from e
        finally:
            if summarizer is not None:
                await _close(summarizer)

        if isinstance(narrative, str):
            narrative = Narrative(text=narrative)
        if not narrative.text or not narrative.text.strip():
            raise SummarizationError("Failed to generate summary: empty narrative")
        return narrative

    async def _synthesize(self, job_id: str, text: str, credentials: Credentials) -> str:
        """Return the audio URL. Falls back to placeholder audio on any failure."""
        if not credentials.elevenlabs:
            logger.info("Job %s: ElevenLabs API key not available, storing placeholder audio", job_id)
            return await asyncio.to_thread(self._audio_store.save_placeholder)

        synthesizer = None
        try:
            synthesizer = self._synthesizer_factory(credentials.elevenlabs)
            audio = await self._call(synthesizer.synthesize(text), SynthesisError, "Speech synthesis")
            if not audio:
                raise SynthesisError("empty audio stream")
            return await asyncio.to_thread(self._audio_store.save, audio)
        except Exception as e:
            logger.warning("Job %s: speech synthesis failed (%s), storing placeholder audio", job_id, e)
            return await asyncio.to_thread(self._audio_store.save_placeholder)
        finally:
            if synthesizer is not None:
                await _close(synthesizer)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    async def _call(self, awaitable: Awaitable, error_cls: Type[CollaboratorError], what: str):
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise error_cls(f"{what} timed out after {self._timeout:g}s") from e

    async def _advance(self, job: ProcessingJob, status: JobStatus, **extra: Any) -> ProcessingJob:
        if not can_transition(job.status, status):
            raise PipelineError(f"Illegal transition {job.status.value} -> {status.value}")

        progress = max(job.progress, STAGE_PROGRESS[status])
        updated = await self._store.update_job(job.id, status=status, progress=progress, **extra)
        if updated is None:
            raise StorageError(f"Job {job.id} disappeared from the store")
        logger.info("Job %s: %s (%d%%)", job.id, status.value, progress)
        return updated

    async def _fail(self, job_id: str, message: str) -> None:
        """Record the error state. Escalates if even that cannot be stored."""
        try:
            job = await self._store.get_job(job_id)
            if job is None or job.status.is_terminal:
                logger.critical(
                    "Job %s cannot record error %r (job %s)",
                    job_id,
                    message,
                    "missing" if job is None else f"already {job.status.value}",
                )
                return
            await self._store.update_job(job_id, status=JobStatus.ERROR, error=message)
        except Exception:
            logger.critical(
                "Failed to persist error state for job %s (%s); job may appear stuck",
                job_id,
                message,
                exc_info=True,
            )
