import asyncio
from collections import defaultdict
from types import SimpleNamespace

import pytest

from audioweaver.jobs.store import InMemoryJobStore
from audioweaver.pipeline.orchestrator import PipelineOrchestrator
from audioweaver.services.base import Narrative
from audioweaver.storage.audio_store import AudioStore

NARRATIVE = "Title Line\n\nDescription paragraph\n\nBody..."


class StubExtractor:
    """Returns canned text per file path; Exception values are raised."""

    def __init__(self, results=None, default=None, delays=None):
        self.results = results or {}
        self.default = default
        self.delays = delays or {}
        self.calls = []

    async def extract(self, path):
        self.calls.append(path)
        if path in self.delays:
            await asyncio.sleep(self.delays[path])
        result = self.results.get(path, self.default)
        if isinstance(result, Exception):
            raise result
        if result is None:
            raise FileNotFoundError(path)
        return result


class StubSummarizer:
    def __init__(self, narrative=NARRATIVE, error=None, delay=0.0):
        self.narrative = narrative
        self.error = error
        self.delay = delay
        self.calls = []
        self.closed = False

    async def summarize(self, text, context=None):
        self.calls.append((text, context))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        if isinstance(self.narrative, Narrative):
            return self.narrative
        return Narrative(text=self.narrative)

    async def aclose(self):
        self.closed = True


class StubSynthesizer:
    def __init__(self, audio=b"ID3-fake-mp3", error=None, delay=0.0):
        self.audio = audio
        self.error = error
        self.delay = delay
        self.calls = []

    async def synthesize(self, text):
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.audio


class RecordingStore(InMemoryJobStore):
    """In-memory store that remembers every (status, progress) a job passed through."""

    def __init__(self):
        super().__init__()
        self.history = defaultdict(list)

    async def create_job(self, document_refs, context=None):
        job = await super().create_job(document_refs, context)
        self.history[job.id].append((job.status, job.progress))
        return job

    async def update_job(self, job_id, **fields):
        job = await super().update_job(job_id, **fields)
        if job is not None:
            self.history[job_id].append((job.status, job.progress))
        return job


class FactoryRecorder:
    """Collaborator factory that hands out one instance and records the keys it was given."""

    def __init__(self, instance):
        self.instance = instance
        self.keys = []

    def __call__(self, api_key):
        self.keys.append(api_key)
        return self.instance


def make_config(**overrides):
    values = {
        "gemini_api_key": "test-gemini",
        "elevenlabs_api_key": "test-eleven",
        "collaborator_timeout_seconds": 5.0,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture()
def store():
    return RecordingStore()


@pytest.fixture()
def audio_store(tmp_path):
    return AudioStore(str(tmp_path / "audio"))


@pytest.fixture()
def build_orchestrator(store, audio_store):
    def _build(extractor, summarizer=None, synthesizer=None, config=None, timeout=None):
        summarizer_factory = FactoryRecorder(summarizer or StubSummarizer())
        synthesizer_factory = FactoryRecorder(synthesizer or StubSynthesizer())
        orchestrator = PipelineOrchestrator(
            store,
            audio_store,
            extractor,
            summarizer_factory,
            synthesizer_factory,
            config=config or make_config(),
            timeout=timeout,
        )
        orchestrator.summarizer_factory = summarizer_factory
        orchestrator.synthesizer_factory = synthesizer_factory
        return orchestrator

    return _build


async def add_uploads(store, *filenames):
    uploads = []
    for name in filenames:
        uploads.append(await store.create_upload(filename=name, filepath=f"/docs/{name}", size=2048))
    return uploads
