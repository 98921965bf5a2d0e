"""Audio Weaver backend - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from audioweaver.api.deps import Services, set_services
from audioweaver.api.v1.router import api_router, root_router
from audioweaver.config import APP_VERSION, Settings, settings
from audioweaver.errors import ConfigurationError, StorageError
from audioweaver.jobs.in_process_queue import InProcessQueue
from audioweaver.jobs.store import JobStore, build_job_store
from audioweaver.logging_config import configure_logging
from audioweaver.pipeline.orchestrator import PipelineOrchestrator
from audioweaver.services.extraction import PdfTextExtractor
from audioweaver.services.speech import ElevenLabsSynthesizer
from audioweaver.services.summarization import GeminiSummarizer
from audioweaver.storage.audio_store import AudioStore
from audioweaver.storage.upload_files import UploadFileStore

logger = logging.getLogger(__name__)


def build_services(
    config: Settings,
    *,
    store: Optional[JobStore] = None,
    extractor=None,
    summarizer_factory=None,
    synthesizer_factory=None,
) -> Services:
    """Wire the store, collaborators, orchestrator and dispatcher together."""
    store = store or build_job_store(config.job_store_backend)
    audio_store = AudioStore(config.audio_dir, ttl_hours=config.audio_ttl_hours)
    upload_files = UploadFileStore(config.uploads_dir, max_bytes=config.max_upload_bytes)

    if summarizer_factory is None:
        summarizer_factory = partial(
            GeminiSummarizer,
            model=config.gemini_model,
            api_base=config.gemini_api_base,
            timeout=config.collaborator_timeout_seconds,
        )
    if synthesizer_factory is None:
        synthesizer_factory = partial(
            ElevenLabsSynthesizer,
            voice_id=config.elevenlabs_voice_id,
            model_id=config.elevenlabs_model_id,
            api_base=config.elevenlabs_api_base,
            timeout=config.collaborator_timeout_seconds,
        )

    orchestrator = PipelineOrchestrator(
        store,
        audio_store,
        extractor or PdfTextExtractor(),
        summarizer_factory,
        synthesizer_factory,
        config=config,
    )
    dispatcher = InProcessQueue(
        run_fn=orchestrator.run,
        max_concurrent=config.max_concurrent_jobs,
        on_abandoned=orchestrator.abandon,
    )
    return Services(
        store=store,
        dispatcher=dispatcher,
        orchestrator=orchestrator,
        audio_store=audio_store,
        upload_files=upload_files,
        config=config,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    config: Settings = app.state.config
    configure_logging(config.log_level)

    logger.info("Starting Audio Weaver backend %s", APP_VERSION)
    logger.info("Job store backend: %s", config.job_store_backend)
    logger.info("Uploads dir: %s, audio dir: %s", config.uploads_dir, config.audio_dir)

    services = build_services(config, **app.state.overrides)
    await services.dispatcher.start()
    set_services(services)
    logger.info("Job dispatcher started (max %d concurrent jobs)", config.max_concurrent_jobs)

    yield

    logger.info("Shutting down Audio Weaver backend")
    await services.dispatcher.stop()
    services.audio_store.cleanup_expired()
    set_services(None)


async def _storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Storage is unavailable"})


async def _configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def create_app(config: Optional[Settings] = None, **overrides: Any) -> FastAPI:
    """Build the application.

    overrides are passed to build_services (store, extractor,
    summarizer_factory, synthesizer_factory) and exist for tests.
    """
    app = FastAPI(
        title="Audio Weaver",
        description="Turns uploaded PDF documents into narrated audio summaries",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.config = config or settings
    app.state.overrides = overrides

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StorageError, _storage_error_handler)
    app.add_exception_handler(ConfigurationError, _configuration_error_handler)

    app.include_router(root_router)
    app.include_router(api_router)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("audioweaver.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
