"""Service wiring for the API routers.

main.py installs the services during lifespan; routes pull them in through
``get_services`` and answer 503 until that has happened.
"""

from dataclasses import dataclass
from typing import Any, Optional

from fastapi import HTTPException

from audioweaver.jobs.dispatcher import JobDispatcher
from audioweaver.jobs.store import JobStore
from audioweaver.pipeline.orchestrator import PipelineOrchestrator
from audioweaver.storage.audio_store import AudioStore
from audioweaver.storage.upload_files import UploadFileStore


@dataclass
class Services:
    store: JobStore
    dispatcher: JobDispatcher
    orchestrator: PipelineOrchestrator
    audio_store: AudioStore
    upload_files: UploadFileStore
    config: Any


_services: Optional[Services] = None


def set_services(services: Optional[Services]) -> None:
    global _services
    _services = services


def get_services() -> Services:
    if _services is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return _services


def current_services() -> Optional[Services]:
    return _services
