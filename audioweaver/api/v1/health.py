"""Health check endpoint."""

import platform
import sys

from fastapi import APIRouter

from audioweaver.api.deps import current_services
from audioweaver.config import APP_VERSION, settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Service health, store backend and credential availability."""
    services = current_services()
    config = services.config if services else settings
    return {
        "status": "healthy" if services is not None else "starting",
        "version": APP_VERSION,
        "job_store_backend": config.job_store_backend,
        "active_jobs": services.dispatcher.active_jobs() if services else 0,
        "gemini_env_configured": bool(config.gemini_api_key),
        "elevenlabs_env_configured": bool(config.elevenlabs_api_key),
        "python_version": sys.version,
        "platform": platform.platform(),
    }
