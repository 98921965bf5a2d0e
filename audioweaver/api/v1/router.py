"""Aggregate all API routers."""

from fastapi import APIRouter
from audioweaver.api.v1.audio import router as audio_router
from audioweaver.api.v1.health import router as health_router
from audioweaver.api.v1.process import router as process_router
from audioweaver.api.v1.settings_api import router as settings_router
from audioweaver.api.v1.summaries import router as summaries_router
from audioweaver.api.v1.upload import router as upload_router

api_router = APIRouter(prefix="/api")
api_router.include_router(upload_router, tags=["upload"])
api_router.include_router(process_router, tags=["process"])
api_router.include_router(summaries_router, tags=["summaries"])
api_router.include_router(settings_router, tags=["settings"])

# Mounted at the root: GET /health and GET /audio/{filename}
root_router = APIRouter()
root_router.include_router(health_router, tags=["health"])
root_router.include_router(audio_router, tags=["audio"])
