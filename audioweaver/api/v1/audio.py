"""Serves stored audio blobs referenced by Summary.audio_url."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from audioweaver.api.deps import Services, get_services

router = APIRouter()


@router.get("/audio/{filename}")
async def get_audio(filename: str, services: Services = Depends(get_services)):
    path = services.audio_store.resolve(filename)
    if path is None:
        raise HTTPException(status_code=404, detail="Audio file not found")
    return FileResponse(path, media_type="audio/mpeg")
