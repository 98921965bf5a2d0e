"""Document upload API.

POST /api/upload - receive one or more PDF files (multipart field "files"),
store them on disk and record an upload per file.
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from audioweaver.api.deps import Services, get_services
from audioweaver.api.schemas import UploadResponse
from audioweaver.storage.upload_files import UploadTooLarge

logger = logging.getLogger(__name__)

router = APIRouter()

_PDF_CONTENT_TYPE = "application/pdf"


def _discard(services: Services, paths: List[str]) -> None:
    for path in paths:
        services.upload_files.remove(path)


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_documents(
    files: List[UploadFile] = File(...),
    services: Services = Depends(get_services),
):
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")

    max_files = services.config.max_upload_files
    if len(files) > max_files:
        raise HTTPException(status_code=400, detail=f"At most {max_files} files per upload")

    for file in files:
        if file.content_type != _PDF_CONTENT_TYPE:
            raise HTTPException(status_code=400, detail="Only PDF files are allowed")

    logger.info("Received %d file(s) for upload", len(files))
    saved_paths: List[str] = []
    upload_ids: List[str] = []
    try:
        for file in files:
            filename = file.filename or "document.pdf"
            path, size = await asyncio.to_thread(
                services.upload_files.save_stream, file.file, filename
            )
            saved_paths.append(path)
            upload = await services.store.create_upload(filename=filename, filepath=path, size=size)
            logger.info("Stored upload %s: %s (%d KB)", upload.id, filename, round(size / 1024))
            upload_ids.append(upload.id)
    except UploadTooLarge as e:
        _discard(services, saved_paths)
        raise HTTPException(status_code=413, detail=str(e))
    except Exception:
        _discard(services, saved_paths)
        raise
    finally:
        for file in files:
            await file.close()

    return UploadResponse(upload_ids=upload_ids)
