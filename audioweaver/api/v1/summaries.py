"""Summary API - audio download, reflections and timestamped audio notes."""

import re

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse, PlainTextResponse

from audioweaver.api.deps import Services, get_services
from audioweaver.api.schemas import AudioNoteRequest, ReflectionRequest, SummaryView
from audioweaver.jobs.models import Summary

router = APIRouter(prefix="/summaries")

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\r\n]+')


async def _get_summary_or_404(summary_id: str, services: Services) -> Summary:
    summary = await services.store.get_summary(summary_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Summary not found")
    return summary


def _download_name(title: str) -> str:
    name = _UNSAFE_FILENAME_CHARS.sub(" ", title).strip() or "summary"
    return f"{name}.mp3"


@router.get("/{summary_id}", response_model=SummaryView)
async def get_summary(summary_id: str, services: Services = Depends(get_services)):
    return SummaryView.from_summary(await _get_summary_or_404(summary_id, services))


@router.get("/{summary_id}/audio/download")
async def download_audio(summary_id: str, services: Services = Depends(get_services)):
    summary = await _get_summary_or_404(summary_id, services)
    path = services.audio_store.resolve(summary.audio_url)
    if path is None:
        raise HTTPException(status_code=404, detail="Audio file not found")
    return FileResponse(path, media_type="audio/mpeg", filename=_download_name(summary.title))


@router.post("/{summary_id}/reflection", status_code=201)
async def save_reflection(
    summary_id: str,
    request: ReflectionRequest,
    services: Services = Depends(get_services),
):
    await _get_summary_or_404(summary_id, services)
    reflection = await services.store.create_reflection(summary_id, **request.model_dump())
    return {"id": reflection.id, "message": "Reflection saved successfully"}


@router.get("/{summary_id}/reflections")
async def list_reflections(summary_id: str, services: Services = Depends(get_services)):
    await _get_summary_or_404(summary_id, services)
    reflections = await services.store.list_reflections(summary_id)
    return {"reflections": [r.model_dump(mode="json") for r in reflections]}


@router.get("/{summary_id}/reflections/export", response_class=PlainTextResponse)
async def export_reflections(summary_id: str, services: Services = Depends(get_services)):
    """Plain-text export of the summary title and every reflection on it."""
    summary = await _get_summary_or_404(summary_id, services)
    reflections = await services.store.list_reflections(summary_id)

    lines = [f"Reflections on: {summary.title}", ""]
    if not reflections:
        lines.append("No reflections yet.")
    for n, reflection in enumerate(reflections, 1):
        lines.append(f"Reflection {n} ({reflection.created_at:%Y-%m-%d %H:%M})")
        for label, value in (
            ("What I'm proud of", reflection.pride),
            ("What surprised me", reflection.surprise),
            ("Question I still have", reflection.question),
            ("My role", reflection.role),
        ):
            if value:
                lines.append(f"  {label}: {value}")
        lines.append("")

    return PlainTextResponse(
        "\n".join(lines).rstrip() + "\n",
        headers={
            "Content-Disposition": f'attachment; filename="reflections-summary-{summary_id}.txt"'
        },
    )


@router.post("/{summary_id}/audio-notes", status_code=201)
async def create_audio_note(
    summary_id: str,
    request: AudioNoteRequest,
    services: Services = Depends(get_services),
):
    await _get_summary_or_404(summary_id, services)
    note = await services.store.create_audio_note(summary_id, request.timestamp, request.text)
    return note.model_dump(mode="json")


@router.get("/{summary_id}/audio-notes")
async def list_audio_notes(summary_id: str, services: Services = Depends(get_services)):
    await _get_summary_or_404(summary_id, services)
    notes = await services.store.list_audio_notes(summary_id)
    return {"notes": [n.model_dump(mode="json") for n in notes]}
