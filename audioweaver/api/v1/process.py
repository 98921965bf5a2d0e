"""Processing API - start a job for uploaded documents, poll its status."""

from fastapi import APIRouter, Depends, HTTPException

from audioweaver.api.deps import Services, get_services
from audioweaver.api.schemas import JobStatusView, ProcessRequest, ProcessResponse, SummaryView
from audioweaver.jobs.models import JobStatus, phase_label

router = APIRouter()


@router.post("/process", response_model=ProcessResponse, status_code=201)
async def start_processing(request: ProcessRequest, services: Services = Depends(get_services)):
    """Create a pending job and start its run in the background."""
    try:
        job = await services.orchestrator.create_job(request.upload_ids, request.context)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await services.dispatcher.submit(job.id)
    return ProcessResponse(
        job_id=job.id,
        status=job.status.value,
        message="Processing started. Poll GET /api/process/{id}/status for progress.",
    )


@router.get("/process/{job_id}/status", response_model=JobStatusView, response_model_exclude_none=True)
async def get_processing_status(job_id: str, services: Services = Depends(get_services)):
    """Current status and progress; includes the summary once completed."""
    job = await services.store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Processing job not found")

    view = JobStatusView(
        job_id=job.id,
        status=job.status,
        progress=job.progress,
        phase=phase_label(job.status),
    )

    if job.status == JobStatus.COMPLETED:
        summary = await services.store.get_summary_by_job_id(job.id)
        if summary is not None:
            view.summary = SummaryView.from_summary(summary)

    if job.status == JobStatus.ERROR:
        view.error = job.error or "Processing failed"

    return view
