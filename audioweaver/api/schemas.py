"""Request and response bodies shared by the API and the status poller."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from audioweaver.jobs.models import JobStatus, Summary, UserContext


class ProcessRequest(BaseModel):
    upload_ids: List[str] = Field(min_length=1)
    context: Optional[UserContext] = None


class ProcessResponse(BaseModel):
    job_id: str
    status: str
    message: str


class SummaryView(BaseModel):
    id: str
    title: str
    description: str
    text: str
    audio_url: str
    created_at: datetime

    @classmethod
    def from_summary(cls, summary: Summary) -> "SummaryView":
        return cls(
            id=summary.id,
            title=summary.title,
            description=summary.description,
            text=summary.text,
            audio_url=summary.audio_url,
            created_at=summary.created_at,
        )


class JobStatusView(BaseModel):
    job_id: str
    status: JobStatus
    progress: int
    phase: str = ""
    summary: Optional[SummaryView] = None
    error: Optional[str] = None


class UploadResponse(BaseModel):
    upload_ids: List[str]


class ApiKeysRequest(BaseModel):
    gemini: str = Field(min_length=1)
    elevenlabs: str = Field(min_length=1)


class CredentialStatus(BaseModel):
    configured: bool
    source: Optional[str] = None
    masked: Optional[str] = None


class ApiKeysStatus(BaseModel):
    gemini: CredentialStatus
    elevenlabs: CredentialStatus


class ReflectionRequest(BaseModel):
    pride: Optional[str] = None
    surprise: Optional[str] = None
    question: Optional[str] = None
    role: Optional[str] = None


class AudioNoteRequest(BaseModel):
    timestamp: int = Field(ge=0)
    text: str = Field(min_length=1)
