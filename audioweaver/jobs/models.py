"""Job, summary and supporting record models for the processing pipeline."""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from pydantic import BaseModel, Field
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUMMARIZING = "summarizing"
    CONVERTING = "converting"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


# Linear stage order; any non-terminal state may also fall into ERROR.
ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.ERROR}),
    JobStatus.PROCESSING: frozenset({JobStatus.SUMMARIZING, JobStatus.ERROR}),
    JobStatus.SUMMARIZING: frozenset({JobStatus.CONVERTING, JobStatus.ERROR}),
    JobStatus.CONVERTING: frozenset({JobStatus.COMPLETED, JobStatus.ERROR}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.ERROR: frozenset(),
}

STAGE_PROGRESS: Dict[JobStatus, int] = {
    JobStatus.PENDING: 0,
    JobStatus.PROCESSING: 20,
    JobStatus.SUMMARIZING: 40,
    JobStatus.CONVERTING: 70,
    JobStatus.COMPLETED: 100,
}

PHASE_LABELS: Dict[JobStatus, str] = {
    JobStatus.PENDING: "Queued for processing...",
    JobStatus.PROCESSING: "Extracting Text...",
    JobStatus.SUMMARIZING: "Generating Summary...",
    JobStatus.CONVERTING: "Creating Audio...",
    JobStatus.COMPLETED: "Summary Ready",
    JobStatus.ERROR: "Processing Failed",
}

# Fields the orchestrator may change after creation.
MUTABLE_JOB_FIELDS: FrozenSet[str] = frozenset({"status", "progress", "error", "completed_at"})


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def phase_label(status: JobStatus) -> str:
    return PHASE_LABELS.get(status, "")


class UserContext(BaseModel):
    """Optional guidance forwarded verbatim to the summarizer."""
    question: Optional[str] = None
    knowledge: Optional[str] = None
    interest: Optional[str] = None
    conversation: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((self.question, self.knowledge, self.interest, self.conversation))


class ProcessingJob(BaseModel):
    """Tracks one end-to-end request from uploaded documents to audio summary."""
    id: str = Field(default_factory=_new_id)
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    document_refs: List[str] = Field(default_factory=list)
    context: Optional[UserContext] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None


class Summary(BaseModel):
    """Artifact produced exactly once, when a job completes."""
    id: str = Field(default_factory=_new_id)
    title: str
    description: str
    text: str
    audio_url: str
    job_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Upload(BaseModel):
    """A stored source document."""
    id: str = Field(default_factory=_new_id)
    filename: str
    filepath: str
    size: int
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ApiKeys(BaseModel):
    id: str = Field(default_factory=_new_id)
    gemini: str = ""
    elevenlabs: str = ""
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Reflection(BaseModel):
    id: str = Field(default_factory=_new_id)
    summary_id: str
    pride: Optional[str] = None
    surprise: Optional[str] = None
    question: Optional[str] = None
    role: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class AudioNote(BaseModel):
    """A listener's note pinned to a position (seconds) in the audio."""
    id: str = Field(default_factory=_new_id)
    summary_id: str
    timestamp: int = Field(ge=0)
    text: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
