"""Contracts for the external capabilities the pipeline consumes.

The orchestrator only depends on these protocols; tests swap in stubs and
the application wires in the pdfplumber, Gemini and ElevenLabs clients.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from audioweaver.jobs.models import UserContext


@dataclass
class Narrative:
    """Summarizer output. Title and description may be left for the pipeline to derive."""

    text: str
    title: Optional[str] = None
    description: Optional[str] = None


class TextExtractor(Protocol):
    async def extract(self, path: str) -> str:
        """Return the plain text of the document stored at ``path``."""


class Summarizer(Protocol):
    async def summarize(self, text: str, context: Optional[UserContext] = None) -> Narrative:
        """Turn concatenated document text plus optional context into a narrative."""


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str) -> bytes:
        """Return encoded audio for ``text``."""
