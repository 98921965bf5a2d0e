"""Narrative summaries through the Gemini generateContent HTTP API."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from audioweaver.errors import SummarizationError
from audioweaver.jobs.models import UserContext
from audioweaver.services.base import Narrative

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are tasked with creating an immersive "deep dive" summary of the provided document content, in the tone and style of a podcast episode.

Instructions:
1. Begin with a short title on its own line, followed by a one-paragraph teaser that sets the stage and sparks curiosity about the topic.
2. Analyze and synthesize the key information, main arguments, and most significant points from the text. Incorporate any user-provided context about their exploration questions, key interests, or desired conversation starters to shape the narrative's focus.
3. Weave these insights into a compelling, conversational narrative that guides a listener through the big ideas, discoveries, and nuances of the material.
4. Structure the summary logically: start with context, explore the main themes, and finish with a succinct, thoughtful takeaway.
5. Use an accessible tone. Avoid jargon, or briefly explain it when needed.
6. Represent the source material accurately and faithfully.
7. Strict constraint: the summary MUST NOT exceed 1000 words.
"""

GENERATION_CONFIG = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 2048,
}

SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]


def build_context_prompt(context: Optional[UserContext]) -> str:
    """Render only the context fields the user actually filled in."""
    if context is None or context.is_empty():
        return ""

    lines = ["USER CONTEXT:"]
    if context.question:
        lines.append(f"Question being explored: {context.question}")
    if context.knowledge:
        lines.append(f"What user wants others to know: {context.knowledge}")
    if context.interest:
        lines.append(f"What caught user's attention: {context.interest}")
    if context.conversation:
        lines.append(f"Conversation user wants to start: {context.conversation}")
    lines.append("")
    lines.append("Please consider this context when generating the summary.")
    return "\n".join(lines) + "\n\n"


def build_prompt(text: str, context: Optional[UserContext] = None) -> str:
    return f"{SYSTEM_PROMPT}\n\n{build_context_prompt(context)}DOCUMENT CONTENT:\n{text}"


def _response_text(body: Dict[str, Any]) -> str:
    candidates: List[Dict[str, Any]] = body.get("candidates") or []
    if not candidates:
        reason = (body.get("promptFeedback") or {}).get("blockReason")
        if reason:
            raise SummarizationError(f"Gemini blocked the prompt: {reason}")
        raise SummarizationError("Gemini returned no candidates")

    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts).strip()
    if not text:
        finish = candidates[0].get("finishReason", "unknown")
        raise SummarizationError(f"Gemini returned an empty response (finish reason: {finish})")
    return text


class GeminiSummarizer:
    """Summarizer backed by a Gemini model."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gemini-2.0-flash-lite",
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key:
            raise ValueError("Gemini API key is required")
        self._api_key = api_key
        self._url = f"{api_base.rstrip('/')}/models/{model}:generateContent"
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def summarize(self, text: str, context: Optional[UserContext] = None) -> Narrative:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": build_prompt(text, context)}]}],
            "generationConfig": GENERATION_CONFIG,
            "safetySettings": SAFETY_SETTINGS,
        }

        logger.info("Generating summary with Gemini (%d chars of input)", len(text))
        try:
            response = await self._client.post(
                self._url,
                params={"key": self._api_key},
                json=payload,
            )
        except httpx.HTTPError as e:
            raise SummarizationError(f"Gemini request failed: {e}") from e

        if response.status_code != 200:
            raise SummarizationError(
                f"Gemini API error: {response.status_code} - {response.text[:500]}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise SummarizationError("Gemini returned invalid JSON") from e

        return Narrative(text=_response_text(body))
