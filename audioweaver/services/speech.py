"""Text-to-speech through the ElevenLabs streaming endpoint."""

import logging
from typing import Optional

import httpx

from audioweaver.errors import SynthesisError

logger = logging.getLogger(__name__)

VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.75}


class ElevenLabsSynthesizer:
    """Converts narrative text to MP3 audio with a fixed voice and model."""

    def __init__(
        self,
        api_key: str,
        *,
        voice_id: str = "9BWtsMINqrJLrRacOk9x",
        model_id: str = "eleven_flash_v2_5",
        api_base: str = "https://api.elevenlabs.io/v1",
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key:
            raise ValueError("ElevenLabs API key is required")
        self._api_key = api_key
        self._model_id = model_id
        self._url = f"{api_base.rstrip('/')}/text-to-speech/{voice_id}/stream"
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def synthesize(self, text: str) -> bytes:
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self._api_key,
        }
        payload = {
            "text": text,
            "model_id": self._model_id,
            "voice_settings": VOICE_SETTINGS,
        }

        logger.info("Converting %d chars to speech with ElevenLabs", len(text))
        try:
            async with self._client.stream("POST", self._url, headers=headers, json=payload) as response:
                if response.status_code != 200:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise SynthesisError(
                        f"ElevenLabs API error: {response.status_code} - {body[:500]}"
                    )
                audio = b"".join([chunk async for chunk in response.aiter_bytes()])
        except httpx.HTTPError as e:
            raise SynthesisError(f"ElevenLabs request failed: {e}") from e

        if not audio:
            raise SynthesisError("No audio returned from ElevenLabs API")
        return audio
