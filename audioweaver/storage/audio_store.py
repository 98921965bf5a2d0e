"""Audio blob storage with URL mapping and TTL-based cleanup."""

import logging
import os
import time
import uuid
from typing import Optional

logger = logging.getLogger(__name__)

AUDIO_URL_PREFIX = "/audio/"

# Written when speech synthesis is unavailable so the summary still has audio.
PLACEHOLDER_AUDIO = b"\x00"


class AudioStore:
    """Stores synthesized audio as files and hands out /audio/<name> URLs."""

    def __init__(self, base_dir: str, ttl_hours: int = 0):
        self._base_dir = os.path.abspath(base_dir)
        os.makedirs(self._base_dir, exist_ok=True)
        self._ttl_seconds = ttl_hours * 3600

    @property
    def base_dir(self) -> str:
        return self._base_dir

    def save(self, audio: bytes) -> str:
        """Persist audio bytes. Returns the audio URL."""
        filename = f"audio-{uuid.uuid4().hex}.mp3"
        with open(os.path.join(self._base_dir, filename), "wb") as dst:
            dst.write(audio)
        return f"{AUDIO_URL_PREFIX}{filename}"

    def save_placeholder(self) -> str:
        return self.save(PLACEHOLDER_AUDIO)

    def resolve(self, url_or_filename: str) -> Optional[str]:
        """Map an audio URL or bare filename to an existing path, else None."""
        filename = url_or_filename
        if filename.startswith(AUDIO_URL_PREFIX):
            filename = filename[len(AUDIO_URL_PREFIX):]
        if not filename or os.path.basename(filename) != filename or filename in (".", ".."):
            return None
        path = os.path.join(self._base_dir, filename)
        return path if os.path.isfile(path) else None

    def cleanup_expired(self) -> int:
        """Remove audio files older than TTL. Returns count of removed files."""
        if self._ttl_seconds <= 0 or not os.path.exists(self._base_dir):
            return 0
        now = time.time()
        removed = 0
        for entry in os.listdir(self._base_dir):
            path = os.path.join(self._base_dir, entry)
            if not os.path.isfile(path):
                continue
            if now - os.path.getmtime(path) > self._ttl_seconds:
                os.remove(path)
                removed += 1
        if removed:
            logger.info("Removed %d expired audio file(s)", removed)
        return removed
