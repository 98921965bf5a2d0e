"""Vendor credential resolution.

Environment variables take precedence over keys saved through the settings
API. Blank values count as absent; nothing is ever replaced by a placeholder.
"""

from dataclasses import dataclass
from typing import Optional

from audioweaver.jobs.models import ApiKeys


@dataclass(frozen=True)
class Credentials:
    gemini: Optional[str] = None
    elevenlabs: Optional[str] = None
    gemini_source: Optional[str] = None
    elevenlabs_source: Optional[str] = None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _pick(env_value: Optional[str], stored_value: Optional[str]):
    env_value = _clean(env_value)
    if env_value:
        return env_value, "environment"
    stored_value = _clean(stored_value)
    if stored_value:
        return stored_value, "stored"
    return None, None


def resolve_credentials(settings, stored: Optional[ApiKeys]) -> Credentials:
    """Resolve credentials from (settings, persisted keys). Pure function."""
    gemini, gemini_source = _pick(
        settings.gemini_api_key, stored.gemini if stored else None
    )
    elevenlabs, elevenlabs_source = _pick(
        settings.elevenlabs_api_key, stored.elevenlabs if stored else None
    )
    return Credentials(
        gemini=gemini,
        elevenlabs=elevenlabs,
        gemini_source=gemini_source,
        elevenlabs_source=elevenlabs_source,
    )


def mask_key(value: Optional[str]) -> Optional[str]:
    """Show only the last four characters of a key."""
    if not value:
        return None
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]
