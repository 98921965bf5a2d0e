"""Service-role Supabase client backing the durable job store.

Only ``build_job_store("supabase")`` reaches this module; the in-memory
backend never imports supabase.
"""

from supabase import create_client, Client
from audioweaver.config import settings
from audioweaver.errors import ConfigurationError

_client: Client | None = None


def get_supabase() -> Client:
    """Return the shared client, creating it from SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY."""
    global _client
    if _client is None:
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise ConfigurationError(
                "JOB_STORE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY"
            )
        _client = create_client(
            settings.supabase_url,
            settings.supabase_service_role_key,
        )
    return _client
