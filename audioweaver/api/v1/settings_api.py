"""API key settings - report which credentials are configured, store new ones."""

from fastapi import APIRouter, Depends

from audioweaver.api.deps import Services, get_services
from audioweaver.api.schemas import ApiKeysRequest, ApiKeysStatus, CredentialStatus
from audioweaver.credentials import Credentials, mask_key, resolve_credentials

router = APIRouter()


def _status(credentials: Credentials) -> ApiKeysStatus:
    return ApiKeysStatus(
        gemini=CredentialStatus(
            configured=credentials.gemini is not None,
            source=credentials.gemini_source,
            masked=mask_key(credentials.gemini),
        ),
        elevenlabs=CredentialStatus(
            configured=credentials.elevenlabs is not None,
            source=credentials.elevenlabs_source,
            masked=mask_key(credentials.elevenlabs),
        ),
    )


@router.get("/settings/api-keys", response_model=ApiKeysStatus)
async def get_api_keys(services: Services = Depends(get_services)):
    """Which credentials are available and where they come from. Never the raw keys."""
    stored = await services.store.get_api_keys()
    return _status(resolve_credentials(services.config, stored))


@router.post("/settings/api-keys", response_model=ApiKeysStatus)
async def save_api_keys(request: ApiKeysRequest, services: Services = Depends(get_services)):
    stored = await services.store.save_api_keys(
        gemini=request.gemini.strip(), elevenlabs=request.elevenlabs.strip()
    )
    return _status(resolve_credentials(services.config, stored))
