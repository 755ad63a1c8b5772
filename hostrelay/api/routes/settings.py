"""Runtime settings routes."""

from fastapi import APIRouter, Depends

from hostrelay.api.deps import get_services
from hostrelay.api.schemas import ApiKeyUpdateRequest
from hostrelay.services.container import RelayServices

router = APIRouter(tags=["settings"])


@router.post("/api_key/update")
async def update_api_key(
    body: ApiKeyUpdateRequest,
    services: RelayServices = Depends(get_services),
) -> dict:
    """Swap the API key used for subsequent host calls. Never echoes the key."""
    services.api_key.set(body.api_key)
    return {
        "status": "success",
        "message": "API key updated for future host communications.",
    }
