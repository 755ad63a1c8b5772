"""Host webhook for files produced by agents."""

import base64
import binascii
import logging

from fastapi import APIRouter, Depends

from hostrelay.api.deps import get_services
from hostrelay.api.schemas import FileReceivedRequest
from hostrelay.errors import InvalidRequest
from hostrelay.services.container import RelayServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/host", tags=["files"])


@router.post("/file_received")
async def file_received(
    body: FileReceivedRequest,
    services: RelayServices = Depends(get_services),
) -> dict:
    """Store a base64-encoded file sent by the host.

    Raises:
        InvalidRequest: ``bytes`` is not valid base64 (400).
        ConflictError: ``file_id`` is already taken (409).
    """
    try:
        data = base64.b64decode(body.bytes, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidRequest(
            f"Invalid base64 data in 'bytes' field: {e}", fields=["bytes"]
        ) from e

    stored = await services.store.create_file(
        name=body.name,
        mime_type=body.mime_type,
        data=data,
        file_id=body.file_id or None,
    )
    logger.info("Stored file %s (%s, %d bytes)", stored["id"], stored["mime_type"], len(data))
    return {"status": "file_received", "file_id": stored["id"]}
