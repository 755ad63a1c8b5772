"""Conversation routes.

Creation goes through the host first; the relay then persists the
conversation and announces it to every live viewer.
"""

import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from hostrelay.api.deps import gateway_failure_response, get_services, host_field
from hostrelay.errors import NotFoundError
from hostrelay.services.container import RelayServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversation", tags=["conversations"])


@router.post("/create", status_code=201)
async def create_conversation(
    services: RelayServices = Depends(get_services),
):
    """Open a conversation with the host and store it.

    Returns:
        The conversation record plus a confirmation message (201), or the
        host failure (502).
    """
    result = await services.gateway.create_conversation()
    if not result.ok:
        return gateway_failure_response("create conversation", result.error)

    conversation = await services.store.create_conversation(
        name=host_field(result.data, "name")
    )
    await services.broadcaster.publish(
        {"type": "conversation_created", "data": conversation}
    )
    logger.info("Conversation %s created", conversation["id"])
    return JSONResponse(
        status_code=201,
        content={**conversation, "message": "Conversation created successfully"},
    )


@router.post("/list")
async def list_conversations(
    services: RelayServices = Depends(get_services),
) -> list[dict]:
    """All conversations, newest first."""
    return await services.store.list_conversations()


@router.delete("/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: str,
    services: RelayServices = Depends(get_services),
) -> Response:
    """Delete a conversation with its messages, tasks and artifacts.

    Raises:
        NotFoundError: Unknown conversation (404).
    """
    if not await services.store.delete_conversation(conversation_id):
        raise NotFoundError("Conversation", conversation_id)
    await services.broadcaster.publish(
        {"type": "conversation_deleted", "data": {"id": conversation_id}}
    )
    return Response(status_code=204)
