"""Message routes: send (relayed to the host), list, and file download."""

import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from hostrelay.api.deps import gateway_failure_response, get_services
from hostrelay.api.schemas import MessageListRequest, MessageSendRequest
from hostrelay.errors import NotFoundError
from hostrelay.services.container import RelayServices
from hostrelay.utils.ids import generate_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/message", tags=["messages"])


@router.post("/send", status_code=201)
async def send_message(
    body: MessageSendRequest,
    services: RelayServices = Depends(get_services),
):
    """Relay a message to the host, store it and broadcast ``new_message``.

    The message is stored only after the host accepted it.

    Raises:
        NotFoundError: Unknown conversation (404); nothing is relayed.
    """
    if await services.store.get_conversation(body.conversation_id) is None:
        raise NotFoundError("Conversation", body.conversation_id)

    message_id = generate_id()
    host_payload = {
        "messageId": message_id,
        "contextId": body.conversation_id,
        "role": body.role,
        "parts": body.content,
    }
    if body.task_id:
        host_payload["taskId"] = body.task_id

    result = await services.gateway.send_message(host_payload)
    if not result.ok:
        return gateway_failure_response("send message", result.error)

    message = await services.store.create_message(
        conversation_id=body.conversation_id,
        role=body.role,
        content=body.content,
        task_id=body.task_id or None,
        message_id=message_id,
    )
    await services.broadcaster.publish({"type": "new_message", "data": message})
    return JSONResponse(
        status_code=201,
        content={"message": "Message sent and stored successfully", "data": message},
    )


@router.post("/list")
async def list_messages(
    body: MessageListRequest,
    services: RelayServices = Depends(get_services),
) -> list[dict]:
    """Messages of one conversation, oldest first, content decoded."""
    return await services.store.list_messages(body.conversation_id)


@router.get("/file/{file_id}")
async def get_file(
    file_id: str,
    services: RelayServices = Depends(get_services),
) -> Response:
    """Raw file bytes served with the stored mime type.

    Raises:
        NotFoundError: Unknown file id (404).
    """
    blob = await services.store.get_file(file_id)
    if blob is None:
        raise NotFoundError("File", file_id)
    return Response(content=blob["data"], media_type=blob["mime_type"])
