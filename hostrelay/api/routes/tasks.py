"""Task routes: listing for the UI and the host's task-update webhook."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from hostrelay.api.deps import get_services
from hostrelay.api.schemas import TaskListRequest
from hostrelay.services.container import RelayServices

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tasks"])


@router.post("/task/list")
async def list_tasks(
    body: TaskListRequest | None = None,
    services: RelayServices = Depends(get_services),
) -> list[dict]:
    """Hydrated task snapshots, newest first, optionally for one conversation."""
    conversation_id = body.conversation_id if body else None
    return await services.store.list_tasks(conversation_id)


@router.post("/host/task_update")
async def task_update(
    event: Any = Body(None),
    services: RelayServices = Depends(get_services),
) -> dict:
    """Webhook: merge a host task update and broadcast the snapshot.

    Raises:
        InvalidEvent: id, contextId or status missing (400).
        StoreError: Persistence failed (500); nothing is broadcast.
    """
    await services.reconciler.reconcile(event)
    return {"status": "received", "taskId": event["id"]}
