"""Task reconciler: merges host task-update events into durable task state.

The host delivers task updates as webhooks that may arrive out of order or
more than once. Reconciling the same event twice leaves the same stored
state (apart from ``updated_at``), and every reconciliation publishes one
canonical snapshot so viewers always converge on what the store holds.

Example:
    reconciler = TaskReconciler(store, broadcaster)
    snapshot = await reconciler.reconcile({
        "id": "task-1",
        "contextId": "conv-1",
        "status": "working",
        "artifacts": [{"artifactId": "a1", "content": [{"type": "text", "text": "hi"}]}],
    })
"""

import logging
from typing import Any, Protocol

from hostrelay.errors import InvalidEvent
from hostrelay.services.store import RelayStore

logger = logging.getLogger(__name__)

TASK_UPDATED = "task_updated"

_REQUIRED_FIELDS = ("id", "contextId", "status")


class EventPublisher(Protocol):
    """Anything that can fan an event out to live viewers."""

    async def publish(self, event: dict[str, Any]) -> int: ...


def _is_present(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def validate_task_event(event: Any) -> None:
    """Check the top-level shape of a task-update event.

    Raises:
        InvalidEvent: If the event is not an object, or id / contextId /
            status is missing, empty or not a string.
    """
    if not isinstance(event, dict):
        raise InvalidEvent(
            "Task update must be a JSON object", fields=list(_REQUIRED_FIELDS)
        )
    missing = [name for name in _REQUIRED_FIELDS if not _is_present(event.get(name))]
    if missing:
        raise InvalidEvent(
            "Missing required task fields: " + ", ".join(missing), fields=missing
        )


class TaskReconciler:
    """Applies task-update events to the store and publishes the result.

    Args:
        store: Durable store adapter.
        publisher: Fan-out broadcaster receiving ``task_updated`` events.
    """

    def __init__(self, store: RelayStore, publisher: EventPublisher) -> None:
        self._store = store
        self._publisher = publisher

    async def reconcile(self, event: dict[str, Any]) -> dict[str, Any]:
        """Merge one task-update event and broadcast the canonical snapshot.

        Args:
            event: ``{id, contextId, status, state_details?, artifacts?}``.

        Returns:
            The canonical task snapshot that was published.

        Raises:
            InvalidEvent: Top-level validation failed; nothing was written.
            StoreError: Persistence failed; nothing was published.
        """
        validate_task_event(event)

        task_id = event["id"]
        conversation_id = event["contextId"]
        status = event["status"]
        state_details = event.get("state_details")
        if state_details is None:
            state_details = status

        _, created = await self._store.upsert_task(
            task_id, conversation_id, status, state_details
        )
        logger.info(
            "Task %s %s (status=%s, conversation=%s)",
            task_id,
            "created" if created else "updated",
            status,
            conversation_id,
        )

        await self._apply_artifacts(task_id, event.get("artifacts"))

        snapshot = await self._store.task_snapshot(task_id)
        if snapshot is None:
            # Deleted between write and read (conversation removed concurrently).
            logger.warning("Task %s vanished before snapshot; nothing published", task_id)
            return {}

        await self._publisher.publish({"type": TASK_UPDATED, "data": snapshot})
        return snapshot

    async def _apply_artifacts(self, task_id: str, artifacts: Any) -> None:
        if artifacts is None:
            return
        if not isinstance(artifacts, list):
            logger.warning(
                "Ignoring non-list artifacts for task %s (got %s)",
                task_id,
                type(artifacts).__name__,
            )
            return

        for index, entry in enumerate(artifacts):
            if not isinstance(entry, dict):
                logger.warning(
                    "Skipping artifact #%d for task %s: not an object", index, task_id
                )
                continue
            ref = entry.get("artifactId")
            if not _is_present(ref):
                logger.warning(
                    "Skipping artifact #%d for task %s: missing artifactId", index, task_id
                )
                continue
            content = entry.get("content")
            if content is None:
                logger.warning(
                    "Skipping artifact %s for task %s: missing content", ref, task_id
                )
                continue
            await self._store.upsert_artifact(task_id, ref, content)
