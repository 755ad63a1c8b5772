"""Durable store adapter for conversations, messages, tasks, artifacts, agents and files.

Thin layer between the ingress handlers / reconciler and the SQLAlchemy
models. Every public method runs in its own session and transaction and
returns plain dicts (canonical records), never ORM instances.

Opaque fields are stored as serialized JSON text. They are decoded only when
a canonical record is built; a payload that no longer parses is replaced by a
visible placeholder and logged, so one corrupt row never hides the others.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hostrelay.db.models import (
    Agent,
    Artifact,
    Conversation,
    FileBlob,
    Message,
    Task,
)
from hostrelay.errors import ConflictError, DecodeError, StoreError
from hostrelay.utils.clock import utc_now_iso
from hostrelay.utils.ids import generate_id
from hostrelay.utils.payloads import (
    content_placeholder,
    decode_payload,
    encode_payload,
    state_details_placeholder,
)

logger = logging.getLogger(__name__)


def _conversation_record(row: Conversation) -> dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name,
        "is_active": bool(row.is_active),
        "created_at": row.created_at,
    }


def _agent_record(row: Agent) -> dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "icon": row.icon,
        "url": row.url,
        "created_at": row.created_at,
    }


def _message_record(row: Message) -> dict[str, Any]:
    try:
        content = decode_payload(row.content)
    except DecodeError:
        logger.warning("Could not decode content for message %s", row.id)
        content = content_placeholder("message")
    return {
        "id": row.id,
        "conversation_id": row.conversation_id,
        "task_id": row.task_id,
        "role": row.role,
        "content": content,
        "created_at": row.created_at,
    }


def _artifact_record(row: Artifact) -> dict[str, Any]:
    try:
        content = decode_payload(row.content)
    except DecodeError:
        logger.warning(
            "Could not decode content for artifact %s (task %s)", row.id, row.task_id
        )
        content = content_placeholder("artifact")
    return {
        "id": row.id,
        "task_id": row.task_id,
        "artifact_id_ref": row.artifact_id_ref,
        "content": content,
        "created_at": row.created_at,
    }


def _task_record(row: Task, artifacts: list[Artifact]) -> dict[str, Any]:
    try:
        state_details = decode_payload(row.state_details)
    except DecodeError:
        logger.warning("Could not decode state_details for task %s", row.id)
        state_details = state_details_placeholder()
    return {
        "id": row.id,
        "conversation_id": row.conversation_id,
        "status": row.status,
        "state_details": state_details,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
        "artifacts": [_artifact_record(a) for a in artifacts],
    }


def _insert_for(session: AsyncSession, model: type) -> Any:
    """INSERT for the bound dialect, with ON CONFLICT support."""
    if session.bind.dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


async def _artifacts_for(session: AsyncSession, task_id: str) -> list[Artifact]:
    result = await session.execute(
        select(Artifact)
        .where(Artifact.task_id == task_id)
        .order_by(Artifact.created_at.asc(), Artifact.id.asc())
    )
    return list(result.scalars().all())


class RelayStore:
    """Keyed CRUD over the relay state database.

    Args:
        session_factory: Async session factory bound to the relay engine.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    @asynccontextmanager
    async def _transaction(
        self, operation: str, conflict: str | None = None
    ) -> AsyncIterator[AsyncSession]:
        """Run one operation in its own transaction.

        Args:
            operation: Short description used in error messages.
            conflict: Message for a uniqueness violation. When None, integrity
                errors are store errors like any other database failure.

        Raises:
            ConflictError: Uniqueness violation and ``conflict`` was given.
            StoreError: Any other database failure.
        """
        try:
            async with self._sessions() as session:
                async with session.begin():
                    yield session
        except IntegrityError as exc:
            if conflict is not None:
                raise ConflictError(conflict) from exc
            logger.error("Integrity error during %s: %s", operation, exc.orig)
            raise StoreError(f"Failed to {operation}", details=str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            logger.error("Database error during %s: %s", operation, exc)
            raise StoreError(f"Failed to {operation}", details=str(exc)) from exc

    # -- conversations -------------------------------------------------

    async def create_conversation(
        self, conversation_id: str | None = None, name: str | None = None
    ) -> dict[str, Any]:
        """Insert a conversation.

        Args:
            conversation_id: Host-assigned id; generated when None.
            name: Display name; defaults to ``Conversation <id prefix>``.

        Returns:
            The created conversation record.
        """
        conversation_id = conversation_id or generate_id()
        row = Conversation(
            id=conversation_id,
            name=name or f"Conversation {conversation_id[:8]}",
            is_active=True,
            created_at=utc_now_iso(),
        )
        async with self._transaction(
            "create conversation",
            conflict=f"Conversation '{conversation_id}' already exists",
        ) as session:
            session.add(row)
        return _conversation_record(row)

    async def get_conversation(self, conversation_id: str) -> dict[str, Any] | None:
        async with self._transaction("load conversation") as session:
            row = await session.get(Conversation, conversation_id)
            return _conversation_record(row) if row is not None else None

    async def list_conversations(self) -> list[dict[str, Any]]:
        """All conversations, newest first."""
        async with self._transaction("list conversations") as session:
            result = await session.execute(
                select(Conversation).order_by(Conversation.created_at.desc())
            )
            return [_conversation_record(r) for r in result.scalars().all()]

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation with its messages, tasks and their artifacts.

        Returns:
            True if the conversation existed.
        """
        async with self._transaction("delete conversation") as session:
            row = await session.get(Conversation, conversation_id)
            if row is None:
                return False
            task_ids = select(Task.id).where(Task.conversation_id == conversation_id)
            await session.execute(
                delete(Artifact)
                .where(Artifact.task_id.in_(task_ids))
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                delete(Task)
                .where(Task.conversation_id == conversation_id)
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                delete(Message)
                .where(Message.conversation_id == conversation_id)
                .execution_options(synchronize_session=False)
            )
            await session.delete(row)
        logger.info("Deleted conversation %s", conversation_id)
        return True

    # -- messages ------------------------------------------------------

    async def create_message(
        self,
        conversation_id: str,
        role: str,
        content: list[Any],
        task_id: str | None = None,
        message_id: str | None = None,
    ) -> dict[str, Any]:
        """Persist a message. Content is stored verbatim as serialized JSON.

        Args:
            conversation_id: Parent conversation (must exist).
            role: 'user' or 'agent'.
            content: Ordered content parts.
            task_id: Related host task, if any.
            message_id: Caller-chosen id; generated when None.

        Returns:
            The created message record.
        """
        row = Message(
            id=message_id or generate_id(),
            conversation_id=conversation_id,
            task_id=task_id,
            role=role,
            content=encode_payload(content),
            created_at=utc_now_iso(),
        )
        async with self._transaction("save message") as session:
            session.add(row)
        return _message_record(row)

    async def list_messages(self, conversation_id: str) -> list[dict[str, Any]]:
        """Messages of one conversation, oldest first, content decoded."""
        async with self._transaction("list messages") as session:
            result = await session.execute(
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.asc(), Message.id.asc())
            )
            return [_message_record(r) for r in result.scalars().all()]

    # -- tasks and artifacts -------------------------------------------

    async def upsert_task(
        self,
        task_id: str,
        conversation_id: str,
        status: str,
        state_details: Any,
    ) -> tuple[dict[str, Any], bool]:
        """Insert a task or overwrite its mutable fields.

        A single ``INSERT ... ON CONFLICT DO UPDATE`` statement, so duplicate
        deliveries racing each other all succeed and the last writer wins.
        ``updated_at`` is always strictly later than the stored value.

        Returns:
            Tuple of (task record without artifacts, created flag).
        """
        encoded = encode_payload(state_details)
        async with self._transaction("save task") as session:
            previous = await session.scalar(
                select(Task.updated_at).where(Task.id == task_id)
            )
            now = utc_now_iso(after=previous)
            stmt = _insert_for(session, Task).values(
                id=task_id,
                conversation_id=conversation_id,
                status=status,
                state_details=encoded,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[Task.id],
                set_={
                    "conversation_id": stmt.excluded.conversation_id,
                    "status": stmt.excluded.status,
                    "state_details": stmt.excluded.state_details,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            row = await session.scalar(
                stmt.returning(Task), execution_options={"populate_existing": True}
            )
        # created_at is only written by the insert branch
        created = row.created_at == now
        record = _task_record(row, [])
        record.pop("artifacts")
        return record, created

    async def upsert_artifact(
        self, task_id: str, artifact_id_ref: str, content: Any
    ) -> dict[str, Any]:
        """Create or replace the artifact in slot (task_id, artifact_id_ref).

        A replacement swaps the content in place; the row keeps its id and
        ``created_at``, so the slot keeps its position in the ordering.
        """
        encoded = encode_payload(content)
        async with self._transaction("save artifact") as session:
            stmt = _insert_for(session, Artifact).values(
                id=generate_id(),
                task_id=task_id,
                artifact_id_ref=artifact_id_ref,
                content=encoded,
                created_at=utc_now_iso(),
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[Artifact.task_id, Artifact.artifact_id_ref],
                set_={"content": stmt.excluded.content},
            )
            row = await session.scalar(
                stmt.returning(Artifact), execution_options={"populate_existing": True}
            )
        return _artifact_record(row)

    async def task_snapshot(self, task_id: str) -> dict[str, Any] | None:
        """Canonical snapshot: task fields plus ordered, decoded artifacts."""
        async with self._transaction("load task snapshot") as session:
            row = await session.get(Task, task_id)
            if row is None:
                return None
            artifacts = await _artifacts_for(session, task_id)
            return _task_record(row, artifacts)

    async def list_tasks(self, conversation_id: str | None = None) -> list[dict[str, Any]]:
        """Hydrated task snapshots, newest first.

        Args:
            conversation_id: Restrict to one conversation when given.
        """
        async with self._transaction("list tasks") as session:
            query = select(Task)
            if conversation_id:
                query = query.where(Task.conversation_id == conversation_id)
            query = query.order_by(Task.created_at.desc())
            result = await session.execute(query)
            snapshots = []
            for row in result.scalars().all():
                artifacts = await _artifacts_for(session, row.id)
                snapshots.append(_task_record(row, artifacts))
            return snapshots

    # -- agents --------------------------------------------------------

    async def create_agent(
        self,
        url: str,
        name: str,
        description: str | None = None,
        icon: str | None = None,
    ) -> dict[str, Any]:
        """Register an agent.

        Raises:
            ConflictError: An agent with this url already exists.
        """
        row = Agent(
            id=generate_id(),
            url=url,
            name=name,
            description=description,
            icon=icon,
            created_at=utc_now_iso(),
        )
        async with self._transaction(
            "register agent", conflict=f"Agent with url '{url}' is already registered"
        ) as session:
            session.add(row)
        return _agent_record(row)

    async def list_agents(self) -> list[dict[str, Any]]:
        """All agents, newest first."""
        async with self._transaction("list agents") as session:
            result = await session.execute(
                select(Agent).order_by(Agent.created_at.desc())
            )
            return [_agent_record(r) for r in result.scalars().all()]

    # -- files ---------------------------------------------------------

    async def create_file(
        self,
        name: str,
        mime_type: str,
        data: bytes,
        file_id: str | None = None,
    ) -> dict[str, Any]:
        """Store an immutable file blob.

        Returns:
            File metadata (no bytes).

        Raises:
            ConflictError: A file with this id already exists.
        """
        file_id = file_id or generate_id()
        row = FileBlob(
            id=file_id,
            name=name,
            mime_type=mime_type,
            data=data,
            created_at=utc_now_iso(),
        )
        async with self._transaction(
            "store file", conflict=f"File '{file_id}' already exists"
        ) as session:
            session.add(row)
        return {
            "id": row.id,
            "name": row.name,
            "mime_type": row.mime_type,
            "size": len(data),
            "created_at": row.created_at,
        }

    async def get_file(self, file_id: str) -> dict[str, Any] | None:
        """File metadata plus raw bytes under ``data``, or None."""
        async with self._transaction("load file") as session:
            row = await session.get(FileBlob, file_id)
            if row is None:
                return None
            return {
                "id": row.id,
                "name": row.name,
                "mime_type": row.mime_type,
                "data": row.data,
                "created_at": row.created_at,
            }
