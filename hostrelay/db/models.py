"""SQLAlchemy ORM models for the relay state database.

Conversations own their messages and tasks; tasks own their artifacts.
Opaque structured fields (message content, state details, artifact content)
are stored as serialized JSON text and decoded only when a canonical record
is produced. Uses SQLAlchemy 2.0 style with Mapped and mapped_column.
"""

from sqlalchemy import (
    ForeignKey,
    Index,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
)

from hostrelay.utils.clock import utc_now_iso
from hostrelay.utils.ids import generate_id


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Conversation(Base):
    """A chat thread between the UI user and host agents.

    Attributes:
        id: Host-assigned or generated identifier.
        name: Display name.
        is_active: Whether the conversation is still open.
        created_at: ISO8601 creation timestamp.
    """

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(
        String(255), primary_key=True, default=generate_id
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id!r}, name={self.name!r})>"


class Message(Base):
    """One message in a conversation. Created once, never mutated."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(255), primary_key=True, default=generate_id
    )
    conversation_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    task_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id!r}, role={self.role!r})>"


class Task(Base):
    """Host-side unit of work, mutated only by the reconciler.

    Attributes:
        id: Host-assigned task identifier.
        conversation_id: FK to Conversation (the event's contextId).
        status: Free-form status string from the host.
        state_details: Serialized opaque details (defaults to the status).
        created_at: ISO8601 creation timestamp.
        updated_at: ISO8601 last reconciliation; strictly increasing.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_conversation_updated", "conversation_id", "updated_at"),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    conversation_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(100), nullable=False)
    state_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    def __repr__(self) -> str:
        return f"<Task(id={self.id!r}, status={self.status!r})>"


class Artifact(Base):
    """Output produced by a task, one row per (task, artifact ref) slot."""

    __tablename__ = "task_artifacts"
    __table_args__ = (
        UniqueConstraint("task_id", "artifact_id_ref", name="uq_artifact_task_ref"),
        Index("ix_artifacts_task_created", "task_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_id
    )
    task_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
    )
    artifact_id_ref: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    def __repr__(self) -> str:
        return (
            f"<Artifact(id={self.id!r}, task_id={self.task_id!r}, "
            f"ref={self.artifact_id_ref!r})>"
        )


class Agent(Base):
    """Remote agent registered with the host. URL is unique."""

    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_id
    )
    url: Mapped[str] = mapped_column(String(2048), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    def __repr__(self) -> str:
        return f"<Agent(id={self.id!r}, url={self.url!r})>"


class FileBlob(Base):
    """Immutable uploaded file content."""

    __tablename__ = "files"

    id: Mapped[str] = mapped_column(
        String(255), primary_key=True, default=generate_id
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    def __repr__(self) -> str:
        return f"<FileBlob(id={self.id!r}, name={self.name!r})>"
