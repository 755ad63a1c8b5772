"""Database package for the relay state database.

Exports the ORM models and the async connection helpers.
"""

from hostrelay.db.connection import (
    create_engine_from_url,
    create_session_factory,
    init_db,
    resolve_database_url,
)
from hostrelay.db.models import (
    Agent,
    Artifact,
    Base,
    Conversation,
    FileBlob,
    Message,
    Task,
)

__all__ = [
    "Base",
    "Conversation",
    "Message",
    "Task",
    "Artifact",
    "Agent",
    "FileBlob",
    "create_engine_from_url",
    "create_session_factory",
    "init_db",
    "resolve_database_url",
]
