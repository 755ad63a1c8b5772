"""Pydantic schemas for API request validation.

Field names follow the browser UI and host webhook contracts
(snake_case from the UI, the host's own names for its payloads).
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, StrictStr


class AgentRegisterRequest(BaseModel):
    """Request body for POST /agent/register."""

    agent_url: str = Field(..., min_length=1)


class MessageSendRequest(BaseModel):
    """Request body for POST /message/send."""

    conversation_id: str = Field(..., min_length=1)
    role: Literal["user", "agent"]
    content: list[Any]
    task_id: str | None = None


class MessageListRequest(BaseModel):
    """Request body for POST /message/list."""

    conversation_id: str = Field(..., min_length=1)


class TaskListRequest(BaseModel):
    """Request body for POST /task/list. Omit conversation_id to list all tasks."""

    conversation_id: str | None = None


class ApiKeyUpdateRequest(BaseModel):
    """Request body for POST /api_key/update. An empty key clears it."""

    api_key: StrictStr


class FileReceivedRequest(BaseModel):
    """Webhook body for POST /host/file_received."""

    name: str = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1)
    bytes: str = Field(..., min_length=1, description="Base64-encoded file content")
    file_id: str | None = None
