"""
Defines the core Pydantic data models for the application.

These models are the data contract between the engine, the store and the
collaborators. Messages use the same ``{"role", "content"}`` shape as the
OpenAI chat API, so they can be sent to a provider and persisted unchanged.
"""

import re
import uuid
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Constants ---
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"
Role = Literal[USER_ROLE, ASSISTANT_ROLE, SYSTEM_ROLE]

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def new_session_id() -> str:
    """Generates a fresh, globally unique session identifier."""
    return str(uuid.uuid4())


def is_valid_session_id(value: object) -> bool:
    """Checks that ``value`` is usable as a record key (no path separators)."""
    return isinstance(value, str) and bool(_SESSION_ID_PATTERN.match(value))


# --- Models ---
class Message(BaseModel):
    """Represents a single, immutable turn within a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class Session(BaseModel):
    """Represents a persisted conversation, oldest message first."""

    id: str
    messages: List[Message] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        if not is_valid_session_id(value):
            raise ValueError(
                "session id must be 1-128 characters of letters, digits, '-' or '_'"
            )
        return value


class Reply(BaseModel):
    """The outcome of one successful pipeline run."""

    session_id: str
    transcript: str
    reply_text: str
    audio: bytes
