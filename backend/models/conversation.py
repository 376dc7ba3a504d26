"""Conversation data models."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

@dataclass(frozen=True)
class ConversationTurn:
    """A single message in a multi-turn conversation."""
    conversation_id: str
    role: str
    message: str
    created_at: datetime
    chunks_used: Optional[str] = None  # comma-separated chunk ids
    confidence: Optional[float] = None
