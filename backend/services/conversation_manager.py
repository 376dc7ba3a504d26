"""Conversation manager for multi-turn conversation support."""
import logging
import uuid
from typing import List, Optional

from config import HISTORY_MAX_TURNS
from models.conversation import ConversationTurn, ROLE_USER, ROLE_ASSISTANT

logger = logging.getLogger(__name__)


class ConversationManager:
    """Reads and appends conversation turns through the repository."""

    def __init__(self, repository):
        """
        Initialize the conversation manager.

        Args:
            repository: Persistence collaborator holding chat history
        """
        self.repository = repository
        logger.info("ConversationManager initialized")

    @staticmethod
    def new_conversation_id() -> str:
        return str(uuid.uuid4())

    def get_history(self, conversation_id: str, max_turns: int = HISTORY_MAX_TURNS) -> List[ConversationTurn]:
        """
        Get the most recent turns of a conversation.

        Args:
            conversation_id: ID of the conversation
            max_turns: Maximum number of turns to return

        Returns:
            Turns ordered oldest first

        Raises:
            PersistenceError: If history cannot be read
        """
        turns = self.repository.get_conversation_history(conversation_id, max_turns)
        logger.debug(f"Retrieved {len(turns)} turns for conversation {conversation_id}")
        return turns

    def add_exchange(
        self,
        conversation_id: str,
        question: str,
        answer: str,
        chunk_ids_csv: Optional[str] = None,
        confidence: Optional[float] = None
    ) -> None:
        """
        Append a question and its answer to conversation history.

        The user turn is written first so history stays chronological.

        Raises:
            PersistenceError: If either turn cannot be written
        """
        self.repository.append_conversation_turn(conversation_id, ROLE_USER, question)
        self.repository.append_conversation_turn(
            conversation_id,
            ROLE_ASSISTANT,
            answer,
            chunk_ids_csv=chunk_ids_csv,
            confidence=confidence
        )
        logger.info(f"Added exchange to conversation {conversation_id}")
