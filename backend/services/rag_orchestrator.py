"""RAG pipeline: validate, embed, retrieve, prompt, complete, persist."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from config import SEARCH_TOP_K, NOTES_TOP_K, HISTORY_MAX_TURNS
from models.chunk import SearchResultChunk
from models.conversation import ConversationTurn
from services import prompt_builder
from services.conversation_manager import ConversationManager
from services.errors import (
    CompletionError,
    InternalServiceError,
    InvalidRequestError,
    NoContentFoundError,
)
from services.llm_client import LLMClientError

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    VALIDATE_INPUT = "validate_input"
    EMBED_QUERY = "embed_query"
    RETRIEVE_CONTEXT = "retrieve_context"
    LOAD_HISTORY = "load_history"
    BUILD_PROMPT = "build_prompt"
    GENERATE_COMPLETION = "generate_completion"
    PERSIST_RESULTS = "persist_results"
    RESPOND_SUCCESS = "respond_success"


@dataclass
class AnswerResult:
    """Grounded answer to a question."""
    answer: str
    chunks_used: List[int] = field(default_factory=list)
    confidence: float = 0.0
    conversation_id: Optional[str] = None


@dataclass
class StudyNotesResult:
    """Study notes generated for a topic."""
    topic: str
    format: str
    notes: str
    chunks_used: List[int] = field(default_factory=list)
    chunk_count: int = 0


class RagOrchestrator:
    """Turns a question or topic into a response grounded on retrieved chunks."""

    def __init__(
        self,
        embedding_gateway,
        retrieval_engine,
        llm_client,
        repository,
        conversation_manager: Optional[ConversationManager] = None,
        search_top_k: int = SEARCH_TOP_K,
        notes_top_k: int = NOTES_TOP_K,
        history_max_turns: int = HISTORY_MAX_TURNS
    ):
        """
        Initialize the orchestrator with its collaborators.

        Args:
            embedding_gateway: Produces query embeddings
            retrieval_engine: Ranks stored chunks against a query embedding
            llm_client: Generates completions
            repository: Stores interaction logs
            conversation_manager: Chat history access, built on repository if omitted
            search_top_k: Chunks retrieved for question answering
            notes_top_k: Chunks retrieved for study notes
            history_max_turns: Prior turns loaded for conversational answers
        """
        self.embedding_gateway = embedding_gateway
        self.retrieval_engine = retrieval_engine
        self.llm_client = llm_client
        self.repository = repository
        self.conversation_manager = conversation_manager or ConversationManager(repository)
        self.search_top_k = search_top_k
        self.notes_top_k = notes_top_k
        self.history_max_turns = history_max_turns

    def search(self, question: Optional[str]) -> AnswerResult:
        """
        Answer a single question from the stored corpus.

        Raises:
            InvalidRequestError: If the question is missing or blank
            NoContentFoundError: If nothing could be retrieved
            InternalServiceError: If embedding, retrieval or completion fails
        """
        return self._answer(question, conversation_id=None, conversational=False)

    def chat(self, question: Optional[str], conversation_id: Optional[str] = None) -> AnswerResult:
        """
        Answer a question as part of a conversation.

        When conversation_id is given, up to history_max_turns prior turns are
        included in the prompt. A new conversation id is generated otherwise.
        The question and answer are appended to history.

        Raises:
            InvalidRequestError: If the question is missing or blank
            NoContentFoundError: If nothing could be retrieved
            InternalServiceError: If embedding, retrieval or completion fails
        """
        return self._answer(question, conversation_id=conversation_id, conversational=True)

    def generate_study_notes(self, topic: Optional[str], format: Optional[str] = None) -> StudyNotesResult:
        """
        Generate study notes on a topic from the stored corpus.

        Args:
            topic: Topic to write notes about
            format: bullet-points, outline, flashcards or summary; anything
                else is treated as bullet-points

        Returns:
            StudyNotesResult echoing the topic and requested format

        Raises:
            InvalidRequestError: If the topic is missing or blank
            NoContentFoundError: If nothing could be retrieved
            InternalServiceError: If embedding, retrieval or completion fails
        """
        # Step 1: Validate request
        topic = self._require(topic, "Topic")
        notes_format = format if format and format.strip() else prompt_builder.DEFAULT_NOTES_FORMAT
        logger.info(f"Generating study notes for topic: {topic[:100]}, format: {notes_format}")

        # Step 2: Embed topic
        topic_embedding = self._embed(topic, "Failed to create embedding for topic")

        # Step 3: Retrieve context
        chunks = self._retrieve(
            topic_embedding,
            self.notes_top_k,
            "No relevant content found for this topic. Please upload documents first."
        )

        # Step 4: Build prompt
        prompt = prompt_builder.build_study_notes_prompt(topic, notes_format, [c.text for c in chunks])
        logger.info(f"Built prompt for study notes generation: {len(prompt)} chars")

        # Step 5: Generate notes
        notes = self._complete(prompt, "Failed to generate study notes")

        chunk_ids = [c.chunk_id for c in chunks]
        return StudyNotesResult(
            topic=topic,
            format=notes_format,
            notes=notes,
            chunks_used=chunk_ids,
            chunk_count=len(chunks)
        )

    def _answer(self, question: Optional[str], conversation_id: Optional[str], conversational: bool) -> AnswerResult:
        # Step 1: Validate request
        question = self._require(question, "Question")
        logger.info(f"Processing question: {question[:100]}")

        # Step 2: Embed question
        question_embedding = self._embed(question, "Failed to create embedding for question")

        # Step 3: Retrieve context
        chunks = self._retrieve(
            question_embedding,
            self.search_top_k,
            "No relevant content found. Please upload documents first."
        )

        # Step 4: Load history
        history: List[ConversationTurn] = []
        if conversational and conversation_id:
            history = self._load_history(conversation_id)

        # Step 5: Build prompt
        chunk_texts = [c.text for c in chunks]
        prompt = prompt_builder.build_answer_prompt(question, chunk_texts, history)
        logger.info(
            f"Built prompt with {len(chunks)} chunks, total length: "
            f"{len(prompt_builder.CONTEXT_SEPARATOR.join(chunk_texts))} chars"
        )

        # Step 6: Generate answer
        answer = self._complete(prompt, "Failed to generate answer")

        # Step 7: Persist results
        chunk_ids = [c.chunk_id for c in chunks]
        chunk_ids_csv = ",".join(str(chunk_id) for chunk_id in chunk_ids)
        confidence = round(max(c.similarity for c in chunks), 4)

        self._persist_interaction(question, answer, chunk_ids_csv, confidence)

        if conversational:
            conversation_id = conversation_id or self.conversation_manager.new_conversation_id()
            self._persist_exchange(conversation_id, question, answer, chunk_ids_csv, confidence)

        # Step 8: Respond
        return AnswerResult(
            answer=answer,
            chunks_used=chunk_ids,
            confidence=confidence,
            conversation_id=conversation_id if conversational else None
        )

    @staticmethod
    def _require(value: Optional[str], field_name: str) -> str:
        if value is None or not isinstance(value, str) or not value.strip():
            logger.warning(f"Empty {field_name.lower()} received")
            raise InvalidRequestError(f"{field_name} is required", stage=PipelineStage.VALIDATE_INPUT.value)
        return value.strip()

    def _embed(self, text: str, failure_message: str) -> bytes:
        try:
            embedding = self.embedding_gateway.embed(text)
        except Exception as e:
            logger.error(f"{failure_message}: {e}", exc_info=True)
            raise InternalServiceError(failure_message, stage=PipelineStage.EMBED_QUERY.value) from e

        logger.info(f"Created query embedding ({len(embedding)} bytes)")
        return embedding

    def _retrieve(self, query_embedding: bytes, top_k: int, empty_message: str) -> List[SearchResultChunk]:
        try:
            chunks = self.retrieval_engine.retrieve(query_embedding, top_k=top_k)
        except Exception as e:
            logger.error(f"Failed to retrieve matching chunks: {e}", exc_info=True)
            raise InternalServiceError(
                "Failed to retrieve matching chunks",
                stage=PipelineStage.RETRIEVE_CONTEXT.value
            ) from e

        if not chunks:
            logger.warning("No chunks found in corpus")
            raise NoContentFoundError(empty_message, stage=PipelineStage.RETRIEVE_CONTEXT.value)

        logger.info(f"Retrieved {len(chunks)} matching chunks")
        return chunks

    def _load_history(self, conversation_id: str) -> List[ConversationTurn]:
        try:
            return self.conversation_manager.get_history(conversation_id, self.history_max_turns)
        except Exception as e:
            logger.warning(
                f"Failed to load history for conversation {conversation_id}, continuing without it: {e}",
                exc_info=True
            )
            return []

    def _complete(self, prompt: str, failure_message: str) -> str:
        try:
            text = self.llm_client.complete(
                prompt,
                system_messages=[prompt_builder.PERSONA_SYSTEM_MESSAGE]
            )
        except LLMClientError as e:
            logger.error(f"{failure_message}: code={e.error.code}, message={e.error.message}")
            raise CompletionError(failure_message, stage=PipelineStage.GENERATE_COMPLETION.value) from e
        except Exception as e:
            logger.error(f"{failure_message}: {e}", exc_info=True)
            raise CompletionError(failure_message, stage=PipelineStage.GENERATE_COMPLETION.value) from e

        logger.info(f"Received completion: {len(text)} chars")
        return text

    def _persist_interaction(self, question: str, answer: str, chunk_ids_csv: str, confidence: float) -> None:
        try:
            self.repository.insert_interaction_log(question, answer, chunk_ids_csv, confidence)
            logger.info("Logged search to rag_search_logs")
        except Exception as e:
            logger.warning(f"Failed to log search results (non-critical): {e}", exc_info=True)

    def _persist_exchange(
        self,
        conversation_id: str,
        question: str,
        answer: str,
        chunk_ids_csv: str,
        confidence: float
    ) -> None:
        try:
            self.conversation_manager.add_exchange(conversation_id, question, answer, chunk_ids_csv, confidence)
        except Exception as e:
            logger.warning(
                f"Failed to save conversation {conversation_id} (non-critical): {e}",
                exc_info=True
            )
