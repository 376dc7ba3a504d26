"""Services for Smart Study RAG backend."""
from .errors import (
    RagError,
    InvalidRequestError,
    NoContentFoundError,
    InternalServiceError,
    CompletionError,
    ExtractionError,
    PersistenceError,
)
from .document_loader import DocumentLoader
from .chunking_engine import ChunkingEngine
from .embedding_gateway import EmbeddingGateway, ValidationStatus, ValidationResult
from .retrieval_engine import RetrievalEngine, rank_chunks
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError
from .repository import Repository, SupabaseRepository, InMemoryRepository
from .conversation_manager import ConversationManager
from .rag_orchestrator import RagOrchestrator, PipelineStage, AnswerResult, StudyNotesResult
from .ingestion_service import IngestionService, IngestionSummary

__all__ = [
    'RagError', 'InvalidRequestError', 'NoContentFoundError', 'InternalServiceError', 'CompletionError',
    'ExtractionError', 'PersistenceError', 'DocumentLoader', 'ChunkingEngine', 'EmbeddingGateway',
    'ValidationStatus', 'ValidationResult', 'RetrievalEngine', 'rank_chunks', 'LLMClient', 'LLMResponse',
    'LLMError', 'LLMClientError', 'Repository', 'SupabaseRepository', 'InMemoryRepository',
    'ConversationManager', 'RagOrchestrator', 'PipelineStage', 'AnswerResult', 'StudyNotesResult',
    'IngestionService', 'IngestionSummary'
]
