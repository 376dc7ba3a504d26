"""Data models for Smart Study RAG backend."""
from .document import Document, ClassMetadata
from .chunk import Chunk, SearchResultChunk
from .conversation import ConversationTurn, ROLE_USER, ROLE_ASSISTANT
from .api import (
    SearchRequest,
    ChatRequest,
    StudyNotesRequest,
    SearchResponse,
    ChatResponse,
    StudyNotesResponse,
    UploadResponse,
    ErrorResponse,
    EmbeddingHealthResponse,
)

__all__ = [
    "Document",
    "ClassMetadata",
    "Chunk",
    "SearchResultChunk",
    "ConversationTurn",
    "ROLE_USER",
    "ROLE_ASSISTANT",
    "SearchRequest",
    "ChatRequest",
    "StudyNotesRequest",
    "SearchResponse",
    "ChatResponse",
    "StudyNotesResponse",
    "UploadResponse",
    "ErrorResponse",
    "EmbeddingHealthResponse",
]
