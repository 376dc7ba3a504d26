"""API request/response schemas.

Wire names are camelCase; Python attributes stay snake_case.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SearchRequest(_ApiModel):
    """Request schema for single-shot question answering."""

    question: Optional[str] = Field(default=None, description="Question to answer from uploaded textbooks")


class ChatRequest(_ApiModel):
    """Request schema for conversational question answering."""

    question: Optional[str] = Field(default=None, description="Question to answer from uploaded textbooks")
    conversation_id: Optional[str] = Field(
        default=None,
        alias="conversationId",
        description="Existing conversation to continue; a new one is started when omitted",
    )


class StudyNotesRequest(_ApiModel):
    """Request schema for study notes generation."""

    topic: Optional[str] = Field(default=None, description="Topic to build notes for")
    format: Optional[str] = Field(
        default=None,
        description="bullet-points (default), outline, flashcards or summary",
    )


class SearchResponse(_ApiModel):
    """Response schema for question answering."""

    answer: str
    chunks_used: List[int] = Field(default_factory=list, alias="chunksUsed")
    confidence: float


class ChatResponse(SearchResponse):
    """Response schema for conversational question answering."""

    conversation_id: str = Field(alias="conversationId")


class StudyNotesResponse(_ApiModel):
    """Response schema for generated study notes."""

    topic: str
    format: str
    notes: str
    chunks_used: List[int] = Field(default_factory=list, alias="chunksUsed")
    chunk_count: int = Field(alias="chunkCount")


class UploadResponse(_ApiModel):
    """Response schema for an accepted textbook upload."""

    success: bool = True
    message: str
    file_name: str = Field(alias="fileName")
    blob_path: str = Field(alias="blobPath")
    class_name: str = Field(alias="className")
    subject: str
    chapter: str
    file_size: int = Field(alias="fileSize")


class ErrorResponse(_ApiModel):
    """Structured error body."""

    error: str


class EmbeddingHealthResponse(_ApiModel):
    """Embedding deployment validation result."""

    status: str
    message: str
    embedding_dimensions: Optional[int] = Field(default=None, alias="embeddingDimensions")
    deployment_name: Optional[str] = Field(default=None, alias="deploymentName")
