"""Chunk data models."""
from dataclasses import dataclass
from typing import Optional

@dataclass(frozen=True)
class Chunk:
    """Represents a document chunk ready for embedding and storage."""
    chunk_index: int
    text: str
    title: str
    summary: str
    token_count: int
    page_from: int = 0  # 0 = unknown
    page_to: int = 0
    kind: str = "text"
    chunk_id: Optional[int] = None
    document_id: Optional[int] = None

@dataclass
class SearchResultChunk:
    """Chunk loaded for retrieval, scored against the active query."""
    chunk_id: int
    text: str
    document_id: int
    embedding: bytes
    similarity: float = 0.0
