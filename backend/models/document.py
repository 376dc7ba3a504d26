"""Document data models."""
from dataclasses import dataclass
from typing import Optional

@dataclass(frozen=True)
class ClassMetadata:
    """Classification metadata attached to an uploaded textbook."""
    class_name: Optional[str] = None
    subject: Optional[str] = None
    chapter: Optional[str] = None

@dataclass(frozen=True)
class Document:
    """Represents an ingested source file."""
    file_name: str
    size_bytes: int
    extension: str
    class_meta: Optional[ClassMetadata] = None
    document_id: Optional[int] = None
