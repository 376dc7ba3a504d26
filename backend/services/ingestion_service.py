"""Ingestion: extract, chunk, embed and store one document."""
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from models.chunk import Chunk
from models.document import ClassMetadata, Document
from services.chunking_engine import ChunkingEngine
from services.document_loader import DocumentLoader, normalize_extension

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChunkOutcome:
    """Result of storing one chunk."""
    chunk_index: int
    chunk_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class IngestionSummary:
    """What an ingestion run stored."""
    document: Document
    outcomes: List[ChunkOutcome] = field(default_factory=list)

    @property
    def chunk_count(self) -> int:
        return len(self.outcomes)

    @property
    def processed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failed_indices(self) -> List[int]:
        return [outcome.chunk_index for outcome in self.outcomes if not outcome.succeeded]


class IngestionService:
    """Runs a document through extraction, chunking, embedding and storage."""

    def __init__(
        self,
        repository,
        embedding_gateway,
        document_loader: Optional[DocumentLoader] = None,
        chunking_engine: Optional[ChunkingEngine] = None
    ):
        self.repository = repository
        self.embedding_gateway = embedding_gateway
        self.document_loader = document_loader or DocumentLoader()
        self.chunking_engine = chunking_engine or ChunkingEngine()

    def ingest(
        self,
        document_bytes: bytes,
        file_name: str,
        class_meta: Optional[ClassMetadata] = None
    ) -> IngestionSummary:
        """
        Ingest one document.

        Chunks are processed one at a time, in order: embed, insert the
        chunk, then insert its embedding under the new chunk id. A failing
        chunk is logged and skipped; the run continues with the next one.

        Args:
            document_bytes: Raw file contents
            file_name: Original file name, used for the extension
            class_meta: Optional class/subject/chapter metadata

        Returns:
            IngestionSummary with one outcome per chunk

        Raises:
            ExtractionError: If the document cannot be converted to text
            PersistenceError: If the document row cannot be stored
        """
        extension = normalize_extension(os.path.splitext(file_name)[1])
        size_bytes = len(document_bytes)
        logger.info(f"Processing new file: {file_name} | Size: {size_bytes:,} bytes | Ext: {extension}")

        document_id = self.repository.insert_document(file_name, size_bytes, extension, class_meta)
        document = Document(
            file_name=file_name,
            size_bytes=size_bytes,
            extension=extension,
            class_meta=class_meta,
            document_id=document_id
        )
        logger.info(f"Inserted file metadata, id={document_id}")

        try:
            text = self.document_loader.extract(document_bytes, extension)
        except Exception as e:
            logger.error(f"Text extraction failed for {file_name}: {e}", exc_info=True)
            raise

        if not text or not text.strip():
            logger.warning(f"No extractable text in file: {file_name}")
            return IngestionSummary(document=document)

        chunks = self.chunking_engine.build_chunks(text)
        logger.info(f"Total semantic chunks: {len(chunks)}")

        outcomes = [self._store_chunk(document_id, chunk, len(chunks)) for chunk in chunks]
        summary = IngestionSummary(document=document, outcomes=outcomes)

        logger.info(
            f"Processing complete: file={file_name}, file_id={document_id}, "
            f"chunks={summary.processed_count}/{summary.chunk_count}"
        )
        if summary.failed_indices:
            logger.warning(f"Chunks failed for {file_name}: {summary.failed_indices}")
        return summary

    def _store_chunk(self, document_id: int, chunk: Chunk, total: int) -> ChunkOutcome:
        try:
            embedding = self.embedding_gateway.embed(chunk.text)
            chunk_id = self.repository.insert_chunk(document_id, chunk)
            self.repository.insert_embedding(chunk_id, embedding)
        except Exception as e:
            logger.error(f"Error processing chunk {chunk.chunk_index + 1}/{total}: {e}", exc_info=True)
            return ChunkOutcome(chunk_index=chunk.chunk_index, error=str(e))

        logger.info(f"Inserted chunk {chunk.chunk_index + 1}/{total} -> chunk_id={chunk_id}")
        return ChunkOutcome(chunk_index=chunk.chunk_index, chunk_id=chunk_id)
