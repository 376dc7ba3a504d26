"""
Document Ingestion Script for Smart Study RAG.

This script:
1. Finds every PDF, text and markdown file in a directory
2. Extracts and chunks each document
3. Generates an embedding per chunk (Azure OpenAI or deterministic fallback)
4. Stores documents, chunks and embeddings in the configured repository

Usage:
    python ingest_documents.py path/to/textbooks --class-name 10 --subject Science --chapter "Chapter 1"
"""
import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from config import STORAGE_BACKEND
from models.document import ClassMetadata
from services.document_loader import SUPPORTED_EXTENSIONS
from services.embedding_gateway import EmbeddingGateway
from services.ingestion_service import IngestionService, IngestionSummary
from services.repository import InMemoryRepository, SupabaseRepository

logger = logging.getLogger(__name__)


def find_documents(directory: Path) -> List[Path]:
    """Supported files directly inside directory, sorted by name."""
    return sorted(
        path for path in directory.iterdir()
        if path.is_file() and path.suffix.lower() in SUPPORTED_EXTENSIONS
    )


def ingest_directory(
    service: IngestionService,
    directory: Path,
    class_meta: Optional[ClassMetadata] = None
) -> List[IngestionSummary]:
    """
    Ingest every supported file in a directory.

    A file that fails extraction or storage is logged and skipped.

    Returns:
        One summary per successfully ingested file
    """
    summaries = []
    for path in find_documents(directory):
        logger.info(f"Processing {path.name}...")
        try:
            summary = service.ingest(path.read_bytes(), path.name, class_meta)
        except Exception as e:
            logger.error(f"Failed to ingest {path.name}: {e}", exc_info=True)
            continue

        summaries.append(summary)
        logger.info(f"  ✓ Stored {summary.processed_count}/{summary.chunk_count} chunks")
    return summaries


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest textbooks into the Smart Study RAG store")
    parser.add_argument("directory", type=Path, help="Directory containing PDF, .txt or .md files")
    parser.add_argument("--class-name", default=None, help="Class the textbooks belong to")
    parser.add_argument("--subject", default=None, help="Subject of the textbooks")
    parser.add_argument("--chapter", default=None, help="Chapter of the textbooks")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main ingestion process."""
    args = parse_args(argv)

    if not args.directory.is_dir():
        logger.error(f"Directory not found: {args.directory}")
        return 1

    if STORAGE_BACKEND == "memory":
        logger.warning("STORAGE_BACKEND=memory: ingested data is discarded when this script exits")
        repository = InMemoryRepository()
    else:
        repository = SupabaseRepository()

    service = IngestionService(repository, EmbeddingGateway())

    class_meta = None
    if args.class_name or args.subject or args.chapter:
        class_meta = ClassMetadata(class_name=args.class_name, subject=args.subject, chapter=args.chapter)

    logger.info("=" * 60)
    logger.info(f"Starting Smart Study ingestion from {args.directory}")
    logger.info("=" * 60)

    try:
        summaries = ingest_directory(service, args.directory, class_meta)
    except KeyboardInterrupt:
        logger.warning("Ingestion interrupted by user")
        return 1

    logger.info("=" * 60)
    logger.info("INGESTION COMPLETE!")
    logger.info(f"Documents processed: {len(summaries)}")
    logger.info(f"Chunks stored: {sum(s.processed_count for s in summaries)}")
    logger.info(f"Chunks failed: {sum(len(s.failed_indices) for s in summaries)}")
    logger.info("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
