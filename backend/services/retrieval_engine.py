"""Retrieval engine: brute-force cosine ranking over the stored corpus."""
import logging
from typing import List, Sequence

from models.chunk import SearchResultChunk
from services.vector_math import bytes_to_vector, cosine_similarity

logger = logging.getLogger(__name__)


def rank_chunks(
    query_embedding: bytes,
    corpus: Sequence[SearchResultChunk],
    k: int
) -> List[SearchResultChunk]:
    """
    Score every corpus record against the query and return the top k.

    A record whose embedding cannot be decoded or compared scores 0.0 and
    stays in the ranking. Equal scores keep corpus order.

    Args:
        query_embedding: Encoded query vector
        corpus: Records to rank; their similarity field is overwritten
        k: Maximum number of results

    Returns:
        Up to k records, highest similarity first

    Raises:
        ValueError: If k is not positive
        EncodingError: If the query embedding itself is malformed
    """
    if k <= 0:
        raise ValueError("k must be positive")

    if not corpus:
        return []

    query_vector = bytes_to_vector(query_embedding)

    for record in corpus:
        try:
            record.similarity = cosine_similarity(query_vector, bytes_to_vector(record.embedding))
        except ValueError as e:
            logger.warning(f"Failed to compute similarity for chunk {record.chunk_id}, scoring 0: {e}")
            record.similarity = 0.0

    ranked = sorted(corpus, key=lambda record: record.similarity, reverse=True)
    return ranked[:k]


class RetrievalEngine:
    """Loads the embedded corpus and ranks it against a query embedding."""

    def __init__(self, repository):
        """
        Initialize the retrieval engine.

        Args:
            repository: Persistence collaborator exposing get_all_chunks_with_embeddings()
        """
        self.repository = repository
        logger.info("Initialized RetrievalEngine")

    def retrieve(self, query_embedding: bytes, top_k: int = 5) -> List[SearchResultChunk]:
        """
        Retrieve the top_k chunks most similar to the query.

        Returns:
            Ranked chunks; empty if the corpus is empty

        Raises:
            PersistenceError: If the corpus cannot be loaded
        """
        corpus = self.repository.get_all_chunks_with_embeddings()

        if not corpus:
            logger.warning("No chunks with embeddings found in corpus")
            return []

        logger.info(f"Computing similarity for {len(corpus)} chunks")
        top_chunks = rank_chunks(query_embedding, corpus, top_k)

        logger.info(
            f"Selected top {len(top_chunks)} chunks out of {len(corpus)}. "
            f"Best similarity: {top_chunks[0].similarity:.4f}, worst: {top_chunks[-1].similarity:.4f}"
        )
        return top_chunks
