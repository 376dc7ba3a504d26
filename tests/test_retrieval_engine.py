"""Unit tests for RetrievalEngine."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import math

import pytest
from unittest.mock import Mock
from services.retrieval_engine import RetrievalEngine, rank_chunks
from services.vector_math import EncodingError, vector_to_bytes
from models.chunk import SearchResultChunk

QUERY = vector_to_bytes([1.0, 0.0])


def _record(chunk_id, similarity):
    """Record whose embedding scores `similarity` against QUERY."""
    embedding = vector_to_bytes([similarity, math.sqrt(1.0 - similarity ** 2)])
    return SearchResultChunk(chunk_id=chunk_id, text=f"chunk {chunk_id}", document_id=1, embedding=embedding)


@pytest.fixture
def corpus():
    return [_record(i + 1, s) for i, s in enumerate([0.9, 0.1, 0.5, 0.9, 0.3])]


class TestRankChunks:
    """Test suite for rank_chunks."""

    def test_top_k_order_with_ties(self, corpus):
        """Test top 3 is [0.9, 0.9, 0.5] and tied records keep corpus order."""
        ranked = rank_chunks(QUERY, corpus, 3)

        assert [r.chunk_id for r in ranked] == [1, 4, 3]
        assert [r.similarity for r in ranked] == pytest.approx([0.9, 0.9, 0.5], abs=1e-6)

    def test_results_are_non_increasing(self, corpus):
        ranked = rank_chunks(QUERY, corpus, 5)
        similarities = [r.similarity for r in ranked]

        assert similarities == sorted(similarities, reverse=True)

    def test_length_bounded_by_corpus(self, corpus):
        assert len(rank_chunks(QUERY, corpus, 50)) == len(corpus)

    def test_empty_corpus(self):
        assert rank_chunks(QUERY, [], 5) == []

    def test_non_positive_k_rejected(self, corpus):
        with pytest.raises(ValueError):
            rank_chunks(QUERY, corpus, 0)

    def test_corrupt_record_scores_zero(self, corpus):
        """Test a malformed embedding is scored 0 and the rest still rank correctly."""
        corrupt = SearchResultChunk(chunk_id=99, text="broken", document_id=1, embedding=b"\x01\x02\x03")
        corpus.insert(2, corrupt)

        ranked = rank_chunks(QUERY, corpus, 6)

        assert [r.chunk_id for r in ranked] == [1, 4, 3, 5, 2, 99]
        assert ranked[-1].similarity == 0.0

    def test_dimension_mismatch_scores_zero(self, corpus):
        """Test a record with the wrong dimension is isolated."""
        odd = SearchResultChunk(chunk_id=42, text="odd", document_id=2, embedding=vector_to_bytes([1.0, 0.0, 0.0]))

        ranked = rank_chunks(QUERY, corpus + [odd], 10)

        assert next(r for r in ranked if r.chunk_id == 42).similarity == 0.0
        assert ranked[0].chunk_id == 1

    def test_zero_vector_record_scores_zero(self):
        zero = SearchResultChunk(chunk_id=7, text="zero", document_id=1, embedding=vector_to_bytes([0.0, 0.0]))

        assert rank_chunks(QUERY, [zero], 1)[0].similarity == 0.0

    def test_malformed_query_raises(self, corpus):
        with pytest.raises(EncodingError):
            rank_chunks(b"\x00", corpus, 3)


class TestRetrievalEngine:
    """Test suite for RetrievalEngine class."""

    @pytest.fixture
    def mock_repository(self):
        """Create a mock repository."""
        return Mock()

    @pytest.fixture
    def retrieval_engine(self, mock_repository):
        return RetrievalEngine(mock_repository)

    def test_initialization(self, retrieval_engine, mock_repository):
        assert retrieval_engine.repository == mock_repository

    def test_retrieve_ranks_repository_corpus(self, retrieval_engine, mock_repository, corpus):
        """Test retrieve loads the corpus once and returns the top k."""
        mock_repository.get_all_chunks_with_embeddings.return_value = corpus

        result = retrieval_engine.retrieve(QUERY, top_k=2)

        assert [r.chunk_id for r in result] == [1, 4]
        mock_repository.get_all_chunks_with_embeddings.assert_called_once()

    def test_retrieve_empty_corpus(self, retrieval_engine, mock_repository):
        mock_repository.get_all_chunks_with_embeddings.return_value = []

        assert retrieval_engine.retrieve(QUERY, top_k=5) == []

    def test_retrieve_propagates_load_failure(self, retrieval_engine, mock_repository):
        """Test a corpus-load failure is not swallowed."""
        mock_repository.get_all_chunks_with_embeddings.side_effect = RuntimeError("database down")

        with pytest.raises(RuntimeError, match="database down"):
            retrieval_engine.retrieve(QUERY, top_k=5)
