"""Integration tests for the HTTP endpoints."""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import Mock
import sys
import os

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

from main import AppServices, create_app, sanitize_path_segment
from models.document import ClassMetadata
from services.embedding_gateway import ValidationResult, ValidationStatus
from services.errors import (
    CompletionError,
    InternalServiceError,
    InvalidRequestError,
    NoContentFoundError,
)
from services.rag_orchestrator import AnswerResult, StudyNotesResult


@pytest.fixture
def services():
    """Mock all services to avoid external dependencies."""
    return AppServices(
        repository=Mock(),
        embedding_gateway=Mock(),
        orchestrator=Mock(),
        ingestion_service=Mock()
    )


@pytest.fixture
def client(services):
    """Create a test client with mocked services."""
    app = create_app(services=services)
    return TestClient(app, raise_server_exceptions=False)


class TestHealthEndpoints:
    """Test suite for health checks."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "message": "Smart Study RAG API"}

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_embedding_health_success(self, client, services):
        """Test a working deployment reports 200 with camelCase fields."""
        services.embedding_gateway.validate_deployment.return_value = ValidationResult(
            status=ValidationStatus.SUCCESS,
            message="Embedding deployment is working",
            embedding_dimensions=3072,
            deployment_name="text-embedding-3-large"
        )

        response = client.get("/health/embeddings")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["embeddingDimensions"] == 3072
        assert data["deploymentName"] == "text-embedding-3-large"

    def test_embedding_health_failure_is_503(self, client, services):
        services.embedding_gateway.validate_deployment.return_value = ValidationResult(
            status=ValidationStatus.NOT_CONFIGURED,
            message="Real embeddings are disabled"
        )

        response = client.get("/health/embeddings")

        assert response.status_code == 503
        assert response.json()["status"] == "not_configured"


class TestRagSearchEndpoint:
    """Test suite for POST /rag/search."""

    def test_success(self, client, services):
        """Test a successful search returns answer, chunk ids and confidence."""
        services.orchestrator.search.return_value = AnswerResult(
            answer="Plants make food from sunlight.",
            chunks_used=[4, 9],
            confidence=0.9123
        )

        response = client.post("/rag/search", json={"question": "What is photosynthesis?"})

        assert response.status_code == 200
        assert response.json() == {
            "answer": "Plants make food from sunlight.",
            "chunksUsed": [4, 9],
            "confidence": 0.9123
        }
        services.orchestrator.search.assert_called_once_with("What is photosynthesis?")

    def test_missing_question_is_passed_through(self, client, services):
        """Test validation of the question is left to the orchestrator."""
        services.orchestrator.search.side_effect = InvalidRequestError("Question is required")

        response = client.post("/rag/search", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "Question is required"}
        services.orchestrator.search.assert_called_once_with(None)

    def test_invalid_json(self, client, services):
        response = client.post(
            "/rag/search",
            content="{not json",
            headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON format"}
        services.orchestrator.search.assert_not_called()

    def test_wrong_field_type(self, client):
        response = client.post("/rag/search", json={"question": ["not", "a", "string"]})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    def test_no_content_is_404(self, client, services):
        services.orchestrator.search.side_effect = NoContentFoundError(
            "No relevant content found. Please upload documents first."
        )

        response = client.post("/rag/search", json={"question": "Q?"})

        assert response.status_code == 404
        assert response.json() == {"error": "No relevant content found. Please upload documents first."}

    @pytest.mark.parametrize("error", [
        InternalServiceError("Failed to retrieve matching chunks"),
        CompletionError("Failed to generate answer"),
    ])
    def test_internal_errors_are_500(self, client, services, error):
        services.orchestrator.search.side_effect = error

        response = client.post("/rag/search", json={"question": "Q?"})

        assert response.status_code == 500
        assert response.json() == {"error": error.message}

    def test_unexpected_exception_is_generic_500(self, client, services):
        """Test unexpected exceptions do not leak their message."""
        services.orchestrator.search.side_effect = RuntimeError("db password is hunter2")

        response = client.post("/rag/search", json={"question": "Q?"})

        assert response.status_code == 500
        assert response.json() == {"error": "An unexpected error occurred"}


class TestRagChatEndpoint:
    """Test suite for POST /rag/chat."""

    def test_new_conversation(self, client, services):
        services.orchestrator.chat.return_value = AnswerResult(
            answer="Osmosis moves water.",
            chunks_used=[2],
            confidence=0.8,
            conversation_id="11111111-2222-3333-4444-555555555555"
        )

        response = client.post("/rag/chat", json={"question": "What is osmosis?"})

        assert response.status_code == 200
        assert response.json()["conversationId"] == "11111111-2222-3333-4444-555555555555"
        services.orchestrator.chat.assert_called_once_with("What is osmosis?", None)

    def test_existing_conversation_id_is_forwarded(self, client, services):
        services.orchestrator.chat.return_value = AnswerResult(
            answer="A tissue is a group of cells.",
            chunks_used=[1, 3],
            confidence=0.7,
            conversation_id="conv-1"
        )

        response = client.post("/rag/chat", json={"question": "And a tissue?", "conversationId": "conv-1"})

        assert response.status_code == 200
        assert response.json() == {
            "answer": "A tissue is a group of cells.",
            "chunksUsed": [1, 3],
            "confidence": 0.7,
            "conversationId": "conv-1"
        }
        services.orchestrator.chat.assert_called_once_with("And a tissue?", "conv-1")


class TestStudyNotesEndpoint:
    """Test suite for POST /study/notes."""

    def test_success(self, client, services):
        services.orchestrator.generate_study_notes.return_value = StudyNotesResult(
            topic="Photosynthesis",
            format="flashcards",
            notes="Q: What absorbs light?\nA: Chlorophyll",
            chunks_used=[5, 6, 7],
            chunk_count=3
        )

        response = client.post("/study/notes", json={"topic": "Photosynthesis", "format": "flashcards"})

        assert response.status_code == 200
        assert response.json() == {
            "topic": "Photosynthesis",
            "format": "flashcards",
            "notes": "Q: What absorbs light?\nA: Chlorophyll",
            "chunksUsed": [5, 6, 7],
            "chunkCount": 3
        }
        services.orchestrator.generate_study_notes.assert_called_once_with("Photosynthesis", "flashcards")

    def test_blank_topic(self, client, services):
        services.orchestrator.generate_study_notes.side_effect = InvalidRequestError("Topic is required")

        response = client.post("/study/notes", json={"topic": "  "})

        assert response.status_code == 400
        assert response.json() == {"error": "Topic is required"}


class TestUploadEndpoint:
    """Test suite for POST /upload/textbook."""

    FORM = {"className": "10", "subject": "Science", "chapter": "Chapter 1"}

    def test_accepts_pdf_and_ingests_in_background(self, client, services):
        """Test a valid upload responds immediately and ingestion runs afterwards."""
        content = b"%PDF-1.4 fake pdf bytes"

        response = client.post(
            "/upload/textbook",
            data=self.FORM,
            files={"file": ("Cell Biology.pdf", content, "application/pdf")}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "File uploaded successfully"
        assert data["fileName"] == "Cell Biology.pdf"
        assert data["blobPath"] == "textbooks/10/Science/Chapter-1/Cell-Biology.pdf"
        assert data["className"] == "10"
        assert data["fileSize"] == len(content)

        services.ingestion_service.ingest.assert_called_once_with(
            content,
            "Cell-Biology.pdf",
            ClassMetadata(class_name="10", subject="Science", chapter="Chapter 1")
        )

    def test_background_failure_does_not_affect_response(self, client, services):
        services.ingestion_service.ingest.side_effect = RuntimeError("extraction failed")

        response = client.post(
            "/upload/textbook",
            data=self.FORM,
            files={"file": ("book.pdf", b"%PDF-1.4", "application/pdf")}
        )

        assert response.status_code == 200

    @pytest.mark.parametrize("missing", ["className", "subject", "chapter"])
    def test_missing_metadata(self, client, services, missing):
        form = {k: v for k, v in self.FORM.items() if k != missing}

        response = client.post(
            "/upload/textbook",
            data=form,
            files={"file": ("book.pdf", b"%PDF-1.4", "application/pdf")}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "className, subject, and chapter are required"}
        services.ingestion_service.ingest.assert_not_called()

    def test_missing_file(self, client):
        response = client.post("/upload/textbook", data=self.FORM)

        assert response.status_code == 400
        assert response.json() == {"error": "A PDF file is required"}

    def test_empty_file(self, client):
        response = client.post(
            "/upload/textbook",
            data=self.FORM,
            files={"file": ("book.pdf", b"", "application/pdf")}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "A PDF file is required"}

    def test_non_pdf_rejected(self, client, services):
        response = client.post(
            "/upload/textbook",
            data=self.FORM,
            files={"file": ("notes.txt", b"plain text", "text/plain")}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Only PDF files are allowed"}
        services.ingestion_service.ingest.assert_not_called()


class TestSanitizePathSegment:
    """Test suite for storage path sanitization."""

    @pytest.mark.parametrize("raw,expected", [
        ("Chapter 1", "Chapter-1"),
        ("  Science  ", "Science"),
        ('a/b\\c:d*e?f"g<h>i|j', "a_b_c_d_e_f_g_h_i_j"),
        ("", "unknown"),
        ("   ", "unknown"),
        (None, "unknown"),
    ])
    def test_sanitize(self, raw, expected):
        assert sanitize_path_segment(raw) == expected
