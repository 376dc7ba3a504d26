"""Error taxonomy for the ingestion and RAG pipelines."""
from typing import Optional


class RagError(Exception):
    """Base error surfaced to API callers as a structured response."""

    status_code = 500

    def __init__(self, message: str, stage: Optional[str] = None):
        self.message = message
        self.stage = stage
        super().__init__(message)


class InvalidRequestError(RagError):
    """Malformed or missing required input."""

    status_code = 400


class NoContentFoundError(RagError):
    """Retrieval found nothing to ground an answer on."""

    status_code = 404


class InternalServiceError(RagError):
    """Generic internal failure; the message is safe to show to callers."""

    status_code = 500


class CompletionError(InternalServiceError):
    """The language model call failed after its retry budget."""


class ExtractionError(Exception):
    """A source document could not be converted to text."""


class PersistenceError(Exception):
    """A storage operation failed."""
