"""Main entry point for Smart Study RAG API."""
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import PORT, LOG_LEVEL, LOG_FORMAT, CORS_ORIGINS, STORAGE_BACKEND
from logger import setup_logging
from models.api import (
    SearchRequest,
    ChatRequest,
    StudyNotesRequest,
    SearchResponse,
    ChatResponse,
    StudyNotesResponse,
    UploadResponse,
    EmbeddingHealthResponse,
)
from models.document import ClassMetadata
from services.embedding_gateway import EmbeddingGateway, ValidationStatus
from services.errors import RagError, InvalidRequestError
from services.ingestion_service import IngestionService
from services.llm_client import LLMClient
from services.rag_orchestrator import RagOrchestrator
from services.repository import InMemoryRepository, SupabaseRepository
from services.retrieval_engine import RetrievalEngine

# Initialize logging
logger = logging.getLogger(__name__)

UPLOAD_CONTAINER = "textbooks"
_INVALID_PATH_CHARS = '\\/:*?"<>|'


@dataclass
class AppServices:
    """Service instances shared by all requests."""
    repository: object
    embedding_gateway: EmbeddingGateway
    orchestrator: RagOrchestrator
    ingestion_service: IngestionService


def build_services() -> AppServices:
    """Wire services from configuration."""
    if STORAGE_BACKEND == "memory":
        repository = InMemoryRepository()
    else:
        repository = SupabaseRepository()
    logger.info(f"Initialized {type(repository).__name__}")

    embedding_gateway = EmbeddingGateway()
    retrieval_engine = RetrievalEngine(repository)
    llm_client = LLMClient()

    orchestrator = RagOrchestrator(
        embedding_gateway=embedding_gateway,
        retrieval_engine=retrieval_engine,
        llm_client=llm_client,
        repository=repository
    )
    ingestion_service = IngestionService(repository, embedding_gateway)

    return AppServices(
        repository=repository,
        embedding_gateway=embedding_gateway,
        orchestrator=orchestrator,
        ingestion_service=ingestion_service
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on startup unless they were injected."""
    if LOG_FORMAT == "json":
        setup_logging(LOG_LEVEL)

    if getattr(app.state, "services", None) is None:
        logger.info("Initializing Smart Study RAG services...")
        try:
            app.state.services = build_services()
            logger.info("All services initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize services: {e}", exc_info=True)
            raise

    yield

    logger.info("Application shutdown")


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def sanitize_path_segment(name: Optional[str]) -> str:
    """Replace characters that are invalid in storage paths; spaces become hyphens."""
    if not name or not name.strip():
        return "unknown"

    sanitized = name.strip()
    for char in _INVALID_PATH_CHARS:
        sanitized = sanitized.replace(char, "_")
    return sanitized.replace(" ", "-")


def run_ingestion(
    ingestion_service: IngestionService,
    content: bytes,
    file_name: str,
    class_meta: ClassMetadata
) -> None:
    """Background ingestion of an uploaded file; failures are only logged."""
    try:
        ingestion_service.ingest(content, file_name, class_meta)
    except Exception as e:
        logger.error(f"CRITICAL ERROR processing file {file_name}: {e}", exc_info=True)


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        services: Pre-built services; built from configuration at startup if omitted

    Returns:
        Configured application instance
    """
    app = FastAPI(
        title="Smart Study RAG",
        description="Study assistant answering questions from uploaded textbooks",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.services = services

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RagError)
    async def rag_error_handler(request: Request, exc: RagError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if any(error.get("type") == "json_invalid" for error in errors):
            message = "Invalid JSON format"
        else:
            message = "Invalid request body"
        logger.warning(f"{message}: {errors}")
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error handling {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "An unexpected error occurred"})

    @app.get("/")
    def root():
        """Health check endpoint."""
        return {"status": "ok", "message": "Smart Study RAG API"}

    @app.get("/health")
    def health():
        """Detailed health check."""
        return {
            "status": "healthy",
            "service": "smart-study-rag",
            "version": "1.0.0"
        }

    @app.get("/health/embeddings", response_model=EmbeddingHealthResponse)
    def embedding_health(services: AppServices = Depends(get_services)):
        """Validate the embedding deployment with a small request."""
        result = services.embedding_gateway.validate_deployment()
        body = EmbeddingHealthResponse(
            status=result.status.value,
            message=result.message,
            embedding_dimensions=result.embedding_dimensions,
            deployment_name=result.deployment_name
        )
        status_code = 200 if result.status == ValidationStatus.SUCCESS else 503
        return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))

    @app.post("/rag/search", response_model=SearchResponse)
    def rag_search(request: SearchRequest, services: AppServices = Depends(get_services)) -> SearchResponse:
        """
        Answer a question from the uploaded textbooks.

        Raises:
            RagError: Rendered as {"error": ...} with 400, 404 or 500
        """
        logger.info("RAG search request received")
        result = services.orchestrator.search(request.question)
        return SearchResponse(
            answer=result.answer,
            chunks_used=result.chunks_used,
            confidence=result.confidence
        )

    @app.post("/rag/chat", response_model=ChatResponse)
    def rag_chat(request: ChatRequest, services: AppServices = Depends(get_services)) -> ChatResponse:
        """Answer a question as part of a conversation."""
        logger.info("RAG chat request received")
        result = services.orchestrator.chat(request.question, request.conversation_id)
        return ChatResponse(
            answer=result.answer,
            chunks_used=result.chunks_used,
            confidence=result.confidence,
            conversation_id=result.conversation_id
        )

    @app.post("/study/notes", response_model=StudyNotesResponse)
    def study_notes(request: StudyNotesRequest, services: AppServices = Depends(get_services)) -> StudyNotesResponse:
        """Generate study notes on a topic."""
        logger.info("Generate study notes request received")
        result = services.orchestrator.generate_study_notes(request.topic, request.format)
        return StudyNotesResponse(
            topic=result.topic,
            format=result.format,
            notes=result.notes,
            chunks_used=result.chunks_used,
            chunk_count=result.chunk_count
        )

    @app.post("/upload/textbook", response_model=UploadResponse)
    def upload_textbook(
        background_tasks: BackgroundTasks,
        class_name: Optional[str] = Form(None, alias="className"),
        subject: Optional[str] = Form(None),
        chapter: Optional[str] = Form(None),
        file: Optional[UploadFile] = File(None),
        services: AppServices = Depends(get_services)
    ) -> UploadResponse:
        """
        Accept a textbook PDF and ingest it in the background.

        Raises:
            InvalidRequestError: If metadata is missing or the file is not a PDF
        """
        logger.info("Upload textbook request received")

        if not all(value and value.strip() for value in (class_name, subject, chapter)):
            logger.warning("Missing required metadata fields")
            raise InvalidRequestError("className, subject, and chapter are required")

        if file is None or not file.filename:
            logger.warning("No file uploaded")
            raise InvalidRequestError("A PDF file is required")

        extension = os.path.splitext(file.filename)[1].lower()
        if extension != ".pdf":
            logger.warning(f"Invalid file type: {extension}")
            raise InvalidRequestError("Only PDF files are allowed")

        content = file.file.read()
        if not content:
            logger.warning("Uploaded file is empty")
            raise InvalidRequestError("A PDF file is required")

        sanitized_file_name = sanitize_path_segment(file.filename)
        blob_path = "/".join([
            UPLOAD_CONTAINER,
            sanitize_path_segment(class_name),
            sanitize_path_segment(subject),
            sanitize_path_segment(chapter),
            sanitized_file_name,
        ])

        class_meta = ClassMetadata(
            class_name=class_name.strip(),
            subject=subject.strip(),
            chapter=chapter.strip()
        )
        background_tasks.add_task(
            run_ingestion, services.ingestion_service, content, sanitized_file_name, class_meta
        )

        logger.info(
            f"Accepted upload: {file.filename} | Class: {class_meta.class_name} | "
            f"Subject: {class_meta.subject} | Chapter: {class_meta.chapter} -> {blob_path}"
        )
        return UploadResponse(
            message="File uploaded successfully",
            file_name=file.filename,
            blob_path=blob_path,
            class_name=class_meta.class_name,
            subject=class_meta.subject,
            chapter=class_meta.chapter,
            file_size=len(content)
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
