"""Persistence for documents, chunks, embeddings, interaction logs and chat history."""
import itertools
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from supabase import create_client, Client

from config import SUPABASE_URL, SUPABASE_KEY
from models.chunk import Chunk, SearchResultChunk
from models.conversation import ConversationTurn
from models.document import ClassMetadata
from services.errors import PersistenceError

logger = logging.getLogger(__name__)

# PostgREST caps a single select; the corpus is read in pages of this size.
PAGE_SIZE = 1000


class Repository(Protocol):
    """Storage operations the ingestion and query pipelines depend on."""

    def insert_document(
        self,
        name: str,
        size_bytes: int,
        extension: str,
        class_meta: Optional[ClassMetadata] = None
    ) -> int: ...

    def insert_chunk(self, document_id: int, chunk: Chunk) -> int: ...

    def insert_embedding(self, chunk_id: int, embedding: bytes) -> None: ...

    def get_all_chunks_with_embeddings(self) -> List[SearchResultChunk]: ...

    def insert_interaction_log(
        self,
        question: str,
        answer: str,
        chunk_ids_csv: str,
        confidence: float
    ) -> None: ...

    def get_conversation_history(self, conversation_id: str, max_turns: int) -> List[ConversationTurn]: ...

    def append_conversation_turn(
        self,
        conversation_id: str,
        role: str,
        message: str,
        chunk_ids_csv: Optional[str] = None,
        confidence: Optional[float] = None
    ) -> None: ...


def encode_bytea(data: bytes) -> str:
    """Encode bytes in PostgreSQL's hex text form for a bytea column."""
    return "\\x" + data.hex()


def decode_bytea(value) -> bytes:
    """
    Decode a bytea value returned by PostgREST.

    Malformed values decode to empty bytes so the record fails embedding
    decoding on its own instead of failing the whole corpus load.
    """
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)

    text = str(value)
    if text.startswith("\\x"):
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError:
        logger.warning(f"Malformed bytea value of length {len(text)}")
        return b""


def parse_timestamp(timestamp_str: str) -> datetime:
    """
    Parse timestamp string from Supabase, handling various formats.

    Supabase can return timestamps with varying microsecond precision,
    which Python's fromisoformat() can't always handle. This method
    normalizes the timestamp format.

    Args:
        timestamp_str: Timestamp string from Supabase

    Returns:
        datetime object
    """
    # Replace 'Z' with '+00:00' for timezone
    timestamp_str = timestamp_str.replace("Z", "+00:00")

    # Format: 2026-02-21T02:08:26.18976+00:00
    if "." in timestamp_str:
        date_part, fraction = timestamp_str.split(".", 1)
        for sign in ("+", "-"):
            if sign in fraction:
                microseconds, tz = fraction.split(sign, 1)
                microseconds = microseconds[:6].ljust(6, '0')
                timestamp_str = f"{date_part}.{microseconds}{sign}{tz}"
                break
        else:
            timestamp_str = f"{date_part}.{fraction[:6].ljust(6, '0')}"

    return datetime.fromisoformat(timestamp_str)


class SupabaseRepository:
    """Repository backed by Supabase PostgreSQL tables."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        client: Optional[Client] = None
    ):
        """
        Initialize the repository with a Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            client: Pre-built client, mainly for tests

        Raises:
            ValueError: If Supabase credentials are missing and no client is given
        """
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        logger.info("SupabaseRepository initialized")

    def insert_document(
        self,
        name: str,
        size_bytes: int,
        extension: str,
        class_meta: Optional[ClassMetadata] = None
    ) -> int:
        class_meta = class_meta or ClassMetadata()
        row = {
            "file_name": name,
            "file_size_bytes": size_bytes,
            "file_type": extension,
            "class_name": class_meta.class_name,
            "subject": class_meta.subject,
            "chapter": class_meta.chapter,
        }
        return self._insert_returning_id("uploaded_files", row)

    def insert_chunk(self, document_id: int, chunk: Chunk) -> int:
        row = {
            "uploaded_file_id": document_id,
            "topic_title": chunk.title,
            "summary": chunk.summary,
            "chunk_text": chunk.text,
            "token_count": chunk.token_count,
            "page_from": chunk.page_from,
            "page_to": chunk.page_to,
            "chunk_type": chunk.kind,
        }
        return self._insert_returning_id("file_chunks", row)

    def insert_embedding(self, chunk_id: int, embedding: bytes) -> None:
        try:
            self.client.table("chunk_embeddings").insert({
                "chunk_id": chunk_id,
                "embedding": encode_bytea(embedding),
            }).execute()
        except Exception as e:
            raise PersistenceError(f"insert into chunk_embeddings failed: {e}") from e

    def get_all_chunks_with_embeddings(self) -> List[SearchResultChunk]:
        """
        Load every chunk that has an embedding.

        Raises:
            PersistenceError: If the corpus cannot be read
        """
        records: List[SearchResultChunk] = []
        start = 0

        try:
            while True:
                result = (
                    self.client.table("file_chunks")
                    .select("id, chunk_text, uploaded_file_id, chunk_embeddings!inner(embedding)")
                    .order("id")
                    .range(start, start + PAGE_SIZE - 1)
                    .execute()
                )
                rows = result.data or []

                for row in rows:
                    embedded = row.get("chunk_embeddings")
                    if isinstance(embedded, list):
                        embedded = embedded[0] if embedded else {}
                    records.append(SearchResultChunk(
                        chunk_id=row["id"],
                        text=row["chunk_text"],
                        document_id=row["uploaded_file_id"],
                        embedding=decode_bytea((embedded or {}).get("embedding"))
                    ))

                if len(rows) < PAGE_SIZE:
                    break
                start += PAGE_SIZE
        except Exception as e:
            raise PersistenceError(f"loading chunks with embeddings failed: {e}") from e

        logger.debug(f"Loaded {len(records)} chunks with embeddings")
        return records

    def insert_interaction_log(
        self,
        question: str,
        answer: str,
        chunk_ids_csv: str,
        confidence: float
    ) -> None:
        try:
            self.client.table("rag_search_logs").insert({
                "question": question,
                "answer": answer,
                "retrieved_chunk_ids": chunk_ids_csv,
                "confidence_score": confidence,
            }).execute()
        except Exception as e:
            raise PersistenceError(f"insert into rag_search_logs failed: {e}") from e

    def get_conversation_history(self, conversation_id: str, max_turns: int) -> List[ConversationTurn]:
        """
        Fetch the most recent turns of a conversation.

        Returns:
            Up to max_turns turns, oldest first
        """
        try:
            result = (
                self.client.table("chat_history")
                .select("*")
                .eq("conversation_id", conversation_id)
                .order("created_at", desc=True)
                .order("id", desc=True)
                .limit(max_turns)
                .execute()
            )
            rows = result.data or []
            turns = [
                ConversationTurn(
                    conversation_id=row["conversation_id"],
                    role=row["role"],
                    message=row["message"],
                    created_at=parse_timestamp(row["created_at"]),
                    chunks_used=row.get("chunks_used"),
                    confidence=row.get("confidence")
                )
                for row in rows
            ]
        except Exception as e:
            raise PersistenceError(f"loading chat history for {conversation_id} failed: {e}") from e

        turns.reverse()
        return turns

    def append_conversation_turn(
        self,
        conversation_id: str,
        role: str,
        message: str,
        chunk_ids_csv: Optional[str] = None,
        confidence: Optional[float] = None
    ) -> None:
        try:
            self.client.table("chat_history").insert({
                "conversation_id": conversation_id,
                "role": role,
                "message": message,
                "chunks_used": chunk_ids_csv,
                "confidence": confidence,
            }).execute()
        except Exception as e:
            raise PersistenceError(f"insert into chat_history failed: {e}") from e

    def _insert_returning_id(self, table: str, row: Dict) -> int:
        try:
            result = self.client.table(table).insert(row).execute()
        except Exception as e:
            raise PersistenceError(f"insert into {table} failed: {e}") from e

        if not result.data:
            raise PersistenceError(f"insert into {table} returned no row")
        return result.data[0]["id"]


class InMemoryRepository:
    """Process-local repository for development and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.documents: Dict[int, Dict] = {}
        self.chunks: Dict[int, Dict] = {}
        self.embeddings: Dict[int, bytes] = {}
        self.interaction_logs: List[Dict] = []
        self.chat_history: List[ConversationTurn] = []
        logger.info("InMemoryRepository initialized")

    def insert_document(
        self,
        name: str,
        size_bytes: int,
        extension: str,
        class_meta: Optional[ClassMetadata] = None
    ) -> int:
        with self._lock:
            document_id = next(self._ids)
            self.documents[document_id] = {
                "file_name": name,
                "size_bytes": size_bytes,
                "extension": extension,
                "class_meta": class_meta,
            }
        return document_id

    def insert_chunk(self, document_id: int, chunk: Chunk) -> int:
        with self._lock:
            if document_id not in self.documents:
                raise PersistenceError(f"Unknown document {document_id}")
            chunk_id = next(self._ids)
            self.chunks[chunk_id] = {"document_id": document_id, "chunk": chunk}
        return chunk_id

    def insert_embedding(self, chunk_id: int, embedding: bytes) -> None:
        with self._lock:
            if chunk_id not in self.chunks:
                raise PersistenceError(f"Unknown chunk {chunk_id}")
            self.embeddings[chunk_id] = bytes(embedding)

    def get_all_chunks_with_embeddings(self) -> List[SearchResultChunk]:
        with self._lock:
            return [
                SearchResultChunk(
                    chunk_id=chunk_id,
                    text=self.chunks[chunk_id]["chunk"].text,
                    document_id=self.chunks[chunk_id]["document_id"],
                    embedding=embedding
                )
                for chunk_id, embedding in sorted(self.embeddings.items())
            ]

    def insert_interaction_log(
        self,
        question: str,
        answer: str,
        chunk_ids_csv: str,
        confidence: float
    ) -> None:
        with self._lock:
            self.interaction_logs.append({
                "question": question,
                "answer": answer,
                "retrieved_chunk_ids": chunk_ids_csv,
                "confidence_score": confidence,
                "created_at": datetime.now(timezone.utc),
            })

    def get_conversation_history(self, conversation_id: str, max_turns: int) -> List[ConversationTurn]:
        if max_turns <= 0:
            return []
        with self._lock:
            turns = [t for t in self.chat_history if t.conversation_id == conversation_id]
        return turns[-max_turns:]

    def append_conversation_turn(
        self,
        conversation_id: str,
        role: str,
        message: str,
        chunk_ids_csv: Optional[str] = None,
        confidence: Optional[float] = None
    ) -> None:
        turn = ConversationTurn(
            conversation_id=conversation_id,
            role=role,
            message=message,
            created_at=datetime.now(timezone.utc),
            chunks_used=chunk_ids_csv,
            confidence=confidence
        )
        with self._lock:
            self.chat_history.append(turn)
