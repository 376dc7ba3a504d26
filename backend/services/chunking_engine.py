"""Chunking engine: paragraph, sentence, then character-limit splitting."""
import logging
import math
import re
from typing import List, Tuple

from models.chunk import Chunk
from config import MAX_CHUNK_SIZE, MIN_CHUNK_SIZE, PAGE_BREAK_MARKER

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100
SUMMARY_MAX_LENGTH = 250

# A chunk paired with whether it came from character slicing (never filtered).
_Piece = Tuple[str, bool]

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])[ \n]")


class ChunkingEngine:
    """Splits extracted document text into bounded, self-contained chunks."""

    def __init__(self, max_chunk_size: int = MAX_CHUNK_SIZE, min_chunk_size: int = MIN_CHUNK_SIZE):
        """
        Initialize ChunkingEngine.

        Args:
            max_chunk_size: Target upper bound for a chunk, in characters
            min_chunk_size: Semantic chunks shorter than this are discarded
        """
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        if min_chunk_size < 0 or min_chunk_size > max_chunk_size:
            raise ValueError("min_chunk_size must be between 0 and max_chunk_size")

        self.max_chunk_size = max_chunk_size
        self.min_chunk_size = min_chunk_size

    def chunk(self, text: str) -> List[str]:
        """
        Split text into ordered chunk strings.

        Paragraphs are accumulated up to the size limit; oversized paragraphs
        are split on sentences, and oversized sentences are sliced into fixed
        windows. Semantic chunks under the minimum size are dropped, sliced
        windows are kept. If nothing survives, the whole text is sliced.

        Args:
            text: Extracted document text, possibly with page-break markers

        Returns:
            List of trimmed, non-empty chunk strings
        """
        if not text or not text.strip():
            return []

        text = self._normalize(text)

        pieces = self._paragraph_pass(text)
        kept = [
            piece for piece, sliced in pieces
            if sliced or len(piece) >= self.min_chunk_size
        ]

        if not kept:
            logger.debug("No semantic chunks survived filtering, slicing whole text")
            kept = self._split_by_character_limit(text.strip())

        logger.debug(f"Chunked {len(text)} characters into {len(kept)} chunks")
        return kept

    def build_chunks(self, text: str) -> List[Chunk]:
        """
        Chunk text and attach title, summary and token estimate to each chunk.

        The chunk index is the chunk's position in the output.
        """
        return [
            Chunk(
                chunk_index=index,
                text=chunk_text,
                title=self.generate_title(chunk_text, index),
                summary=self.generate_summary(chunk_text),
                token_count=self.estimate_token_count(chunk_text),
            )
            for index, chunk_text in enumerate(self.chunk(text))
        ]

    @staticmethod
    def estimate_token_count(text: str) -> int:
        """Roughly four characters per token."""
        if not text or not text.strip():
            return 0
        return math.ceil(len(text) / 4.0)

    @staticmethod
    def generate_title(chunk_text: str, index: int) -> str:
        """Use the first sentence if it is short, else a truncated prefix."""
        if not chunk_text or not chunk_text.strip():
            return f"Chunk {index + 1}"

        end = chunk_text.find(".")
        if 0 < end < TITLE_MAX_LENGTH:
            return chunk_text[:end].strip()

        title = chunk_text[:TITLE_MAX_LENGTH].strip()
        return title + "..." if len(title) < len(chunk_text) else title

    @staticmethod
    def generate_summary(chunk_text: str) -> str:
        if not chunk_text or not chunk_text.strip():
            return ""

        summary = chunk_text[:SUMMARY_MAX_LENGTH].strip()
        return summary + "..." if len(summary) < len(chunk_text) else summary

    def _normalize(self, text: str) -> str:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        return text.replace(PAGE_BREAK_MARKER, "\n\n")

    def _paragraph_pass(self, text: str) -> List[_Piece]:
        pieces: List[_Piece] = []
        current = ""

        for paragraph in _PARAGRAPH_BREAK.split(text):
            paragraph = paragraph.strip()
            if not paragraph:
                continue

            if len(current) + len(paragraph) + 2 > self.max_chunk_size:
                if current:
                    pieces.append((current.strip(), False))
                    current = ""

                if len(paragraph) > self.max_chunk_size:
                    pieces.extend(self._sentence_pass(paragraph))
                else:
                    current = paragraph
            else:
                current = paragraph if not current else f"{current}\n\n{paragraph}"

        if current.strip():
            pieces.append((current.strip(), False))

        return pieces

    def _sentence_pass(self, paragraph: str) -> List[_Piece]:
        pieces: List[_Piece] = []
        current = ""

        sentences = [s.strip() for s in _SENTENCE_BREAK.split(paragraph)]

        for sentence in sentences:
            if not sentence:
                continue

            if len(current) + len(sentence) + 1 > self.max_chunk_size:
                if current:
                    pieces.append((current.strip(), False))
                    current = ""

                if len(sentence) > self.max_chunk_size:
                    pieces.extend((window, True) for window in self._split_by_character_limit(sentence))
                else:
                    current = sentence
            else:
                current = sentence if not current else f"{current} {sentence}"

        if current.strip():
            pieces.append((current.strip(), False))

        return pieces

    def _split_by_character_limit(self, text: str) -> List[str]:
        windows = []
        for start in range(0, len(text), self.max_chunk_size):
            window = text[start:start + self.max_chunk_size].strip()
            if window:
                windows.append(window)
        return windows
