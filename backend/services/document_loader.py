"""Text extraction for uploaded documents."""
import logging
from typing import List
import fitz  # PyMuPDF

from config import PAGE_BREAK_MARKER
from services.errors import ExtractionError

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = {".txt", ".md"}
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tiff", ".webp"}
SUPPORTED_EXTENSIONS = {".pdf"} | TEXT_EXTENSIONS


def normalize_extension(extension: str) -> str:
    extension = (extension or "").strip().lower()
    if extension and not extension.startswith("."):
        extension = "." + extension
    return extension


class DocumentLoader:
    """Converts raw document bytes to text."""

    def extract(self, raw_bytes: bytes, extension: str) -> str:
        """
        Extract text from a document.

        PDF pages are separated by page-break markers and blank pages are
        skipped. Images and unknown formats yield empty text.

        Args:
            raw_bytes: File contents
            extension: File extension, with or without the leading dot

        Returns:
            Extracted text, possibly empty

        Raises:
            ExtractionError: If the bytes are empty, the PDF cannot be read,
                or the PDF contains no text
        """
        if not raw_bytes:
            raise ExtractionError("Document bytes cannot be empty")

        extension = normalize_extension(extension)

        if extension == ".pdf":
            return self._extract_pdf(raw_bytes)

        if extension in TEXT_EXTENSIONS:
            return raw_bytes.decode("utf-8", errors="replace")

        if extension in IMAGE_EXTENSIONS:
            logger.warning(f"Image text extraction is not supported, skipping {extension} file")
        else:
            logger.warning(f"Unsupported file type: {extension or '(none)'}")
        return ""

    def _extract_pdf(self, raw_bytes: bytes) -> str:
        try:
            pdf_document = fitz.open(stream=raw_bytes, filetype="pdf")
        except Exception as e:
            raise ExtractionError(f"Failed to extract text from PDF: {str(e)}") from e

        pages: List[str] = []
        try:
            for page_num in range(len(pdf_document)):
                try:
                    page_text = pdf_document[page_num].get_text()
                except Exception as e:
                    logger.warning(f"Failed to extract text from page {page_num + 1}: {str(e)}")
                    continue

                if page_text and page_text.strip():
                    pages.append(page_text.strip())
        finally:
            pdf_document.close()

        if not pages:
            raise ExtractionError(
                "No text could be extracted from the PDF. The PDF may be image-based or empty."
            )

        logger.info(f"Extracted text from {len(pages)} PDF pages")
        return f"\n\n{PAGE_BREAK_MARKER}\n\n".join(pages)
