"""
Text extraction from uploaded résumé / reference PDFs.
"""
import io
import logging
from typing import Optional

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ...config import MAX_DOCUMENT_BYTES
from ...errors import DocumentError

logger = logging.getLogger("documents")


def extract_text_from_pdf(data: Optional[bytes], content_type: str = "application/pdf") -> str:
    """
    Extract the text of every page, joined by newlines.

    Raises:
        DocumentError: For missing, non-PDF, oversized or image-only files
    """
    if not data:
        raise DocumentError("No file provided.")
    if content_type != "application/pdf":
        raise DocumentError("Only PDF files are supported.")
    if len(data) > MAX_DOCUMENT_BYTES:
        raise DocumentError("File is too large. Maximum size is 5MB.")

    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except PdfReadError as e:
        logger.warning(f"Unreadable PDF: {e}")
        raise DocumentError(f"Could not read this PDF: {e}") from e

    text = "\n".join(pages).strip()
    if not text:
        raise DocumentError("Could not extract text from this PDF. It may contain only images.")

    logger.info(f"Extracted {len(text)} characters from {len(pages)} page(s)")
    return text
