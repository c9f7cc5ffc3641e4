"""Document text extraction."""

from .pdf import extract_text_from_pdf

__all__ = ["extract_text_from_pdf"]
