"""PDF inspection for uploaded notes using PyMuPDF."""

import logging
from dataclasses import dataclass

import pymupdf  # PyMuPDF

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PdfInfo:
    valid: bool
    page_count: int = 0
    title: str | None = None
    error: str | None = None


class PDFProcessor:
    """Checks that an uploaded note really is a readable PDF."""

    @staticmethod
    async def inspect(pdf_bytes: bytes) -> PdfInfo:
        """
        Open the document and report what we learned.

        Returns:
            PdfInfo with valid=False (and the parser's error) for anything
            PyMuPDF cannot open or that has no pages.

        Example:
            >>> info = await pdf_processor.inspect(data)
            >>> if info.valid:
            ...     print(f"{info.page_count} pages")
        """
        try:
            doc = pymupdf.open(stream=pdf_bytes, filetype="pdf")
        except Exception as e:
            logger.info("Rejected upload that is not a PDF: %s", e)
            return PdfInfo(valid=False, error=str(e))

        try:
            page_count = len(doc)
            title = (doc.metadata or {}).get("title") or None
        finally:
            doc.close()

        if page_count == 0:
            return PdfInfo(valid=False, error="document has no pages")
        return PdfInfo(valid=True, page_count=page_count, title=title)


# Singleton instance
pdf_processor = PDFProcessor()
