"""PDF text extraction with pdfplumber."""

import asyncio
import logging
import os

import pdfplumber

from audioweaver.errors import ExtractionError

logger = logging.getLogger(__name__)


class PdfTextExtractor:
    """Extracts the digital text layer of a PDF. Runs in a worker thread."""

    async def extract(self, path: str) -> str:
        return await asyncio.to_thread(self._extract_sync, path)

    def _extract_sync(self, path: str) -> str:
        if not os.path.isfile(path):
            raise ExtractionError(f"File not found: {os.path.basename(path)}")

        size_kb = round(os.path.getsize(path) / 1024)
        logger.info("Processing PDF file: %s (%d KB)", os.path.basename(path), size_kb)

        try:
            with pdfplumber.open(path) as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
        except Exception as e:
            raise ExtractionError(f"Failed to process PDF: {e}") from e

        logger.info("Extracted text from %s (%d pages)", os.path.basename(path), len(pages))
        return "\n".join(pages)
