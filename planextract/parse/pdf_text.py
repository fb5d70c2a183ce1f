"""
PDF text extraction adapter (pdfplumber).

The pipeline core never looks at document bytes; this module is the
collaborator that turns a PDF into plain text.
"""

import io
import logging
from pathlib import Path
from typing import Union

import pdfplumber

from ..errors import InputError

logger = logging.getLogger(__name__)


def _extract_pages(pdf) -> str:
    pages = []
    for page in pdf.pages:
        pages.append(page.extract_text() or "")
    return "\n\n".join(pages)


def extract_text(document_bytes: bytes) -> str:
    """
    Extract plain text from PDF bytes.

    Raises:
        InputError: If no bytes were supplied
    """
    if not document_bytes:
        raise InputError("Empty PDF payload")

    with pdfplumber.open(io.BytesIO(document_bytes)) as pdf:
        text = _extract_pages(pdf)
        logger.info(f"Extracted {len(text)} chars from {len(pdf.pages)} PDF pages")
    return text


def extract_text_from_pdf(pdf_path: Union[str, Path]) -> str:
    """Extract plain text from a PDF file on disk."""
    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise FileNotFoundError(f"PDF not found: {pdf_path}")

    with pdfplumber.open(pdf_path) as pdf:
        text = _extract_pages(pdf)
        logger.info(f"Extracted {len(text)} chars from {pdf_path.name} ({len(pdf.pages)} pages)")
    return text
