"""
text_extractor.py

Plain-text extraction from PDF resumes, ready for keyword scanning.

Pages are read in ascending order. Within a page every text-show fragment is
collected in the order the PDF content stream reports it (no spatial
re-sorting, so a multi-column layout may come out interleaved) and the
fragments are joined by a single space. The resulting string has every run of
whitespace collapsed to a single space and no leading/trailing blanks.

Dependencies:
- pypdf

Usage:
    from cvscreen.analysis_engine.text_extractor import extract_text
    text = extract_text(pdf_bytes)
"""
from __future__ import annotations

import io
import logging
import re
from typing import Iterable, List

from pypdf import PdfReader

from cvscreen.config import MIN_USABLE_TEXT_LENGTH

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_WHITESPACE_RE = re.compile(r"\s+")


class DocumentParseError(ValueError):
    """Raised when a byte buffer cannot be read as a PDF document."""


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def extract_pages(data: bytes) -> List[str]:
    """
    Return the text of every page, page 1 first.
    Raises DocumentParseError for empty input or anything pypdf cannot open.
    """
    if not data:
        raise DocumentParseError("Empty document")

    try:
        reader = PdfReader(io.BytesIO(data))
        return [" ".join(_page_runs(page)) for page in reader.pages]
    except Exception as exc:
        raise DocumentParseError(f"Could not parse PDF document: {exc}") from exc


def _page_runs(page) -> List[str]:
    """Text fragments of one page, in content-stream order."""
    runs: List[str] = []

    def visitor(text, _cm, _tm, _font_dict, _font_size):
        if text and not text.isspace():
            runs.append(text)

    page.extract_text(visitor_text=visitor)
    return runs


def join_pages(pages: Iterable[str]) -> str:
    """Join page texts with a single space and collapse whitespace."""
    return normalize_whitespace(" ".join(pages))


def extract_text(data: bytes) -> str:
    """
    Extract normalized plain text from PDF bytes.
    Unparseable documents yield an empty string instead of an exception.
    """
    try:
        return join_pages(extract_pages(data))
    except DocumentParseError:
        return ""


def is_usable_text(text: str, min_length: int = MIN_USABLE_TEXT_LENGTH) -> bool:
    """Scanned or broken PDFs leave (almost) nothing behind; treat those as unusable."""
    return len(text or "") >= min_length
