"""Buyer attachments: data-URI decoding and PDF text extraction using pdfplumber."""

from __future__ import annotations

import base64
import binascii
import io
import logging
import re
from urllib.parse import unquote_to_bytes

import pdfplumber

logger = logging.getLogger(__name__)

_DATA_URI_RE = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[\w.+-]+=[^;,]*)*)(?P<base64>;base64)?,(?P<data>.*)$",
    re.DOTALL,
)


class PDFParseError(Exception):
    """Raised when the PDF cannot be parsed (corrupt or invalid)."""


def decode_data_uri(uri: str) -> tuple[str, bytes]:
    """
    Split a ``data:`` URI into (mime type, payload bytes).

    Raises ValueError if the value is not a data URI or its base64 payload is invalid.
    """
    m = _DATA_URI_RE.match(uri.strip())
    if not m:
        raise ValueError("expected a data URI (data:<mime>;base64,<payload>)")
    mime = (m.group("mime") or "text/plain").lower()
    data = m.group("data")
    if m.group("base64"):
        try:
            return mime, base64.b64decode(data, validate=True)
        except binascii.Error as e:
            raise ValueError(f"invalid base64 payload: {e}") from e
    return mime, unquote_to_bytes(data)


def extract_pdf_text(data: bytes) -> str:
    """
    Extract the text of every page, pages separated by newlines.

    Raises PDFParseError on invalid or corrupt documents.
    """
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = []
            for page in pdf.pages:
                try:
                    text = page.extract_text()
                except Exception:
                    text = ""
                if text and text.strip():
                    pages.append(text.strip())
            return "\n".join(pages)
    except Exception as e:
        raise PDFParseError(f"Could not parse PDF: {e}") from e


def pdf_data_uri_text(name: str, content: str, max_chars: int | None = None) -> str:
    """Text of a PDF data URI; empty (with a warning) when the document is unreadable."""
    _, data = decode_data_uri(content)
    try:
        text = extract_pdf_text(data)
    except PDFParseError as e:
        logger.warning("Ignoring unreadable PDF %s: %s", name, e)
        return ""
    if max_chars is not None and len(text) > max_chars:
        logger.info("Truncating text of %s from %d to %d chars", name, len(text), max_chars)
        text = text[:max_chars]
    return text
