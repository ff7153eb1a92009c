"""
Document Parser
================

Decodes submitted bytes into plain text and computes the content
digest the rest of the pipeline refers to.

Supported media types:
    - text/plain        (charset parameter honored, UTF-8 by default)
    - application/pdf   (text layer extracted with pdfminer.six)

Anything else raises ``UnsupportedFormat`` before a record is created.
The digest is taken over the raw bytes, not the decoded text, so two
PDFs with the same text but different bytes are distinct documents.
"""

from __future__ import annotations

import io
import logging
from typing import Optional

from certicv.errors import EmptyDocument, UnsupportedFormat
from certicv.schemas.claims import ParsedDocument
from certicv.utils import sha256_hex

logger = logging.getLogger("certicv.extract.document")


PLAIN_TEXT = "text/plain"
PDF = "application/pdf"
SUPPORTED_MEDIA_TYPES = (PLAIN_TEXT, PDF)


def split_media_type(media_type: str) -> tuple[str, dict[str, str]]:
    """Split ``"text/plain; charset=latin-1"`` into the bare type and its parameters."""
    parts = [p.strip() for p in (media_type or "").split(";")]
    bare = parts[0].lower()
    params: dict[str, str] = {}
    for part in parts[1:]:
        if "=" in part:
            key, _, value = part.partition("=")
            params[key.strip().lower()] = value.strip().strip('"')
    return bare, params


class DocumentParser:
    """
    Decodes documents of the supported media types.

    Usage:
        parser = DocumentParser()
        parsed = parser.parse(pdf_bytes, "application/pdf")
        parsed.text, parsed.document_digest

    Args:
        supported: Media types this parser accepts.
    """

    def __init__(self, supported: tuple[str, ...] = SUPPORTED_MEDIA_TYPES):
        self.supported = supported

    def validate_format(self, media_type: str) -> bool:
        """True if ``media_type`` (parameters ignored) is accepted."""
        bare, _ = split_media_type(media_type)
        return bare in self.supported

    def parse(self, content: Optional[bytes], media_type: str) -> ParsedDocument:
        """
        Decode ``content`` according to ``media_type``.

        Raises:
            EmptyDocument: If ``content`` is None.
            UnsupportedFormat: If the type is not supported or the bytes
                cannot be decoded as that type.
        """
        if content is None:
            raise EmptyDocument("No document provided")

        bare, params = split_media_type(media_type)
        if bare not in self.supported:
            raise UnsupportedFormat(media_type)

        if bare == PDF:
            text = self._extract_pdf(content, media_type)
        else:
            text = self._decode_text(content, params.get("charset", "utf-8"), media_type)

        parsed = ParsedDocument(
            text=text,
            media_type=bare,
            document_digest=sha256_hex(content),
            word_count=len(text.split()),
            character_count=len(text),
        )
        logger.debug(
            f"Parsed {bare} document: {parsed.word_count} words, "
            f"digest {parsed.document_digest[:18]}…"
        )
        return parsed

    def _decode_text(self, content: bytes, charset: str, media_type: str) -> str:
        try:
            return content.decode(charset)
        except LookupError:
            raise UnsupportedFormat(media_type, f"unknown charset {charset!r}")
        except UnicodeDecodeError as e:
            raise UnsupportedFormat(media_type, f"not valid {charset}: {e.reason}")

    def _extract_pdf(self, content: bytes, media_type: str) -> str:
        from pdfminer.high_level import extract_text
        from pdfminer.psparser import PSException

        if not content.startswith(b"%PDF"):
            raise UnsupportedFormat(media_type, "missing PDF header")
        try:
            return extract_text(io.BytesIO(content))
        except PSException as e:
            raise UnsupportedFormat(media_type, f"unreadable PDF: {e}")
