from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Any

from bs4 import BeautifulSoup
from pypdf import PdfReader

from receipt_verifier.core.logging import get_logger, log_event
from receipt_verifier.modules.verification.errors import ParseError
from receipt_verifier.modules.verification.models import DocumentFormat, RawDocument

logger = get_logger(__name__)

_WS_RE = re.compile(r"\s+")
_SHORT_MARKUP_BYTES = 100


@dataclass(frozen=True)
class ParsedDocument:
    format: DocumentFormat
    source_url: str
    text: str = ""
    markup: str = ""
    soup: BeautifulSoup | None = None
    data: Any = None


def collapse_whitespace(text: str | None) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def parse_document(raw: RawDocument) -> ParsedDocument:
    fmt = raw.format or detect_format(raw)
    if fmt == DocumentFormat.PDF:
        text = extract_pdf_text(raw.content)
        return ParsedDocument(format=fmt, source_url=raw.source_url, text=text)
    if fmt == DocumentFormat.HTML:
        return _parse_markup(raw)
    return _parse_structured(raw)


def detect_format(raw: RawDocument) -> DocumentFormat:
    """Sniff the body; a declared Content-Type only decides whether JSON is attempted."""
    if _looks_like_pdf_bytes(raw.content):
        return DocumentFormat.PDF
    declared_json = "json" in (raw.content_type or "").lower()
    if declared_json or raw.content.lstrip()[:1] in (b"{", b"["):
        try:
            json.loads(raw.content)
        except ValueError:
            if declared_json:
                log_event(
                    logger,
                    "verify.parse.content_type_mismatch",
                    level=logging.DEBUG,
                    source_url=raw.source_url,
                    content_type=raw.content_type,
                )
            return DocumentFormat.HTML
        return DocumentFormat.JSON
    return DocumentFormat.HTML


def extract_pdf_text(body: bytes) -> str:
    """Flatten every page of a PDF into one whitespace-collapsed string."""
    if not _looks_like_pdf_bytes(body):
        raise ParseError(reason="missing %PDF header", byte_size=len(body or b""))
    try:
        reader = PdfReader(BytesIO(body))
        pages = [(page.extract_text() or "") for page in reader.pages]
    except Exception as e:
        raise ParseError(reason=f"pdf read failed: {type(e).__name__}") from e
    text = collapse_whitespace(" ".join(pages))
    if not text:
        raise ParseError(reason="pdf has no extractable text", pages=len(pages))
    return text


def _parse_markup(raw: RawDocument) -> ParsedDocument:
    html = _decode(raw.content)
    if len(html) < _SHORT_MARKUP_BYTES:
        log_event(
            logger,
            "verify.parse.short_markup",
            level=logging.WARNING,
            source_url=raw.source_url,
            byte_size=len(raw.content),
        )
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return ParsedDocument(
        format=DocumentFormat.HTML,
        source_url=raw.source_url,
        text=collapse_whitespace(soup.get_text(" ")),
        markup=html,
        soup=soup,
    )


def _parse_structured(raw: RawDocument) -> ParsedDocument:
    try:
        data = json.loads(raw.content)
    except ValueError as e:
        raise ParseError(reason="invalid json", source_url=raw.source_url) from e
    return ParsedDocument(format=DocumentFormat.JSON, source_url=raw.source_url, data=data)


def _decode(body: bytes) -> str:
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        return body.decode("latin-1", errors="replace")


def _looks_like_pdf_bytes(body: bytes) -> bool:
    if not body:
        return False
    b = body.lstrip()
    if b.startswith(b"\xef\xbb\xbf"):
        b = b[3:].lstrip()
    return b.startswith(b"%PDF")


def require_keys(data: Any, *path: str) -> Any:
    """Walk nested dict keys, raising ParseError at the first missing level."""
    node = data
    walked: list[str] = []
    for key in path:
        walked.append(key)
        if not isinstance(node, dict) or key not in node or node[key] is None:
            raise ParseError(
                "Invalid response structure",
                missing_key=".".join(walked),
            )
        node = node[key]
    return node
