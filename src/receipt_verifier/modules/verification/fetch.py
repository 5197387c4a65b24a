from __future__ import annotations

import logging
import time
from urllib.parse import quote

import httpx

from receipt_verifier.core.config import settings
from receipt_verifier.core.logging import get_logger, log_event, monotonic_ms
from receipt_verifier.modules.verification.errors import NetworkError
from receipt_verifier.modules.verification.models import DocumentFormat, RawDocument
from receipt_verifier.modules.verification.render import render_and_capture

logger = get_logger(__name__)

_ACCEPT: dict[DocumentFormat, str] = {
    DocumentFormat.PDF: "application/pdf",
    DocumentFormat.HTML: "text/html,application/xhtml+xml",
    DocumentFormat.JSON: "application/json, text/plain, */*",
}

# Substrings a declared Content-Type must contain to count as the expected format.
_CONTENT_TYPE_MARKERS: dict[DocumentFormat, tuple[str, ...]] = {
    DocumentFormat.PDF: ("pdf",),
    DocumentFormat.HTML: ("html",),
    DocumentFormat.JSON: ("json", "text/plain", "javascript"),
}


def build_url(template: str, **values: str | None) -> str:
    """Fill a URL template, percent-encoding each value so it stays inside its slot."""
    return template.format(**{k: quote(v or "", safe="") for k, v in values.items()})


def content_type_matches(content_type: str | None, expect: DocumentFormat) -> bool:
    ctype = (content_type or "").lower()
    return any(marker in ctype for marker in _CONTENT_TYPE_MARKERS[expect])


def fetch_direct(
    url: str,
    *,
    expect: DocumentFormat | None,
    timeout: float | None = None,
    verify_tls: bool = True,
    accept: str | None = None,
    user_agent: str | None = None,
) -> RawDocument:
    """GET `url` and return its body as a RawDocument of the expected format.

    Transport failures, timeouts, non-2xx responses, empty bodies and a declared
    Content-Type that contradicts `expect` all raise NetworkError. A missing
    Content-Type header is tolerated; the parser gets the final say on the bytes.
    """
    headers = {
        "User-Agent": user_agent or settings.user_agent,
        "Accept": accept or (_ACCEPT[expect] if expect else "*/*"),
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }
    start = time.monotonic()
    log_event(logger, "verify.fetch.request", level=logging.DEBUG, url=url, verify_tls=verify_tls)
    try:
        resp = httpx.get(
            url,
            headers=headers,
            timeout=float(timeout or settings.request_timeout_seconds),
            follow_redirects=True,
            verify=verify_tls,
        )
        resp.raise_for_status()
    except httpx.TimeoutException as e:
        raise NetworkError("Failed to fetch receipt: timed out", url=url) from e
    except httpx.HTTPStatusError as e:
        status = e.response.status_code if e.response is not None else None
        raise NetworkError(f"Failed to fetch receipt: HTTP {status}", url=url, status=status) from e
    except httpx.HTTPError as e:
        raise NetworkError("Failed to fetch receipt", url=url, reason=str(e)) from e

    content_type = resp.headers.get("content-type")
    body = resp.content or b""
    log_event(
        logger,
        "verify.fetch.response",
        url=url,
        status_code=resp.status_code,
        content_type=content_type,
        byte_size=len(body),
        duration_ms=monotonic_ms(start),
    )
    if not body.strip():
        raise NetworkError("Failed to fetch receipt: empty response", url=url)
    if expect and content_type and not content_type_matches(content_type, expect):
        raise NetworkError(
            f"Failed to fetch receipt: unexpected content type {content_type.split(';')[0]}",
            url=url,
            content_type=content_type,
        )
    return RawDocument(format=expect, content=body, source_url=str(resp.url), content_type=content_type)


def fetch_relay(url: str, *, timeout: float | None = None) -> RawDocument:
    """Alternate mirror that may answer with JSON or with the receipt markup."""
    doc = fetch_direct(
        url,
        expect=None,
        timeout=timeout,
        accept=_ACCEPT[DocumentFormat.JSON],
    )
    return RawDocument(
        format=None,
        content=doc.content,
        source_url=doc.source_url,
        content_type=doc.content_type,
    )


def fetch_rendered(
    url: str,
    *,
    expect: DocumentFormat = DocumentFormat.PDF,
    timeout: float | None = None,
    verify_tls: bool = True,
) -> RawDocument:
    """Render `url` in a headless browser, find the document response, then download it."""
    start = time.monotonic()
    document_url = render_and_capture(
        url,
        match=lambda content_type: content_type_matches(content_type, expect),
        ignore_https_errors=not verify_tls,
    )
    if not document_url:
        log_event(
            logger,
            "verify.render.no_match",
            level=logging.WARNING,
            url=url,
            duration_ms=monotonic_ms(start),
        )
        raise NetworkError("No document detected via headless browser", url=url)
    log_event(
        logger,
        "verify.render.captured",
        url=url,
        document_url=document_url,
        duration_ms=monotonic_ms(start),
    )
    return fetch_direct(document_url, expect=expect, timeout=timeout, verify_tls=verify_tls)
