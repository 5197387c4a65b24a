from __future__ import annotations

import os

import httpx
import pytest

# Set env before any receipt_verifier imports (settings are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.pop("VISION_API_KEY", None)


class FakeUpstream:
    """Stand-in for `httpx.get`: URL-prefix routes answering with canned bodies or errors."""

    def __init__(self) -> None:
        self.routes: list[tuple[str, object]] = []
        self.calls: list[dict] = []

    def add(
        self,
        prefix: str,
        body: bytes | str = b"",
        *,
        status: int = 200,
        content_type: str | None = None,
    ) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        headers = {"content-type": content_type} if content_type else {}
        self.routes.append((prefix, (status, body, headers)))

    def fail(self, prefix: str, exc_type: type[httpx.HTTPError] = httpx.ConnectError) -> None:
        self.routes.append((prefix, exc_type))

    def urls(self) -> list[str]:
        return [c["url"] for c in self.calls]

    def get(self, url: str, **kwargs) -> httpx.Response:
        self.calls.append({"url": url, **kwargs})
        request = httpx.Request("GET", url)
        for prefix, answer in self.routes:
            if not url.startswith(prefix):
                continue
            if isinstance(answer, type):
                raise answer("stubbed failure", request=request)
            status, body, headers = answer
            return httpx.Response(status, content=body, headers=headers, request=request)
        raise httpx.ConnectError(f"no stub for {url}", request=request)


@pytest.fixture
def upstream(monkeypatch) -> FakeUpstream:
    fake = FakeUpstream()
    monkeypatch.setattr(httpx, "get", fake.get)
    return fake


@pytest.fixture
def pdf_texts(monkeypatch) -> dict[bytes, str]:
    """Map PDF bytes to the text pypdf should "extract" from them."""
    from receipt_verifier.modules.verification import parse

    texts: dict[bytes, str] = {}

    class _Page:
        def __init__(self, text: str) -> None:
            self._text = text

        def extract_text(self) -> str:
            return self._text

    class _Reader:
        def __init__(self, stream) -> None:
            self.pages = [_Page(texts.get(stream.read(), ""))]

    monkeypatch.setattr(parse, "PdfReader", _Reader)
    return texts
