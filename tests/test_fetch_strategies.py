from __future__ import annotations

import httpx
import pytest


def test_fetch_direct_sends_browser_headers_and_returns_document(upstream):
    from receipt_verifier.core.config import settings
    from receipt_verifier.modules.verification.fetch import fetch_direct
    from receipt_verifier.modules.verification.models import DocumentFormat

    upstream.add("https://bank.example/", b"%PDF-1.4 body", content_type="application/pdf")

    raw = fetch_direct("https://bank.example/slip", expect=DocumentFormat.PDF, verify_tls=False)

    assert raw.format == DocumentFormat.PDF
    assert raw.content == b"%PDF-1.4 body"
    assert raw.source_url == "https://bank.example/slip"
    call = upstream.calls[0]
    assert call["headers"]["User-Agent"] == settings.user_agent
    assert call["headers"]["Accept"] == "application/pdf"
    assert call["verify"] is False
    assert call["timeout"] == settings.request_timeout_seconds


@pytest.mark.parametrize(
    ("status", "body", "content_type"),
    [
        (500, b"oops", "text/html"),
        (200, b"   ", "application/pdf"),
        (200, b"<html>maintenance</html>", "text/html; charset=utf-8"),
    ],
)
def test_fetch_direct_rejects_bad_responses(upstream, status, body, content_type):
    from receipt_verifier.modules.verification.errors import NetworkError
    from receipt_verifier.modules.verification.fetch import fetch_direct
    from receipt_verifier.modules.verification.models import DocumentFormat

    upstream.add("https://bank.example/", body, status=status, content_type=content_type)

    with pytest.raises(NetworkError) as exc:
        fetch_direct("https://bank.example/slip", expect=DocumentFormat.PDF)
    assert exc.value.public_message.startswith("Failed to fetch receipt")


def test_fetch_direct_maps_timeouts_to_network_error(upstream):
    from receipt_verifier.modules.verification.errors import NetworkError
    from receipt_verifier.modules.verification.fetch import fetch_direct
    from receipt_verifier.modules.verification.models import DocumentFormat

    upstream.fail("https://bank.example/", httpx.ReadTimeout)

    with pytest.raises(NetworkError) as exc:
        fetch_direct("https://bank.example/slip", expect=DocumentFormat.PDF, timeout=5)
    assert "timed out" in exc.value.public_message
    assert upstream.calls[0]["timeout"] == 5.0


def test_fetch_relay_leaves_format_undetermined(upstream):
    from receipt_verifier.modules.verification.fetch import fetch_relay

    upstream.add("https://relay.example/", b'{"success": true}', content_type="text/html")

    raw = fetch_relay("https://relay.example/?reference=CE1", timeout=15)
    assert raw.format is None
    assert raw.content_type == "text/html"
    assert upstream.calls[0]["headers"]["Accept"].startswith("application/json")


def test_fetch_rendered_downloads_the_captured_document(upstream, monkeypatch):
    from receipt_verifier.modules.verification import fetch
    from receipt_verifier.modules.verification.models import DocumentFormat

    seen: dict = {}

    def _render(url, *, match, ignore_https_errors=False):
        seen["url"] = url
        seen["ignore_https_errors"] = ignore_https_errors
        assert match("application/pdf")
        assert not match("text/html")
        return "https://bank.example/files/slip.pdf"

    monkeypatch.setattr(fetch, "render_and_capture", _render)
    upstream.add("https://bank.example/files/", b"%PDF-1.4", content_type="application/pdf")

    raw = fetch.fetch_rendered("https://bank.example/?id=1", verify_tls=False)

    assert seen == {"url": "https://bank.example/?id=1", "ignore_https_errors": True}
    assert raw.format == DocumentFormat.PDF
    assert upstream.urls() == ["https://bank.example/files/slip.pdf"]


def test_fetch_rendered_without_capture_is_a_network_error(upstream, monkeypatch):
    from receipt_verifier.modules.verification import fetch
    from receipt_verifier.modules.verification.errors import NetworkError

    monkeypatch.setattr(fetch, "render_and_capture", lambda url, **_: None)

    with pytest.raises(NetworkError) as exc:
        fetch.fetch_rendered("https://bank.example/?id=1")
    assert exc.value.public_message == "No document detected via headless browser"
    assert upstream.calls == []


def test_build_url_keeps_each_value_inside_its_slot():
    from receipt_verifier.modules.verification.fetch import build_url

    url = build_url("https://x.example/r?TID={reference}&PH={phone}", reference="A&PH=1#", phone=None)

    assert url == "https://x.example/r?TID=A%26PH%3D1%23&PH="


@pytest.mark.parametrize(
    ("module", "secondary", "expected"),
    [
        ("cbe", "39003377", "https://apps.cbe.com.et:100/?id=FT1%26id%3DFT2%2339003377"),
        ("dashen", None, "https://receipt.dashensuperapp.com/receipt/FT1%26id%3DFT2%23"),
        (
            "abyssinia",
            "90172",
            "https://cs.bankofabyssinia.com/api/onlineSlip/getDetails/?id=FT1%26id%3DFT2%2390172",
        ),
        (
            "cbe_birr",
            "251911223344",
            "https://cbepay1.cbe.com.et/aureceipt?TID=FT1%26id%3DFT2%23&PH=251911223344",
        ),
    ],
)
def test_institution_urls_encode_the_reference(module, secondary, expected):
    import importlib

    from receipt_verifier.modules.verification.models import ReceiptReference

    mod = importlib.import_module(f"receipt_verifier.modules.verification.institutions.{module}")
    ref = ReceiptReference.build(mod.PIPELINE.institution, "FT1&id=FT2#", secondary)
    builder = {"cbe": "document_url", "abyssinia": "slip_url"}.get(module, "receipt_url")

    assert getattr(mod, builder)(ref) == expected
