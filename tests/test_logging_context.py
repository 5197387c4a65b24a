import json
import logging


def test_verification_context_tags_events_and_resets():
    from receipt_verifier.core.logging import _merge_fields, verification_context

    with verification_context(institution="cbe", reference="FT1"):
        inside = _merge_fields({"tier": "primary", "detail": None})
    outside = _merge_fields({"tier": "primary"})

    assert inside == {"institution": "cbe", "reference": "FT1", "tier": "primary"}
    assert outside == {"tier": "primary"}


def test_json_formatter_emits_event_and_fields():
    from receipt_verifier.core.logging import JsonFormatter

    record = logging.LogRecord("receipt_verifier.test", logging.INFO, __file__, 1, "x", None, None)
    record.event = "verify.finish"
    record.fields = {"status": "verified", "tier": None}

    line = json.loads(JsonFormatter().format(record))

    assert line["event"] == "verify.finish"
    assert line["status"] == "verified"
    assert "tier" not in line
    assert line["ts"].endswith("Z")
