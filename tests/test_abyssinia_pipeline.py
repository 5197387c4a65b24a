from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal

SLIP_URL = "https://cs.bankofabyssinia.com/api/onlineSlip/getDetails/?id=FT25013ABCDE90172"


def _ref(suffix: str = "90172"):
    from receipt_verifier.modules.verification.models import Institution, ReceiptReference

    return ReceiptReference.build(Institution.ABYSSINIA, "FT25013ABCDE", suffix)


def _payload(status: str = "success", body: list | None = None) -> bytes:
    if body is None:
        body = [
            {
                "Payer's Name": "ABEBE KEBEDE",
                "Source Account": "1234****5678",
                "Source Account Name": "ABEBE KEBEDE",
                "Transferred Amount": "1,500.00",
                "Transaction Date": "13/01/25 10:26",
                "Transaction Reference": "FT25013ABCDE",
                "Narrative": "Rent",
                "Service Charge": "2.00",
                "VAT": "0.30",
                "Total Amount including VAT": "1,502.30",
            }
        ]
    return json.dumps({"header": {"status": status}, "body": body}).encode()


def test_structured_slip_is_extracted(upstream):
    from receipt_verifier.modules.verification.institutions import abyssinia

    upstream.add(SLIP_URL, _payload(), content_type="application/json")

    result = abyssinia.PIPELINE.verify(_ref())

    assert result.success is True
    receipt = result.data
    assert receipt.reference == "FT25013ABCDE"
    assert receipt.amount == Decimal("1500.00")
    assert receipt.payer == "Abebe Kebede"
    assert receipt.payer_account == "1234****5678"
    assert receipt.date == datetime(2025, 1, 13, 10, 26)
    assert receipt.total_amount == Decimal("1502.30")
    assert receipt.phone is None


def test_camel_case_keys_are_accepted(upstream):
    from receipt_verifier.modules.verification.institutions import abyssinia

    body = [{"payerName": "ALMAZ", "transferredAmount": 10, "transactionReference": "FT1"}]
    upstream.add(SLIP_URL, _payload(body=body), content_type="application/json")

    result = abyssinia.PIPELINE.verify(_ref())

    assert result.success is True
    assert result.data.amount == Decimal("10.00")
    assert result.data.payer == "Almaz"


def test_empty_body_reports_no_transaction_data(upstream):
    from receipt_verifier.modules.verification.institutions import abyssinia

    upstream.add(SLIP_URL, _payload(body=[]), content_type="application/json")

    result = abyssinia.PIPELINE.verify(_ref())

    assert result.as_payload() == {
        "success": False,
        "error": "No transaction data found in response body",
    }


def test_non_success_status_is_an_upstream_rejection(upstream):
    from receipt_verifier.modules.verification.institutions import abyssinia

    upstream.add(SLIP_URL, _payload(status="failed"), content_type="application/json")

    result = abyssinia.PIPELINE.verify(_ref())

    assert result.success is False
    assert result.error_kind == "upstream_rejection"
    assert result.error == "API returned error status: failed"


def test_missing_header_is_a_structure_error(upstream):
    from receipt_verifier.modules.verification.institutions import abyssinia

    upstream.add(SLIP_URL, b'{"body": []}', content_type="application/json")

    result = abyssinia.PIPELINE.verify(_ref())

    assert result.success is False
    assert result.error_kind == "parse"
    assert result.error == "Invalid response structure"


def test_suffix_must_be_five_digits(upstream):
    from receipt_verifier.modules.verification.institutions import abyssinia

    for bad in ("1234", "123456", "12a45"):
        result = abyssinia.PIPELINE.verify(_ref(suffix=bad))
        assert result.success is False
        assert result.error_kind == "input"
        assert result.error == "Invalid suffix: must be exactly 5 digits"
    assert upstream.calls == []


def test_body_without_payer_names_the_missing_field(upstream):
    from receipt_verifier.modules.verification.institutions import abyssinia

    body = [{"Transferred Amount": "1,500.00", "Transaction Reference": "FT25013ABCDE"}]
    upstream.add(SLIP_URL, _payload(body=body), content_type="application/json")

    result = abyssinia.PIPELINE.verify(_ref())

    assert result.success is False
    assert result.error_kind == "validation"
    assert result.error == "Could not extract required fields: payer"


def test_non_ascii_digit_suffix_is_rejected(upstream):
    from receipt_verifier.modules.verification.institutions import abyssinia

    result = abyssinia.PIPELINE.verify(_ref(suffix="١٢٣٤٥"))

    assert result.error == "Invalid suffix: must be exactly 5 digits"
    assert upstream.calls == []
