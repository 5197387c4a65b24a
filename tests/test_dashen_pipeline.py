from __future__ import annotations

from datetime import datetime
from decimal import Decimal

RECEIPT_URL = "https://receipt.dashensuperapp.com/receipt/00512ABC0001"
PDF = b"%PDF-1.5 dashen receipt"
REFERENCE_LINE = "Transaction Reference 00512ABC0001 "
RECEIPT_TEXT = (
    "Dashen Bank Transaction Receipt Sender Name ABEBE KEBEDE "
    "Sender Account Number 5012****3456 Transaction Channel Mobile Banking "
    "Service Type Account to Account Narrative School fee "
    "Receiver Name ALMAZ TESFAYE Phone No. 251911223344 Institution Name Dashen Bank "
    + REFERENCE_LINE
    + "Transfer Reference DSH0001 Transaction Date 13/01/2025 10:26:00 "
    "Transaction Amount ETB 2,500.00 Service Charge ETB 5.00 Excise Tax (15%) ETB 0.75 "
    "VAT (15%) ETB 0.75 Total ETB 2,506.50"
)


def _ref():
    from receipt_verifier.modules.verification.models import Institution, ReceiptReference

    return ReceiptReference.build(Institution.DASHEN, "00512ABC0001")


def test_receipt_fields_are_extracted_and_typed(upstream, pdf_texts):
    from receipt_verifier.modules.verification.institutions import dashen

    pdf_texts[PDF] = RECEIPT_TEXT
    upstream.add(RECEIPT_URL, PDF, content_type="application/pdf")

    result = dashen.PIPELINE.verify(_ref())

    assert result.success is True
    receipt = result.data
    assert receipt.transaction_reference == "00512ABC0001"
    assert receipt.transaction_amount == Decimal("2500.00")
    assert receipt.sender_name == "Abebe Kebede"
    assert receipt.sender_account_number == "5012****3456"
    assert receipt.receiver_name == "Almaz Tesfaye"
    assert receipt.phone_no == "251911223344"
    assert receipt.narrative == "School fee"
    assert receipt.transaction_date == datetime(2025, 1, 13, 10, 26)
    assert receipt.service_charge == Decimal("5.00")
    assert receipt.vat == Decimal("0.75")
    assert receipt.total == Decimal("2506.50")
    assert receipt.penalty_fee is None
    assert upstream.calls[0]["verify"] is False


def test_missing_reference_fails_validation_and_names_the_field(upstream, pdf_texts):
    from receipt_verifier.modules.verification.institutions import dashen

    pdf_texts[PDF] = RECEIPT_TEXT.replace(REFERENCE_LINE, "")
    upstream.add(RECEIPT_URL, PDF, content_type="application/pdf")

    result = dashen.PIPELINE.verify(_ref())

    assert result.success is False
    assert result.data is None
    assert result.error_kind == "validation"
    assert result.error == "Could not extract required fields: transaction_reference"
    assert len(upstream.calls) == 1


def test_pdf_without_text_is_a_parse_failure(upstream, pdf_texts):
    from receipt_verifier.modules.verification.institutions import dashen

    upstream.add(RECEIPT_URL, PDF, content_type="application/pdf")

    result = dashen.PIPELINE.verify(_ref())

    assert result.success is False
    assert result.error == "Error parsing receipt data"
