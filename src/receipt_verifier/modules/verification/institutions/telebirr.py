from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from receipt_verifier.core.config import settings
from receipt_verifier.modules.verification.errors import ParseError
from receipt_verifier.modules.verification.fetch import build_url, fetch_direct, fetch_relay
from receipt_verifier.modules.verification.models import (
    DocumentFormat,
    Institution,
    RawDocument,
    ReceiptReference,
)
from receipt_verifier.modules.verification.parse import ParsedDocument
from receipt_verifier.modules.verification.pipeline import VerificationPipeline
from receipt_verifier.modules.verification.rules import (
    CellRule,
    FieldKind,
    FieldRule,
    FieldSpec,
    KeyRule,
    PatternRule,
)
from receipt_verifier.modules.verification.validate import require_reference


@dataclass(frozen=True)
class TelebirrReceipt:
    payer_name: str
    payer_telebirr_no: str | None
    credited_party_name: str | None
    credited_party_account_no: str | None
    transaction_status: str
    receipt_no: str
    payment_date: datetime | None
    settled_amount: Decimal | None
    service_fee: Decimal | None
    service_fee_vat: Decimal | None
    total_paid_amount: Decimal | None
    bank_name: str | None


PAYER_NAME = "የከፋይ ስም/Payer Name"
PAYER_NUMBER = "የከፋይ ቴሌብር ቁ./Payer telebirr no."
CREDITED_NAME = "የገንዘብ ተቀባይ ስም/Credited Party name"
CREDITED_ACCOUNT = "የገንዘብ ተቀባይ ቴሌብር ቁ./Credited party account no"
STATUS = "የክፍያው ሁኔታ/transaction status"
BANK_ACCOUNT = "የባንክ አካውንት ቁጥር/Bank account number"
SERVICE_FEE_VAT = "የአገልግሎት ክፍያ ተ.እ.ታ/Service fee VAT"
TOTAL_PAID = "ጠቅላላ የተከፈለ/Total Paid Amount"

_SETTLED_LABELS = ("የተከፈለው መጠን", "Settled Amount")
_SERVICE_FEE_LABELS = ("የአገልግሎት ክፍያ", "Service fee")
_VAT_MARKERS = ("ተ.እ.ታ", "VAT")
_BIRR = r"(\d+(?:\.\d{2})?\s+Birr)"


def _labelled(label: str, key: str) -> tuple[FieldRule, ...]:
    """Value cell right after a bilingual label, in markup or in the relay's JSON."""
    english = label.split("/", 1)[-1]
    return (
        PatternRule(
            re.escape(label) + r".*?</td>\s*<td[^>]*>\s*([^<]+)",
            target="markup",
            flags=re.IGNORECASE,
        ),
        CellRule(labels=(label,)),
        CellRule(labels=(english,)),
        KeyRule(("data", key)),
    )


FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("payer_name", FieldKind.NAME, _labelled(PAYER_NAME, "payerName")),
    FieldSpec("payer_telebirr_no", FieldKind.TEXT, _labelled(PAYER_NUMBER, "payerTelebirrNo")),
    FieldSpec(
        "credited_party_name", FieldKind.NAME, _labelled(CREDITED_NAME, "creditedPartyName")
    ),
    FieldSpec(
        "credited_party_account_no",
        FieldKind.TEXT,
        _labelled(CREDITED_ACCOUNT, "creditedPartyAccountNo"),
    ),
    FieldSpec("transaction_status", FieldKind.TEXT, _labelled(STATUS, "transactionStatus")),
    FieldSpec(
        "receipt_no",
        FieldKind.TEXT,
        (
            PatternRule(
                r'<td[^>]*class="[^"]*receipttableTd[^"]*receipttableTd2[^"]*"[^>]*>'
                r"\s*([A-Z0-9]+)\s*</td>",
                target="markup",
            ),
            CellRule(selector="td.receipttableTd.receipttableTd2", take="self", index=1),
            KeyRule(("data", "receiptNo")),
        ),
    ),
    FieldSpec(
        "payment_date",
        FieldKind.TIMESTAMP,
        (
            PatternRule(r"(\d{2}-\d{2}-\d{4}\s+\d{2}:\d{2}:\d{2})", target="markup"),
            CellRule(selector=".receipttableTd", labels=("-20",), take="self"),
            KeyRule(("data", "paymentDate")),
        ),
    ),
    FieldSpec(
        "settled_amount",
        FieldKind.AMOUNT,
        (
            PatternRule(
                r"የተከፈለው\s+መጠን/Settled\s+Amount.*?</td>\s*<td[^>]*>\s*" + _BIRR,
                target="markup",
            ),
            PatternRule(
                r"<tr[^>]*>.*?የተከፈለው\s+መጠን/Settled\s+Amount.*?<td[^>]*>\s*" + _BIRR,
                target="markup",
            ),
            PatternRule(r"Settled\s+Amount.*?" + _BIRR, target="markup"),
            PatternRule(
                r"የክፍያ\s+ዝርዝር/Transaction\s+details.*?<tr[^>]*>.*?"
                r"<td[^>]*>\s*[^<]*</td>\s*<td[^>]*>\s*[^<]*</td>\s*<td[^>]*>\s*" + _BIRR,
                target="markup",
            ),
            CellRule(labels=_SETTLED_LABELS),
            CellRule(selector="tr", labels=_SETTLED_LABELS, take="last"),
            KeyRule(("data", "settledAmount")),
        ),
    ),
    FieldSpec(
        "service_fee",
        FieldKind.AMOUNT,
        (
            PatternRule(
                r"የአገልግሎት\s+ክፍያ/Service\s+fee(?!\s+ተ\.እ\.ታ).*?</td>\s*<td[^>]*>\s*" + _BIRR,
                target="markup",
                flags=re.IGNORECASE,
            ),
            CellRule(
                selector="td.receipttableTd1",
                labels=_SERVICE_FEE_LABELS,
                exclude=_VAT_MARKERS,
                next_class="receipttableTd2",
            ),
            CellRule(
                selector="tr", labels=_SERVICE_FEE_LABELS, exclude=_VAT_MARKERS, take="last"
            ),
            KeyRule(("data", "serviceFee")),
        ),
    ),
    FieldSpec("service_fee_vat", FieldKind.AMOUNT, _labelled(SERVICE_FEE_VAT, "serviceFeeVAT")),
    FieldSpec("total_paid_amount", FieldKind.AMOUNT, _labelled(TOTAL_PAID, "totalPaidAmount")),
    FieldSpec("bank_account_number", FieldKind.TEXT, _labelled(BANK_ACCOUNT, "bankAccountNumber")),
    FieldSpec("bank_name", FieldKind.TEXT, (KeyRule(("data", "bankName")),)),
)

REQUIRED: tuple[str, ...] = ("receipt_no", "payer_name", "transaction_status")


def split_bank_transfer(record: dict[str, str]) -> dict[str, str]:
    """Telebirr-to-bank transfers name the bank as credited party.

    The "Bank account number" row then reads "<account> <beneficiary>"; the bank
    becomes `bank_name` and the row supplies the real account and beneficiary.
    """
    raw = record.get("bank_account_number")
    if not raw or record.get("bank_name"):
        return record
    record["bank_name"] = record.get("credited_party_name", "")
    m = re.match(r"(\d+)\s+(.*)", raw)
    if m:
        record["credited_party_account_no"] = m.group(1).strip()
        record["credited_party_name"] = m.group(2).strip()
    return record


def check_relay_payload(doc: ParsedDocument) -> None:
    if doc.format != DocumentFormat.JSON:
        return
    data = doc.data
    if not isinstance(data, dict) or not data.get("success") or not isinstance(
        data.get("data"), dict
    ):
        raise ParseError("Invalid response structure from relay", source_url=doc.source_url)


def receipt_url(ref: ReceiptReference) -> str:
    return build_url(settings.telebirr_url_template, reference=ref.reference)


def relay_url(ref: ReceiptReference) -> str:
    return build_url(settings.telebirr_relay_url_template, reference=ref.reference)


def fetch_receipt_page(ref: ReceiptReference) -> RawDocument:
    return fetch_direct(
        receipt_url(ref),
        expect=DocumentFormat.HTML,
        timeout=settings.telebirr_timeout_seconds,
    )


def fetch_from_relay(ref: ReceiptReference) -> RawDocument:
    return fetch_relay(relay_url(ref), timeout=settings.telebirr_timeout_seconds)


PIPELINE = VerificationPipeline(
    institution=Institution.TELEBIRR,
    primary=fetch_receipt_page,
    fallback=fetch_from_relay,
    fallback_on_incomplete=True,
    fields=FIELDS,
    required=REQUIRED,
    receipt_type=TelebirrReceipt,
    check_reference=require_reference,
    check_payload=check_relay_payload,
    postprocess=split_bank_transfer,
    skip_primary=lambda: settings.telebirr_skip_primary,
)
