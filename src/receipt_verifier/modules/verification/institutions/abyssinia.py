from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from receipt_verifier.core.config import settings
from receipt_verifier.modules.verification.errors import (
    ParseError,
    UpstreamRejection,
    ValidationError,
)
from receipt_verifier.modules.verification.fetch import build_url, fetch_direct
from receipt_verifier.modules.verification.models import (
    DocumentFormat,
    Institution,
    RawDocument,
    ReceiptReference,
)
from receipt_verifier.modules.verification.parse import ParsedDocument, require_keys
from receipt_verifier.modules.verification.pipeline import VerificationPipeline
from receipt_verifier.modules.verification.rules import FieldKind, FieldSpec, KeyRule
from receipt_verifier.modules.verification.validate import require_secondary


@dataclass(frozen=True)
class AbyssiniaReceipt:
    payer: str
    payer_account: str | None
    source_account_name: str | None
    amount: Decimal
    date: datetime | None
    reference: str
    reason: str | None
    transaction_type: str | None
    service_charge: Decimal | None
    vat: Decimal | None
    total_amount: Decimal | None
    payment_reference: str | None
    phone: str | None


def _key(*names: str) -> tuple[KeyRule, ...]:
    # The slip API has shipped both display-style and camelCase keys.
    return tuple(KeyRule(("body", 0, name)) for name in names)


FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("payer", FieldKind.NAME, _key("Payer's Name", "payerName")),
    FieldSpec("payer_account", FieldKind.TEXT, _key("Source Account", "sourceAccount")),
    FieldSpec(
        "source_account_name", FieldKind.NAME, _key("Source Account Name", "sourceAccountName")
    ),
    FieldSpec("amount", FieldKind.AMOUNT, _key("Transferred Amount", "transferredAmount")),
    FieldSpec("date", FieldKind.TIMESTAMP, _key("Transaction Date", "transactionDate")),
    FieldSpec(
        "reference", FieldKind.TEXT, _key("Transaction Reference", "transactionReference")
    ),
    FieldSpec("reason", FieldKind.TEXT, _key("Narrative", "narrative")),
    FieldSpec("transaction_type", FieldKind.TEXT, _key("Transaction Type", "transactionType")),
    FieldSpec("service_charge", FieldKind.AMOUNT, _key("Service Charge", "serviceCharge")),
    FieldSpec("vat", FieldKind.AMOUNT, _key("VAT", "vat")),
    FieldSpec(
        "total_amount",
        FieldKind.AMOUNT,
        _key("Total Amount including VAT", "totalAmountIncludingVAT"),
    ),
    FieldSpec(
        "payment_reference", FieldKind.TEXT, _key("Payment Reference", "paymentReference")
    ),
    FieldSpec("phone", FieldKind.TEXT, _key("Tel", "tel")),
)

REQUIRED: tuple[str, ...] = ("reference", "amount", "payer")


def check_payload(doc: ParsedDocument) -> None:
    """`{"header": {"status": ...}, "body": [ {...} ]}`; status must read "success"."""
    header = require_keys(doc.data, "header")
    body = require_keys(doc.data, "body")
    if not isinstance(header, dict) or not isinstance(body, list):
        raise ParseError("Invalid response structure from Abyssinia API")
    status = str(header.get("status") or "")
    if status != "success":
        raise UpstreamRejection(status or "missing")
    if not body or not isinstance(body[0], dict):
        raise ValidationError("No transaction data found in response body")


def slip_url(ref: ReceiptReference) -> str:
    return build_url(
        settings.abyssinia_url_template, reference=ref.reference, suffix=ref.secondary
    )


def fetch_slip(ref: ReceiptReference) -> RawDocument:
    return fetch_direct(slip_url(ref), expect=DocumentFormat.JSON)


def check_reference(ref: ReceiptReference) -> None:
    require_secondary(ref, label="Suffix", pattern=r"\d{5}", hint="must be exactly 5 digits")


PIPELINE = VerificationPipeline(
    institution=Institution.ABYSSINIA,
    primary=fetch_slip,
    fields=FIELDS,
    required=REQUIRED,
    receipt_type=AbyssiniaReceipt,
    check_reference=check_reference,
    check_payload=check_payload,
)
