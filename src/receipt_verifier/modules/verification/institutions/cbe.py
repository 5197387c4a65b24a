from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from receipt_verifier.core.config import settings
from receipt_verifier.modules.verification.fetch import build_url, fetch_direct, fetch_rendered
from receipt_verifier.modules.verification.models import (
    DocumentFormat,
    Institution,
    RawDocument,
    ReceiptReference,
)
from receipt_verifier.modules.verification.normalize import TIMESTAMP_FORMATS
from receipt_verifier.modules.verification.pipeline import VerificationPipeline
from receipt_verifier.modules.verification.rules import FieldKind, FieldSpec, PatternRule
from receipt_verifier.modules.verification.validate import require_secondary


@dataclass(frozen=True)
class CBEReceipt:
    payer: str
    payer_account: str
    receiver: str
    receiver_account: str
    amount: Decimal
    date: datetime
    reference: str
    reason: str | None


# Slips print the payment date month-first ("1/13/2025, 10:26:00 AM").
SLIP_DATE_FORMATS: tuple[str, ...] = (
    "%m/%d/%Y, %I:%M:%S %p",
    "%m/%d/%Y, %H:%M:%S",
    "%m/%d/%Y, %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    *TIMESTAMP_FORMATS,
)

# The CBE slip is a PDF whose labels sit inline with their values once the text
# is flattened: "Payer JOHN DOE Account 1****1234 Receiver ...".
FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec(
        "payer",
        FieldKind.NAME,
        (PatternRule(r"Payer\s*:?\s*(.*?)\s+Account"),),
    ),
    FieldSpec(
        "payer_account",
        FieldKind.TEXT,
        (PatternRule(r"Account\s*:?\s*([A-Z0-9]?\*{4}\d{4})", occurrence=0),),
    ),
    FieldSpec(
        "receiver",
        FieldKind.NAME,
        (PatternRule(r"Receiver\s*:?\s*(.*?)\s+Account"),),
    ),
    FieldSpec(
        "receiver_account",
        FieldKind.TEXT,
        (PatternRule(r"Account\s*:?\s*([A-Z0-9]?\*{4}\d{4})", occurrence=1),),
    ),
    FieldSpec(
        "reason",
        FieldKind.TEXT,
        (PatternRule(r"Reason\s*/\s*Type of service\s*:?\s*(.*?)\s+Transferred Amount"),),
    ),
    FieldSpec(
        "amount",
        FieldKind.AMOUNT,
        (
            PatternRule(r"Transferred Amount\s*:?\s*([\d,]+\.\d{2})\s*ETB"),
            PatternRule(r"Transferred Amount\s*:?\s*(?:ETB\s*)?([\d,]+(?:\.\d+)?)"),
        ),
    ),
    FieldSpec(
        "reference",
        FieldKind.TEXT,
        (
            PatternRule(r"Reference No\.?\s*\(VAT Invoice No\)\s*:?\s*([A-Z0-9]+)"),
            PatternRule(r"Reference No\.?\s*:?\s*(FT[A-Z0-9]{8,})"),
        ),
    ),
    FieldSpec(
        "date",
        FieldKind.TIMESTAMP,
        (
            PatternRule(r"Payment Date & Time\s*:?\s*([\d/,: ]+[AP]M)"),
            PatternRule(
                r"Payment Date\s*(?:&\s*Time)?\s*:?\s*"
                r"(\d{1,2}/\d{1,2}/\d{4},?\s+\d{1,2}:\d{2}(?::\d{2})?)"
            ),
        ),
        formats=SLIP_DATE_FORMATS,
    ),
)

REQUIRED: tuple[str, ...] = (
    "payer",
    "payer_account",
    "receiver",
    "receiver_account",
    "amount",
    "date",
    "reference",
)


def document_url(ref: ReceiptReference) -> str:
    return build_url(settings.cbe_url_template, reference=ref.reference, suffix=ref.secondary)


# apps.cbe.com.et serves a certificate chain that does not validate; TLS checks are
# relaxed for this host only.
def fetch_slip(ref: ReceiptReference) -> RawDocument:
    return fetch_direct(document_url(ref), expect=DocumentFormat.PDF, verify_tls=False)


def fetch_slip_rendered(ref: ReceiptReference) -> RawDocument:
    return fetch_rendered(document_url(ref), expect=DocumentFormat.PDF, verify_tls=False)


def check_reference(ref: ReceiptReference) -> None:
    require_secondary(ref, label="Account suffix")


PIPELINE = VerificationPipeline(
    institution=Institution.CBE,
    primary=fetch_slip,
    fallback=fetch_slip_rendered,
    fields=FIELDS,
    required=REQUIRED,
    receipt_type=CBEReceipt,
    check_reference=check_reference,
)
