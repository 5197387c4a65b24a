from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from receipt_verifier.core.config import settings
from receipt_verifier.modules.verification.fetch import build_url, fetch_direct
from receipt_verifier.modules.verification.models import (
    DocumentFormat,
    Institution,
    RawDocument,
    ReceiptReference,
)
from receipt_verifier.modules.verification.pipeline import VerificationPipeline
from receipt_verifier.modules.verification.rules import FieldKind, FieldSpec, PatternRule
from receipt_verifier.modules.verification.validate import require_secondary


@dataclass(frozen=True)
class CBEBirrReceipt:
    customer_name: str | None
    debit_account: str | None
    credit_account: str | None
    receiver_name: str | None
    order_id: str | None
    transaction_status: str | None
    reference: str | None
    receipt_number: str
    transaction_date: datetime
    amount: Decimal
    paid_amount: Decimal | None
    service_charge: Decimal | None
    vat: Decimal | None
    total_paid_amount: Decimal | None
    payment_reason: str | None
    payment_channel: str | None


# Identifiers on this receipt are upper-case; matching them case-sensitively keeps
# table headers like "Transaction Date" from being read as values.
_EXACT = re.DOTALL
_DATE_TIME = r"\d{4}-\d{2}-\d{2}\s+\d{1,2}:\d{2}"
_MONEY = r"([\d,]+\.\d{2})"

FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec(
        "customer_name",
        FieldKind.NAME,
        (
            PatternRule(r"Customer Name\s*:?\s*(.+?)\s+Region\b"),
            PatternRule(r"Customer Name\s*:?\s*([A-Z][A-Z .']+?)\s+(?:City|Sub City|Phone|TIN)"),
        ),
    ),
    FieldSpec("debit_account", FieldKind.TEXT, (PatternRule(r"Debit Account\s*:?\s*(\d{6,})"),)),
    FieldSpec(
        "credit_account",
        FieldKind.TEXT,
        (PatternRule(r"Credit Account\s*:?\s*(.+?)\s+Receiver Name"),),
    ),
    FieldSpec(
        "receiver_name",
        FieldKind.NAME,
        (PatternRule(r"Receiver Name\s*:?\s*(.+?)\s+Order ID"),),
    ),
    FieldSpec(
        "order_id",
        FieldKind.TEXT,
        (PatternRule(r"Order ID\s*:?\s*([A-Z0-9]+)", flags=_EXACT),),
    ),
    FieldSpec(
        "transaction_status",
        FieldKind.TEXT,
        (
            PatternRule(r"Transaction Status\s*:?\s*(.+?)\s+Reference\b"),
            PatternRule(r"Transaction Status\s*:?\s*([A-Za-z]+)"),
        ),
    ),
    FieldSpec(
        "reference",
        FieldKind.TEXT,
        (
            PatternRule(r"\bReference\s*:?\s*([A-Z0-9]+)\s+Receipt Number", flags=_EXACT),
            PatternRule(r"\b(FT[A-Z0-9]{8,})\b", flags=_EXACT),
        ),
    ),
    FieldSpec(
        "receipt_number",
        FieldKind.TEXT,
        (
            PatternRule(r"Receipt Number\s*:?\s*([A-Z0-9]{6,})\b", flags=_EXACT),
            PatternRule(r"\b([A-Z0-9]{8,12})\s+" + _DATE_TIME, flags=_EXACT),
        ),
    ),
    FieldSpec(
        "transaction_date",
        FieldKind.TIMESTAMP,
        (PatternRule(r"(" + _DATE_TIME + r")"),),
    ),
    FieldSpec(
        "amount",
        FieldKind.AMOUNT,
        (
            PatternRule(_DATE_TIME + r"\s+" + _MONEY),
            PatternRule(r"(?<!Paid )\bAmount\s*:?\s*" + _MONEY),
        ),
    ),
    FieldSpec(
        "paid_amount",
        FieldKind.AMOUNT,
        (PatternRule(r"(?<!Total )Paid amount\s*:?\s*" + _MONEY),),
    ),
    FieldSpec(
        "service_charge", FieldKind.AMOUNT, (PatternRule(r"Service Charge\s*:?\s*" + _MONEY),)
    ),
    FieldSpec("vat", FieldKind.AMOUNT, (PatternRule(r"\bVAT\s*:?\s*" + _MONEY),)),
    FieldSpec(
        "total_paid_amount",
        FieldKind.AMOUNT,
        (PatternRule(r"Total Paid Amount\s*:?\s*" + _MONEY),),
    ),
    FieldSpec(
        "payment_reason",
        FieldKind.TEXT,
        (
            PatternRule(r"Payment Reason\s*:?\s*(.+?)\s+Payment Channel"),
            PatternRule(r"\b(TransferFrom\w+ by \w+ to \w+)"),
        ),
    ),
    FieldSpec(
        "payment_channel",
        FieldKind.TEXT,
        (PatternRule(r"Payment Channel\s*:?\s*(\w+)"),),
    ),
)

REQUIRED: tuple[str, ...] = ("receipt_number", "amount", "transaction_date")


def receipt_url(ref: ReceiptReference) -> str:
    return build_url(
        settings.cbe_birr_url_template, reference=ref.reference, phone=ref.secondary
    )


def fetch_receipt(ref: ReceiptReference) -> RawDocument:
    return fetch_direct(receipt_url(ref), expect=DocumentFormat.PDF)


def check_reference(ref: ReceiptReference) -> None:
    require_secondary(
        ref,
        label="Phone number",
        pattern=r"251\d{9}",
        hint="must start with 251 and be 12 digits total",
    )


PIPELINE = VerificationPipeline(
    institution=Institution.CBE_BIRR,
    primary=fetch_receipt,
    fields=FIELDS,
    required=REQUIRED,
    receipt_type=CBEBirrReceipt,
    check_reference=check_reference,
)
