from __future__ import annotations

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
from receipt_verifier.modules.verification.validate import require_reference


@dataclass(frozen=True)
class DashenReceipt:
    sender_name: str | None
    sender_account_number: str | None
    transaction_channel: str | None
    service_type: str | None
    narrative: str | None
    receiver_name: str | None
    phone_no: str | None
    institution_name: str | None
    transaction_reference: str
    transfer_reference: str | None
    transaction_date: datetime | None
    transaction_amount: Decimal
    service_charge: Decimal | None
    excise_tax: Decimal | None
    vat: Decimal | None
    penalty_fee: Decimal | None
    income_tax_fee: Decimal | None
    interest_fee: Decimal | None
    stamp_duty: Decimal | None
    discount_amount: Decimal | None
    total: Decimal | None


_CURRENCY = r"(?:ETB|Birr)?"
_NUMBER = r"([\d,]+\.?\d*)"


def _amount(name: str, label: str) -> FieldSpec:
    return FieldSpec(
        name,
        FieldKind.AMOUNT,
        (PatternRule(label + r"\s*:?\s*" + _CURRENCY + r"\s*" + _NUMBER),),
    )


FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec(
        "sender_name",
        FieldKind.NAME,
        (PatternRule(r"Sender\s*Name\s*:?\s*(.*?)\s+(?:Sender\s*Account|Account)"),),
    ),
    FieldSpec(
        "sender_account_number",
        FieldKind.TEXT,
        (PatternRule(r"Sender\s*Account\s*(?:Number)?\s*:?\s*([A-Z0-9*\-]+)"),),
    ),
    FieldSpec(
        "transaction_channel",
        FieldKind.TEXT,
        (PatternRule(r"Transaction\s*Channel\s*:?\s*(.*?)\s+(?:Service|Type)"),),
    ),
    FieldSpec(
        "service_type",
        FieldKind.TEXT,
        (PatternRule(r"Service\s*Type\s*:?\s*(.*?)\s+(?:Narrative|Description)"),),
    ),
    FieldSpec(
        "narrative",
        FieldKind.TEXT,
        (PatternRule(r"Narrative\s*:?\s*(.*?)\s+(?:Receiver|Phone)"),),
    ),
    FieldSpec(
        "receiver_name",
        FieldKind.NAME,
        (PatternRule(r"Receiver\s*Name\s*:?\s*(.*?)\s+(?:Phone|Institution)"),),
    ),
    FieldSpec(
        "phone_no",
        FieldKind.TEXT,
        (PatternRule(r"Phone\s*(?:No\.?|Number)?\s*:?\s*(\+?\d[\d\- ]{6,}\d)"),),
    ),
    FieldSpec(
        "institution_name",
        FieldKind.NAME,
        (PatternRule(r"Institution\s*Name\s*:?\s*(.*?)\s+(?:Transaction|Reference)"),),
    ),
    FieldSpec(
        "transaction_reference",
        FieldKind.TEXT,
        (PatternRule(r"Transaction\s*Reference\s*:?\s*([A-Z0-9\-]+)"),),
    ),
    FieldSpec(
        "transfer_reference",
        FieldKind.TEXT,
        (PatternRule(r"Transfer\s*Reference\s*:?\s*([A-Z0-9\-]+)"),),
    ),
    FieldSpec(
        "transaction_date",
        FieldKind.TIMESTAMP,
        (
            PatternRule(
                r"Transaction\s*Date\s*(?:&\s*Time)?\s*:?\s*"
                r"(\d{1,4}[/\-]\d{1,2}[/\-]\d{1,4},?\s+\d{1,2}:\d{2}(?::\d{2})?(?:\s*[AP]M)?)"
            ),
            PatternRule(r"Transaction\s*Date\s*(?:&\s*Time)?\s*:?\s*([\d/\-,: ]+(?:[AP]M)?)"),
        ),
    ),
    _amount("transaction_amount", r"Transaction\s*Amount"),
    _amount("service_charge", r"Service\s*Charge"),
    _amount("excise_tax", r"Excise\s*Tax\s*(?:\(15%\))?"),
    _amount("vat", r"\bVAT\s*(?:\(15%\))?"),
    _amount("penalty_fee", r"Penalty\s*Fee"),
    _amount("income_tax_fee", r"Income\s*Tax\s*Fee"),
    _amount("interest_fee", r"Interest\s*Fee"),
    _amount("stamp_duty", r"Stamp\s*Duty"),
    _amount("discount_amount", r"Discount\s*Amount"),
    _amount("total", r"\bTotal"),
)

REQUIRED: tuple[str, ...] = ("transaction_reference", "transaction_amount")


def receipt_url(ref: ReceiptReference) -> str:
    return build_url(settings.dashen_url_template, reference=ref.reference)


# receipt.dashensuperapp.com presents an incomplete certificate chain; TLS checks are
# relaxed for this host only.
def fetch_receipt(ref: ReceiptReference) -> RawDocument:
    return fetch_direct(receipt_url(ref), expect=DocumentFormat.PDF, verify_tls=False)


PIPELINE = VerificationPipeline(
    institution=Institution.DASHEN,
    primary=fetch_receipt,
    fields=FIELDS,
    required=REQUIRED,
    receipt_type=DashenReceipt,
    check_reference=require_reference,
)
