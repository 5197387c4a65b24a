from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from receipt_verifier.modules.verification.rules import FieldKind, FieldSpec

# Order matters: the first format that parses wins. Day-first forms come before
# their month-first counterparts.
TIMESTAMP_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d %H:%M",
    "%d-%m-%Y %H:%M:%S",
    "%d/%m/%Y, %I:%M:%S %p",
    "%m/%d/%Y, %I:%M:%S %p",
    "%Y-%m-%d %H:%M:%S",
    "%d-%m-%Y %H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%y %H:%M",
    "%d/%m/%Y",
    "%Y-%m-%d",
)

_CURRENCY_RE = re.compile(r"(?i)(?:ETB|Birr|Br)\.?")
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")
_CENTS = Decimal("0.01")


def parse_amount(raw: str | None) -> Decimal | None:
    s = _NON_NUMERIC_RE.sub("", _CURRENCY_RE.sub(" ", str(raw or "")))
    if not any(ch.isdigit() for ch in s):
        return None
    try:
        value = Decimal(s)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value.quantize(_CENTS)


def parse_timestamp(
    raw: str | None, formats: tuple[str, ...] | None = None
) -> datetime | None:
    s = re.sub(r"\s+", " ", str(raw or "")).strip()
    if not s:
        return None
    s = re.sub(r"(?i)\s*([ap])\.?m\.?$", lambda m: f" {m.group(1).upper()}M", s)
    for fmt in formats or TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed


def title_case(raw: str | None) -> str | None:
    tokens = str(raw or "").lower().split()
    if not tokens:
        return None
    return " ".join(tok[:1].upper() + tok[1:] for tok in tokens)


def normalize_value(
    kind: FieldKind, raw: str | None, formats: tuple[str, ...] | None = None
) -> Any:
    if kind == FieldKind.AMOUNT:
        return parse_amount(raw)
    if kind == FieldKind.TIMESTAMP:
        return parse_timestamp(raw, formats)
    if kind == FieldKind.NAME:
        return title_case(raw)
    text = re.sub(r"\s+", " ", str(raw or "")).strip()
    return text or None


def normalize_record(record: dict[str, str], fields: tuple[FieldSpec, ...]) -> dict[str, Any]:
    return {
        spec.name: normalize_value(spec.kind, record.get(spec.name), spec.formats)
        for spec in fields
    }
