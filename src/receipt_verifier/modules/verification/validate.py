from __future__ import annotations

import re
from typing import Any

from receipt_verifier.modules.verification.errors import InputError, ValidationError
from receipt_verifier.modules.verification.models import ReceiptReference


def missing_fields(required: tuple[str, ...], values: dict[str, Any]) -> list[str]:
    missing: list[str] = []
    for name in required:
        value = values.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def validate_required(required: tuple[str, ...], values: dict[str, Any]) -> None:
    missing = missing_fields(required, values)
    if missing:
        raise ValidationError(missing_fields=missing)


def require_reference(ref: ReceiptReference) -> None:
    if not ref.reference:
        raise InputError("Transaction reference is required")


def require_secondary(
    ref: ReceiptReference, *, label: str, pattern: str | None = None, hint: str | None = None
) -> None:
    require_reference(ref)
    if not ref.secondary:
        raise InputError(f"{label} is required")
    if pattern and not re.fullmatch(pattern, ref.secondary, re.ASCII):
        raise InputError(f"Invalid {label.lower()}: {hint}" if hint else f"Invalid {label.lower()}")
