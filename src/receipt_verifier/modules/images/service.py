from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from receipt_verifier.core.logging import get_logger, log_event
from receipt_verifier.modules.images.ai import ClassificationError, VisionClassifier
from receipt_verifier.modules.verification.models import Institution
from receipt_verifier.modules.verification.service import result_status_code, verify_reference

logger = get_logger(__name__)

MANUAL_ENTRY_REQUIRED = "Manual reference entry required"

_FORWARD_TO: dict[str, str] = {
    Institution.TELEBIRR.value: "/verify-telebirr",
    Institution.CBE.value: "/verify-cbe",
}


@dataclass(frozen=True)
class ImageVerificationOutcome:
    status_code: int
    body: dict[str, Any]


def _failed(status_code: int, error: str, **extra: Any) -> ImageVerificationOutcome:
    return ImageVerificationOutcome(status_code, {"success": False, "error": error, **extra})


def verify_image(
    classifier: VisionClassifier | None,
    image: bytes,
    *,
    content_type: str | None = None,
    suffix: str | None = None,
    auto_verify: bool = False,
) -> ImageVerificationOutcome:
    """Classify a receipt photo and either point the caller at the right endpoint or verify it.

    Without a configured classifier the caller has to type the reference in; that
    is reported as a normal (200) answer with `manual_entry_required`.
    """
    if classifier is None:
        log_event(logger, "image.classifier.unavailable")
        return _failed(200, MANUAL_ENTRY_REQUIRED, manual_entry_required=True)
    if not image:
        return _failed(400, "No file uploaded")

    try:
        classification = classifier.classify(image, content_type=content_type)
    except ClassificationError as e:
        return _failed(502, str(e) or "Invalid OCR response")

    receipt_type = classification.receipt_type
    reference = classification.reference
    if receipt_type not in _FORWARD_TO or not reference:
        log_event(
            logger,
            "image.classify.unrecognized",
            level=logging.WARNING,
            receipt_type=receipt_type,
        )
        return _failed(422, "Unknown or unrecognized receipt type")

    is_cbe = receipt_type == Institution.CBE.value
    if not auto_verify:
        body: dict[str, Any] = {
            "success": True,
            "type": receipt_type,
            "reference": reference,
            "forward_to": _FORWARD_TO[receipt_type],
        }
        if is_cbe:
            body["account_suffix"] = "required_from_user"
        return ImageVerificationOutcome(200, body)

    suffix = (suffix or "").strip() or None
    if is_cbe and not suffix:
        return _failed(400, "Account suffix is required for CBE verification in autoVerify mode")

    result = verify_reference(receipt_type, reference, suffix if is_cbe else None)
    return ImageVerificationOutcome(
        result_status_code(result),
        {
            "success": result.success,
            "verified": result.success,
            "type": receipt_type,
            "reference": reference,
            "details": result.as_payload(),
        },
    )
