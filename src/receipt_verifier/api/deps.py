from __future__ import annotations

from receipt_verifier.modules.images.ai import VisionClassifier, get_receipt_classifier


def get_classifier() -> VisionClassifier | None:
    return get_receipt_classifier()
