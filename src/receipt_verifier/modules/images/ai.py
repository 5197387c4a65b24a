from __future__ import annotations

import base64
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any

import httpx

from receipt_verifier.core.config import settings
from receipt_verifier.core.logging import get_logger, log_event, monotonic_ms

logger = get_logger(__name__)

RECEIPT_TYPES: set[str] = {"telebirr", "cbe"}

_PROMPT = (
    "You are a payment receipt analyzer. Based on the uploaded image, determine:\n"
    "- If the receipt was issued by Telebirr or the Commercial Bank of Ethiopia (CBE).\n"
    "- If it's a CBE receipt, extract the transaction ID (usually starts with 'FT').\n"
    "- If it's a Telebirr receipt, extract the transaction number (usually starts with 'CE').\n"
    "\n"
    "Rules:\n"
    '- CBE receipts usually include a purple header with the title "Commercial Bank of '
    'Ethiopia" and a structured table.\n'
    "- Telebirr receipts are typically green with a large minus sign before the amount.\n"
    "- CBE receipts may mention Telebirr (as the receiver) but are still CBE receipts.\n"
    "\n"
    "Return this JSON format exactly:\n"
    "{\n"
    '  "type": "telebirr" | "cbe",\n'
    '  "transaction_id"?: "FTxxxx" (if CBE),\n'
    '  "transaction_number"?: "CExxxx" (if Telebirr)\n'
    "}"
)


class ClassificationError(Exception):
    """The vision endpoint could not be reached or answered with something unusable."""


@dataclass(frozen=True)
class ReceiptClassification:
    receipt_type: str | None
    reference: str | None


class VisionClassifier:
    """Receipt-photo classifier backed by an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        model: str,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.timeout_seconds = timeout_seconds

    def classify(self, image: bytes, *, content_type: str | None = None) -> ReceiptClassification:
        media_type = content_type if (content_type or "").startswith("image/") else "image/jpeg"
        encoded = base64.b64encode(image).decode("ascii")
        payload = {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": _PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{media_type};base64,{encoded}"},
                        },
                    ],
                }
            ],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        url = self.base_url.rstrip("/") + "/chat/completions"
        start = time.monotonic()
        try:
            resp = httpx.post(
                url,
                headers=headers,
                json=payload,
                timeout=float(self.timeout_seconds),
                follow_redirects=True,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            log_event(
                logger,
                "image.classify.failed",
                level=logging.WARNING,
                model=self.model,
                reason=f"{type(e).__name__}: {e}",
                duration_ms=monotonic_ms(start),
            )
            raise ClassificationError("Vision endpoint request failed") from e

        try:
            raw = resp.json()
            content = raw["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ClassificationError("Invalid OCR response") from e
        if not isinstance(content, str) or not content.strip():
            raise ClassificationError("Invalid OCR response")

        obj = _parse_json_object(content)
        if not isinstance(obj, dict):
            raise ClassificationError("Invalid OCR response")

        classification = _sanitize_classification(obj)
        log_event(
            logger,
            "image.classify.done",
            model=self.model,
            receipt_type=classification.receipt_type,
            has_reference=bool(classification.reference),
            duration_ms=monotonic_ms(start),
        )
        return classification


def get_receipt_classifier() -> VisionClassifier | None:
    if not settings.vision_api_key:
        return None
    return VisionClassifier(
        api_key=settings.vision_api_key,
        base_url=settings.vision_base_url,
        model=settings.vision_model,
        timeout_seconds=settings.vision_timeout_seconds,
    )


def _sanitize_classification(obj: dict[str, Any]) -> ReceiptClassification:
    receipt_type = str(obj.get("type") or "").strip().lower() or None
    if receipt_type not in RECEIPT_TYPES:
        return ReceiptClassification(receipt_type=receipt_type, reference=None)
    key = "transaction_id" if receipt_type == "cbe" else "transaction_number"
    reference = re.sub(r"\s+", "", str(obj.get(key) or "")) or None
    return ReceiptClassification(receipt_type=receipt_type, reference=reference)


def _parse_json_object(content: str) -> Any:
    c = (content or "").strip()
    if not c:
        return None
    try:
        return json.loads(c)
    except ValueError:
        pass

    # Models sometimes wrap the object in prose or a code fence.
    m = re.search(r"\{.*\}", c, re.S)
    if not m:
        return None
    try:
        return json.loads(m.group(0))
    except ValueError:
        return None
