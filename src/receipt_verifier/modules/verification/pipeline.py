from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from receipt_verifier.core.logging import (
    get_logger,
    log_event,
    log_exception,
    monotonic_ms,
    verification_context,
)
from receipt_verifier.modules.verification.errors import (
    NetworkError,
    ParseError,
    ValidationError,
    VerificationError,
)
from receipt_verifier.modules.verification.models import (
    Institution,
    RawDocument,
    ReceiptReference,
    VerificationResult,
)
from receipt_verifier.modules.verification.normalize import normalize_record
from receipt_verifier.modules.verification.parse import ParsedDocument, parse_document
from receipt_verifier.modules.verification.rules import FieldSpec, extract_record
from receipt_verifier.modules.verification.validate import missing_fields, validate_required

logger = get_logger(__name__)

Fetch = Callable[[ReceiptReference], RawDocument]


@dataclass(frozen=True)
class VerificationPipeline:
    """Fetch, fall back once, parse, extract, normalize and validate one institution's receipt.

    `primary` and `fallback` are the two retrieval tiers. A tier that raises
    NetworkError or ParseError (including from `check_payload`) hands over to the
    next tier; a parsed document missing required fields only does so when
    `fallback_on_incomplete` is set, which is reserved for fallbacks that hit a
    different upstream. Everything else is terminal for the call.
    """

    institution: Institution
    primary: Fetch
    fields: tuple[FieldSpec, ...]
    required: tuple[str, ...]
    receipt_type: type
    fallback: Fetch | None = None
    fallback_on_incomplete: bool = False
    check_reference: Callable[[ReceiptReference], None] | None = None
    check_payload: Callable[[ParsedDocument], None] | None = None
    postprocess: Callable[[dict[str, str]], dict[str, str]] | None = None
    skip_primary: Callable[[], bool] | None = None

    def __post_init__(self) -> None:
        declared = {spec.name for spec in self.fields}
        undeclared = [name for name in self.required if name not in declared]
        if undeclared:
            raise ValueError(
                f"{self.institution.value}: required fields without rules: {undeclared}"
            )

    def verify(self, ref: ReceiptReference) -> VerificationResult:
        with verification_context(institution=self.institution.value, reference=ref.reference):
            return self._verify(ref)

    def _verify(self, ref: ReceiptReference) -> VerificationResult:
        start = time.monotonic()
        log_event(logger, "verify.start")
        try:
            if self.check_reference:
                self.check_reference(ref)
            receipt, tier = self._run(ref)
        except VerificationError as e:
            log_event(
                logger,
                "verify.finish",
                level=logging.WARNING,
                status="failed",
                error_kind=e.kind,
                stage=e.stage,
                error=e.public_message,
                detail=e.detail or None,
                duration_ms=monotonic_ms(start),
            )
            return VerificationResult.failed(e.public_message, kind=e.kind)
        except Exception:
            log_exception(logger, "verify.error", duration_ms=monotonic_ms(start))
            return VerificationResult.failed("Internal error verifying receipt", kind="internal")

        log_event(
            logger,
            "verify.finish",
            status="verified",
            tier=tier,
            duration_ms=monotonic_ms(start),
        )
        return VerificationResult.ok(receipt)

    def _tiers(self) -> list[tuple[str, Fetch]]:
        tiers: list[tuple[str, Fetch]] = [("primary", self.primary)]
        if self.fallback is not None:
            tiers.append(("fallback", self.fallback))
            if self.skip_primary is not None and self.skip_primary():
                log_event(logger, "verify.primary.skipped")
                tiers = tiers[1:]
        return tiers

    def _run(self, ref: ReceiptReference) -> tuple[Any, str]:
        tiers = self._tiers()
        for idx, (tier, fetch) in enumerate(tiers):
            is_last = idx == len(tiers) - 1
            try:
                doc = parse_document(fetch(ref))
                if self.check_payload:
                    self.check_payload(doc)
            except (NetworkError, ParseError) as e:
                self._tier_failed(tier, e, will_fall_back=not is_last)
                if is_last:
                    raise
                continue

            try:
                return self._extract(doc), tier
            except ValidationError as e:
                if is_last or not self.fallback_on_incomplete:
                    raise
                self._tier_failed(tier, e, will_fall_back=True)
        raise NetworkError()

    def _tier_failed(
        self, tier: str, e: VerificationError, *, will_fall_back: bool
    ) -> None:
        log_event(
            logger,
            "verify.fallback" if will_fall_back else "verify.tier.failed",
            level=logging.WARNING,
            tier=tier,
            error_kind=e.kind,
            error=e.public_message,
            detail=e.detail or None,
        )

    def _extract(self, doc: ParsedDocument) -> Any:
        record = extract_record(doc, self.fields)
        if self.postprocess:
            record = self.postprocess(dict(record))
        values = normalize_record(record, self.fields)
        log_event(
            logger,
            "verify.extract.done",
            level=logging.DEBUG,
            source_url=doc.source_url,
            format=doc.format.value,
            extracted=sorted(record),
            missing=missing_fields(self.required, values) or None,
        )
        validate_required(self.required, values)
        names = [f.name for f in dataclasses.fields(self.receipt_type)]
        return self.receipt_type(**{name: values.get(name) for name in names})
