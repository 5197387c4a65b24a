from __future__ import annotations

from receipt_verifier.core.logging import get_logger, log_event
from receipt_verifier.modules.verification.errors import (
    InputError,
    NetworkError,
    ParseError,
    UpstreamRejection,
    ValidationError,
)
from receipt_verifier.modules.verification.institutions import (
    abyssinia,
    cbe,
    cbe_birr,
    dashen,
    telebirr,
)
from receipt_verifier.modules.verification.models import (
    Institution,
    ReceiptReference,
    VerificationResult,
)
from receipt_verifier.modules.verification.pipeline import VerificationPipeline

logger = get_logger(__name__)

PIPELINES: dict[Institution, VerificationPipeline] = {
    Institution.CBE: cbe.PIPELINE,
    Institution.TELEBIRR: telebirr.PIPELINE,
    Institution.DASHEN: dashen.PIPELINE,
    Institution.ABYSSINIA: abyssinia.PIPELINE,
    Institution.CBE_BIRR: cbe_birr.PIPELINE,
}

STATUS_BY_KIND: dict[str, int] = {
    cls.kind: cls.status_code
    for cls in (NetworkError, ParseError, ValidationError, InputError, UpstreamRejection)
}


def verify_receipt(ref: ReceiptReference) -> VerificationResult:
    return PIPELINES[ref.institution].verify(ref)


def verify_reference(
    institution_tag: str,
    reference_value: str,
    secondary_identifier: str | None = None,
) -> VerificationResult:
    """Dispatch by institution tag (`"cbe"`, `"telebirr"`, ...) and run that pipeline."""
    try:
        institution = Institution(str(institution_tag or "").strip().lower())
    except ValueError:
        log_event(logger, "verify.dispatch.unknown_institution", institution=institution_tag)
        err = InputError(f"Unsupported institution: {institution_tag}")
        return VerificationResult.failed(err.public_message, kind=err.kind)
    ref = ReceiptReference.build(institution, reference_value, secondary_identifier)
    return verify_receipt(ref)


def result_status_code(result: VerificationResult) -> int:
    if result.success:
        return 200
    return STATUS_BY_KIND.get(result.error_kind or "", 500)
