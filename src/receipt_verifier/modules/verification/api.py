from __future__ import annotations

from fastapi import APIRouter
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from receipt_verifier.modules.verification.models import (
    Institution,
    ReceiptReference,
    VerificationResult,
)
from receipt_verifier.modules.verification.schemas import (
    AbyssiniaVerifyRequest,
    CBEBirrVerifyRequest,
    CBEVerifyRequest,
    DashenVerifyRequest,
    TelebirrVerifyRequest,
)
from receipt_verifier.modules.verification.service import result_status_code, verify_receipt

router = APIRouter(tags=["verification"])


def result_response(result: VerificationResult) -> JSONResponse:
    return JSONResponse(
        status_code=result_status_code(result),
        content=jsonable_encoder(result.as_payload()),
    )


def _verify(institution: Institution, reference: str, secondary: str | None = None) -> JSONResponse:
    ref = ReceiptReference.build(institution, reference, secondary)
    return result_response(verify_receipt(ref))


@router.get("/verify-cbe")
def verify_cbe_query(reference: str, account_suffix: str) -> JSONResponse:
    return _verify(Institution.CBE, reference, account_suffix)


@router.post("/verify-cbe")
def verify_cbe(payload: CBEVerifyRequest) -> JSONResponse:
    return _verify(Institution.CBE, payload.reference, payload.account_suffix)


@router.get("/verify-telebirr")
def verify_telebirr_query(reference: str) -> JSONResponse:
    return _verify(Institution.TELEBIRR, reference)


@router.post("/verify-telebirr")
def verify_telebirr(payload: TelebirrVerifyRequest) -> JSONResponse:
    return _verify(Institution.TELEBIRR, payload.reference)


@router.get("/verify-dashen")
def verify_dashen_query(reference: str) -> JSONResponse:
    return _verify(Institution.DASHEN, reference)


@router.post("/verify-dashen")
def verify_dashen(payload: DashenVerifyRequest) -> JSONResponse:
    return _verify(Institution.DASHEN, payload.reference)


@router.get("/verify-abyssinia")
def verify_abyssinia_query(reference: str, suffix: str) -> JSONResponse:
    return _verify(Institution.ABYSSINIA, reference, suffix)


@router.post("/verify-abyssinia")
def verify_abyssinia(payload: AbyssiniaVerifyRequest) -> JSONResponse:
    return _verify(Institution.ABYSSINIA, payload.reference, payload.suffix)


@router.get("/verify-cbebirr")
def verify_cbe_birr_query(receipt_number: str, phone_number: str) -> JSONResponse:
    return _verify(Institution.CBE_BIRR, receipt_number, phone_number)


@router.post("/verify-cbebirr")
def verify_cbe_birr(payload: CBEBirrVerifyRequest) -> JSONResponse:
    return _verify(Institution.CBE_BIRR, payload.receipt_number, payload.phone_number)
