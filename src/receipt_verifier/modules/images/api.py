from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from receipt_verifier.api.deps import get_classifier
from receipt_verifier.core.logging import get_logger, log_event
from receipt_verifier.modules.images.ai import VisionClassifier
from receipt_verifier.modules.images.service import verify_image

router = APIRouter(tags=["images"])
logger = get_logger(__name__)


@router.post("/verify-image")
async def verify_image_endpoint(
    file: UploadFile = File(...),
    suffix: str | None = Form(None),
    auto_verify: bool = False,
    classifier: VisionClassifier | None = Depends(get_classifier),
) -> JSONResponse:
    body = await file.read()
    log_event(
        logger,
        "upload.received",
        filename=file.filename or "upload.bin",
        content_type=file.content_type,
        byte_size=len(body),
        auto_verify=auto_verify,
    )
    outcome = await run_in_threadpool(
        verify_image,
        classifier,
        body,
        content_type=file.content_type,
        suffix=suffix,
        auto_verify=auto_verify,
    )
    return JSONResponse(status_code=outcome.status_code, content=jsonable_encoder(outcome.body))
