from __future__ import annotations

from fastapi import APIRouter

from receipt_verifier.modules.images.api import router as images_router
from receipt_verifier.modules.verification.api import router as verification_router

SERVICE_NAME = "Ethiopian Payment Receipt Verifier"
SERVICE_VERSION = "0.1.0"

router = APIRouter()

router.include_router(verification_router)
router.include_router(images_router)


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/")
def index() -> dict[str, object]:
    routes = (*verification_router.routes, *images_router.routes)
    paths = (getattr(route, "path", "") for route in routes)
    endpoints = sorted({path for path in paths if path.startswith("/verify")})
    return {"name": SERVICE_NAME, "version": SERVICE_VERSION, "endpoints": endpoints}
