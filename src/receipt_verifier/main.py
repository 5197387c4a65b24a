from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from receipt_verifier.api.router import SERVICE_NAME, SERVICE_VERSION
from receipt_verifier.api.router import router as api_router
from receipt_verifier.core.logging import RequestContextMiddleware, get_logger, log_event

logger = get_logger(__name__)


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts: list[str] = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "form")]
        name = ".".join(loc)
        msg = str(err.get("msg") or "invalid value")
        parts.append(f"{name}: {msg}" if name else msg)
    return "; ".join(parts) or "Invalid request"


def create_app() -> FastAPI:
    app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = _describe_validation_error(exc)
        log_event(logger, "http.request.invalid", path=request.url.path, error=error)
        return JSONResponse(status_code=400, content={"success": False, "error": error})

    app.include_router(api_router)
    return app


app = create_app()
