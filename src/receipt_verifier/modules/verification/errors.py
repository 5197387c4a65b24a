from __future__ import annotations

from typing import Any


class VerificationError(Exception):
    """Base for every failure a verification pipeline can surface to its caller.

    `public_message` is what ends up in the result envelope; `detail` carries
    structured context (field names, upstream status, URLs) for logs only.
    """

    kind = "verification_error"
    stage = "unknown"
    status_code = 500
    default_message = "Verification failed"

    def __init__(self, message: str | None = None, **detail: Any) -> None:
        self.public_message = message or self.default_message
        self.detail = detail
        super().__init__(self.public_message)


class NetworkError(VerificationError):
    kind = "network"
    stage = "fetch"
    status_code = 502
    default_message = "Failed to fetch receipt"


class ParseError(VerificationError):
    kind = "parse"
    stage = "parse"
    status_code = 502
    default_message = "Error parsing receipt data"


class ValidationError(VerificationError):
    kind = "validation"
    stage = "validate"
    status_code = 404
    default_message = "Could not extract required fields"

    def __init__(
        self,
        message: str | None = None,
        *,
        missing_fields: list[str] | None = None,
        **detail: Any,
    ) -> None:
        self.missing_fields = list(missing_fields or [])
        if message is None and self.missing_fields:
            message = f"{self.default_message}: {', '.join(self.missing_fields)}"
        super().__init__(message, missing_fields=self.missing_fields or None, **detail)


class InputError(ValidationError):
    """Caller-supplied identifiers rejected before any fetch is attempted."""

    kind = "input"
    stage = "input"
    status_code = 400
    default_message = "Invalid verification input"


class UpstreamRejection(VerificationError):
    kind = "upstream_rejection"
    stage = "upstream"
    status_code = 404
    default_message = "Upstream rejected the receipt lookup"

    def __init__(self, status: str, **detail: Any) -> None:
        self.upstream_status = status
        super().__init__(f"API returned error status: {status}", upstream_status=status, **detail)
