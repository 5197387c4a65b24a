from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass
from typing import Any


class Institution(str, enum.Enum):
    CBE = "cbe"
    TELEBIRR = "telebirr"
    DASHEN = "dashen"
    ABYSSINIA = "abyssinia"
    CBE_BIRR = "cbe_birr"


class DocumentFormat(str, enum.Enum):
    PDF = "document"
    HTML = "markup"
    JSON = "structured"


@dataclass(frozen=True)
class ReceiptReference:
    institution: Institution
    reference: str
    secondary: str | None = None

    @classmethod
    def build(
        cls, institution: Institution | str, reference: str, secondary: str | None = None
    ) -> ReceiptReference:
        ref = (reference or "").strip()
        sec = (secondary or "").strip() or None
        return cls(institution=Institution(institution), reference=ref, secondary=sec)


@dataclass(frozen=True)
class RawDocument:
    # format None: the parser detects markup vs structured content from the bytes.
    format: DocumentFormat | None
    content: bytes
    source_url: str
    content_type: str | None = None


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    data: Any | None = None
    error: str | None = None
    error_kind: str | None = None

    @classmethod
    def ok(cls, data: Any) -> VerificationResult:
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: str, *, kind: str) -> VerificationResult:
        return cls(success=False, error=error, error_kind=kind)

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.success:
            data = self.data
            if dataclasses.is_dataclass(data) and not isinstance(data, type):
                data = dataclasses.asdict(data)
            payload["data"] = data
        else:
            payload["error"] = self.error
        return payload
