from __future__ import annotations

from pydantic import BaseModel


class CBEVerifyRequest(BaseModel):
    reference: str
    account_suffix: str


class TelebirrVerifyRequest(BaseModel):
    reference: str


class DashenVerifyRequest(BaseModel):
    reference: str


class AbyssiniaVerifyRequest(BaseModel):
    reference: str
    suffix: str


class CBEBirrVerifyRequest(BaseModel):
    receipt_number: str
    phone_number: str
