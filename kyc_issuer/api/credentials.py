"""Credential issuance and lookup endpoints.

- POST /v1/credentials/mint                      redeem a mint proof (caller = receiver)
- GET  /v1/credentials/fee?duration=N            fee for N seconds of validity
- GET  /v1/credentials/{identity}                the identity's credential
- GET  /v1/credentials/{identity}/valid          verified and unexpired?
- GET  /v1/credentials/by-key/{key}/tier         tier stored under a derived key
- GET  /v1/credentials/by-key/{key}/expiry       expiry stored under a derived key
- POST /v1/credentials/by-key/{key}/transfer     always 409: credentials are soulbound

Lookups are public: downstream services check KYC status without a token.
"""

from __future__ import annotations

import re
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from kyc_issuer.api.dependencies import Caller, Orchestrator, parse_identity
from kyc_issuer.models.credential import Credential
from kyc_issuer.models.identity import normalize_identity
from kyc_issuer.services.fees import U64_MAX

router = APIRouter(prefix="/v1/credentials", tags=["credentials"])

_KEY_RE = re.compile(r"^0x[0-9a-f]{64}$")

U64 = Annotated[int, Field(ge=0, le=U64_MAX)]


class MintIn(BaseModel):
    receiver: str
    metadata_uri: str = Field(max_length=2048)
    expiry: U64
    duration: U64
    tier: str = Field(min_length=1, max_length=128)
    signature: str

    @field_validator("receiver")
    @classmethod
    def _canonical_receiver(cls, v: str) -> str:
        return normalize_identity(v)


class MintOut(BaseModel):
    receiver: str
    credential_key: str


class FeeOut(BaseModel):
    duration: int
    fee: int


class CredentialOut(BaseModel):
    key: str
    owner: str
    tier: str
    metadata_uri: str
    verified: bool
    expiry: int
    issued_at: int
    transferable: bool
    valid: bool


class ValidityOut(BaseModel):
    identity: str
    valid: bool


class TierOut(BaseModel):
    key: str
    tier: str


class ExpiryOut(BaseModel):
    key: str
    expiry: int


class TransferIn(BaseModel):
    to: str


def _parse_key(raw: str) -> str:
    key = raw.strip().lower()
    if not _KEY_RE.match(key):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="credential key must be 0x followed by 64 hex digits",
        )
    return key


def _credential_out(c: Credential, valid: bool) -> CredentialOut:
    return CredentialOut(
        key=c.key,
        owner=c.owner_identity,
        tier=c.tier,
        metadata_uri=c.metadata_uri,
        verified=c.verified,
        expiry=c.expiry,
        issued_at=c.issued_at,
        transferable=c.transferable,
        valid=valid,
    )


@router.post("/mint", response_model=MintOut, status_code=201)
async def mint_credential(
    body: MintIn,
    principal: Caller,
    orchestrator: Orchestrator,
) -> MintOut:
    key = await orchestrator.mint(
        principal,
        receiver=body.receiver,
        metadata_uri=body.metadata_uri,
        expiry=body.expiry,
        duration=body.duration,
        tier=body.tier,
        signature=body.signature,
    )
    return MintOut(receiver=body.receiver, credential_key=key)


@router.get("/fee", response_model=FeeOut)
async def quote_fee(
    orchestrator: Orchestrator,
    duration: Annotated[int, Query(ge=0, le=U64_MAX)],
) -> FeeOut:
    fee = await orchestrator.required_fee(duration)
    return FeeOut(duration=duration, fee=fee)


@router.get("/by-key/{key}/tier", response_model=TierOut)
async def get_tier(key: str, orchestrator: Orchestrator) -> TierOut:
    key = _parse_key(key)
    return TierOut(key=key, tier=await orchestrator.tier_of(key))


@router.get("/by-key/{key}/expiry", response_model=ExpiryOut)
async def get_expiry(key: str, orchestrator: Orchestrator) -> ExpiryOut:
    key = _parse_key(key)
    return ExpiryOut(key=key, expiry=await orchestrator.expiry_of(key))


@router.post("/by-key/{key}/transfer")
async def transfer_credential(
    key: str,
    body: TransferIn,
    principal: Caller,
    orchestrator: Orchestrator,
) -> None:
    await orchestrator.transfer(principal, _parse_key(key), parse_identity(body.to))


@router.get("/{identity}", response_model=CredentialOut)
async def get_credential(identity: str, orchestrator: Orchestrator) -> CredentialOut:
    identity = parse_identity(identity)
    credential = await orchestrator.get_credential(identity)
    return _credential_out(credential, await orchestrator.is_valid(identity))


@router.get("/{identity}/valid", response_model=ValidityOut)
async def get_validity(identity: str, orchestrator: Orchestrator) -> ValidityOut:
    identity = parse_identity(identity)
    return ValidityOut(identity=identity, valid=await orchestrator.is_valid(identity))
