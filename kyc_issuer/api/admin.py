"""Admin endpoints.

Every route here is gated inside the service layer: the bearer token's
identity must equal IssuerConfig.admin_identity, otherwise 403 and no
state changes.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from kyc_issuer.api.dependencies import Caller, Orchestrator, parse_identity
from kyc_issuer.models.credential import Credential
from kyc_issuer.models.issuer_config import IssuerConfig
from kyc_issuer.services.fees import U64_MAX

router = APIRouter(prefix="/admin", tags=["admin"])


def _hex32(v: str) -> str:
    text = v.strip().lower().removeprefix("0x")
    try:
        raw = bytes.fromhex(text)
    except ValueError:
        raise ValueError("must be hex-encoded") from None
    if len(raw) != 32:
        raise ValueError("must be 32 bytes")
    return text


class ConfigOut(BaseModel):
    issuer_identity: str
    admin_identity: str
    beneficiary_identity: str
    public_key: str
    fee_per_year: int
    price_feed_id: str


class PublicKeyIn(BaseModel):
    public_key: str

    @field_validator("public_key")
    @classmethod
    def _hex_key(cls, v: str) -> str:
        return _hex32(v)


class FeeRateIn(BaseModel):
    fee_per_year: Annotated[int, Field(ge=0, le=U64_MAX)]


class PriceFeedIn(BaseModel):
    price_feed_id: str

    @field_validator("price_feed_id")
    @classmethod
    def _hex_feed(cls, v: str) -> str:
        return _hex32(v)


class VerifiedIn(BaseModel):
    verified: bool


class ExpiryIn(BaseModel):
    expiry: Annotated[int, Field(ge=0, le=U64_MAX)]


class AdminCredentialOut(BaseModel):
    key: str
    owner: str
    verified: bool
    expiry: int


def _config_out(c: IssuerConfig) -> ConfigOut:
    return ConfigOut(
        issuer_identity=c.issuer_identity,
        admin_identity=c.admin_identity,
        beneficiary_identity=c.beneficiary_identity,
        public_key=c.public_key.hex(),
        fee_per_year=c.fee_per_year,
        price_feed_id=c.price_feed_id.hex(),
    )


def _credential_out(c: Credential) -> AdminCredentialOut:
    return AdminCredentialOut(
        key=c.key, owner=c.owner_identity, verified=c.verified, expiry=c.expiry
    )


@router.get("/config", response_model=ConfigOut)
async def get_config(principal: Caller, orchestrator: Orchestrator) -> ConfigOut:
    return _config_out(await orchestrator.issuer_config(principal))


@router.put("/config/public-key", response_model=ConfigOut)
async def set_public_key(
    body: PublicKeyIn, principal: Caller, orchestrator: Orchestrator
) -> ConfigOut:
    try:
        config = await orchestrator.set_public_key(principal, bytes.fromhex(body.public_key))
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"invalid Ed25519 public key: {e}",
        ) from None
    return _config_out(config)


@router.put("/config/fee-rate", response_model=ConfigOut)
async def set_fee_rate(
    body: FeeRateIn, principal: Caller, orchestrator: Orchestrator
) -> ConfigOut:
    return _config_out(await orchestrator.set_fee_rate(principal, body.fee_per_year))


@router.put("/config/price-feed", response_model=ConfigOut)
async def set_price_feed(
    body: PriceFeedIn, principal: Caller, orchestrator: Orchestrator
) -> ConfigOut:
    config = await orchestrator.set_price_feed(principal, bytes.fromhex(body.price_feed_id))
    return _config_out(config)


@router.put("/credentials/{identity}/verified", response_model=AdminCredentialOut)
async def set_verified(
    identity: str, body: VerifiedIn, principal: Caller, orchestrator: Orchestrator
) -> AdminCredentialOut:
    updated = await orchestrator.set_verified(principal, parse_identity(identity), body.verified)
    return _credential_out(updated)


@router.put("/credentials/{identity}/expiry", response_model=AdminCredentialOut)
async def set_expiry(
    identity: str, body: ExpiryIn, principal: Caller, orchestrator: Orchestrator
) -> AdminCredentialOut:
    updated = await orchestrator.set_expiry(principal, parse_identity(identity), body.expiry)
    return _credential_out(updated)
