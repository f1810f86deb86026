from __future__ import annotations

import logging
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from kyc_issuer.models.identity import normalize_identity
from kyc_issuer.models.principal import Principal
from kyc_issuer.services import issuance, token_service
from kyc_issuer.services.orchestrator import MintOrchestrator

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_caller(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Principal:
    """Validate the bearer token and return the calling identity."""
    if credentials is None:
        raise _unauthenticated("Not authenticated")

    try:
        claims = token_service.decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthenticated("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthenticated("Invalid token") from None

    try:
        identity = normalize_identity(claims["sub"])
    except ValueError:
        logger.warning("Token subject is not an account identity: %r", claims["sub"])
        raise _unauthenticated("Token subject is not an account identity") from None

    logger.debug("Token validated for identity=%s", identity)
    return Principal(identity=identity)


def get_orchestrator() -> MintOrchestrator:
    """FastAPI dependency; tests override it with a fresh in-memory orchestrator."""
    return issuance.orchestrator


def parse_identity(raw: str) -> str:
    """Path parameters are validated here so bad addresses are 422, not 500."""
    try:
        return normalize_identity(raw)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from None


Caller = Annotated[Principal, Depends(require_caller)]
Orchestrator = Annotated[MintOrchestrator, Depends(get_orchestrator)]
