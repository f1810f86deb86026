"""Caller identity tokens (ES256 JWT).

The HTTP caller's identity is the ``sub`` claim of a bearer token.  Mint
requires sub == receiver; admin routes require sub == the configured
admin identity.  Validation lives here so dependencies.py and the tests
share one key and one claims schema.

Tokens are verified with JWT_PUBLIC_KEY (PEM, EC P-256) and must carry
the configured issuer and audience.  Without a configured key, dev and
test generate an ephemeral pair on import and can mint their own tokens;
prod refuses to start.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from kyc_issuer.core.config import SETTINGS

ALGORITHM = "ES256"
ISSUER = SETTINGS.jwt_issuer
AUDIENCE = SETTINGS.jwt_audience
ACCESS_TOKEN_TTL_MIN = 15


def load_verifying_key(pem: str | bytes) -> ec.EllipticCurvePublicKey:
    """Parse a PEM public key; only P-256 keys can verify ES256."""
    if isinstance(pem, str):
        pem = pem.encode()
    key = serialization.load_pem_public_key(pem)
    if not isinstance(key, ec.EllipticCurvePublicKey) or not isinstance(
        key.curve, ec.SECP256R1
    ):
        raise ValueError("JWT_PUBLIC_KEY must be an EC P-256 public key")
    return key


_private_key: ec.EllipticCurvePrivateKey | None
if SETTINGS.jwt_public_key:
    _private_key = None
    _public_key = load_verifying_key(SETTINGS.jwt_public_key)
else:
    # load_settings refuses prod without JWT_PUBLIC_KEY
    _private_key = ec.generate_private_key(ec.SECP256R1())
    _public_key = _private_key.public_key()


def create_access_token(*, sub: str) -> str:
    """Build and sign an access token with the ephemeral dev/test key."""
    if _private_key is None:
        raise RuntimeError("tokens are issued by the identity provider holding JWT_PUBLIC_KEY")
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256 (no alg:none / alg switching).
    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
