from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

DEFAULT_ORACLE_URL = "https://hermes.pyth.network"
# Pyth APT/USD feed
DEFAULT_PRICE_FEED_ID = (
    "03ae4db29ed4ae33d323568895aa00337e658e348b37509f5372ae51f0af00d5"
)
DEFAULT_JWT_ISSUER = "kyc-issuer"
DEFAULT_JWT_AUDIENCE = "kyc-issuer"

# fee arithmetic runs in unsigned 64-bit
_U64_MAX = 2**64 - 1


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getint(name: str, default: str) -> int:
    raw = _getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


def _gethex(name: str, default: str, *, length: int | None = None) -> bytes:
    raw = _getenv(name, default).lower().removeprefix("0x")
    try:
        value = bytes.fromhex(raw)
    except ValueError:
        raise ValueError(f"{name} must be hex-encoded (got {raw!r})") from None
    if length is not None and value and len(value) != length:
        raise ValueError(f"{name} must be {length} bytes (got {len(value)})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    issuer_identity: str
    admin_identity: str
    beneficiary_identity: str
    mint_proof_public_key: bytes
    fee_per_year: int
    price_feed_id: bytes
    oracle_url: str
    oracle_timeout_seconds: float
    # When set, quotes come from a fixed (price, expo) pair instead of Hermes.
    static_oracle_price: int | None = None
    static_oracle_expo: int = -8
    # PEM-encoded EC P-256 key that verifies caller tokens.  Unset means an
    # ephemeral key pair, which only dev and test accept.
    jwt_public_key: str | None = None
    jwt_issuer: str = DEFAULT_JWT_ISSUER
    jwt_audience: str = DEFAULT_JWT_AUDIENCE

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _getint("PORT", "8000")
    fee_per_year = _getint("FEE_PER_YEAR", "0")
    if fee_per_year < 0:
        raise ValueError(f"FEE_PER_YEAR must be non-negative (got {fee_per_year})")
    if fee_per_year > _U64_MAX:
        raise ValueError(f"FEE_PER_YEAR must fit in 64 bits (got {fee_per_year})")

    timeout_raw = _getenv("ORACLE_TIMEOUT_SECONDS", "10")
    try:
        oracle_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"ORACLE_TIMEOUT_SECONDS must be a number (got {timeout_raw!r})"
        ) from None

    static_price_raw = _getenv("STATIC_ORACLE_PRICE", "")
    static_price = _getint("STATIC_ORACLE_PRICE", "0") if static_price_raw else None

    # PEM newlines may arrive escaped when the key is passed as one line
    jwt_public_key = _getenv("JWT_PUBLIC_KEY", "").replace("\\n", "\n") or None
    if jwt_public_key is None and app_env_raw == "prod":
        raise ValueError("JWT_PUBLIC_KEY is required when APP_ENV=prod")

    # Identities are validated by the issuer config model at startup; here
    # they are only read.
    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("1", "true", "yes"),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        issuer_identity=_getenv("ISSUER_IDENTITY", "0x1"),
        admin_identity=_getenv("ADMIN_IDENTITY", "0xad"),
        beneficiary_identity=_getenv("BENEFICIARY_IDENTITY", "")
        or _getenv("ADMIN_IDENTITY", "0xad"),
        mint_proof_public_key=_gethex("MINT_PROOF_PUBLIC_KEY", "", length=32),
        fee_per_year=fee_per_year,
        price_feed_id=_gethex("PRICE_FEED_ID", DEFAULT_PRICE_FEED_ID, length=32),
        oracle_url=_getenv("ORACLE_URL", DEFAULT_ORACLE_URL),
        oracle_timeout_seconds=oracle_timeout,
        static_oracle_price=static_price,
        static_oracle_expo=_getint("STATIC_ORACLE_EXPO", "-8"),
        jwt_public_key=jwt_public_key,
        jwt_issuer=_getenv("JWT_ISSUER", DEFAULT_JWT_ISSUER),
        jwt_audience=_getenv("JWT_AUDIENCE", DEFAULT_JWT_AUDIENCE),
    )


SETTINGS = load_settings()
