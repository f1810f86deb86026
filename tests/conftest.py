from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from fastapi.testclient import TestClient

# Settings are read at import; pin the oracle to a fixed quote so importing
# the app never points at the live Hermes endpoint.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("STATIC_ORACLE_PRICE", "1000000000")

# Ensure repo root is on sys.path so `import kyc_issuer` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from kyc_issuer.api.dependencies import get_orchestrator  # noqa: E402
from kyc_issuer.main import app  # noqa: E402
from kyc_issuer.models.identity import normalize_identity  # noqa: E402
from kyc_issuer.models.issuer_config import IssuerConfig  # noqa: E402
from kyc_issuer.services import token_service  # noqa: E402
from kyc_issuer.services.challenge import MintChallenge  # noqa: E402
from kyc_issuer.services.mint_events import InMemoryMintEventSink  # noqa: E402
from kyc_issuer.services.oracle import PriceOracleAdapter, StaticPriceFeed  # noqa: E402
from kyc_issuer.services.orchestrator import MintOrchestrator  # noqa: E402
from kyc_issuer.services.unit_of_work import InMemoryUnitOfWork  # noqa: E402

ISSUER = normalize_identity("0x1")
ADMIN = normalize_identity("0xad")
BENEFICIARY = normalize_identity("0xbe")
RECEIVER = normalize_identity(
    "0xf8fa7e90680fef5402bf1820d1dac7cd4d18824a989375980bb1f9d7c9d373bc"
)
OTHER = normalize_identity("0x0c0ffee")

# $0.50 per year (micro-USD), fee asset at $10.00 (price 10**9, expo -8).
FEE_PER_YEAR = 500_000
QUOTE_PRICE = 10**9
QUOTE_EXPO = -8
ONE_YEAR = 31_536_000
FEE_FOR_ONE_YEAR = 5_000_000

NOW = 1_700_000_000
STARTING_BALANCE = 10**10


def raw_public_key(private_key: Ed25519PrivateKey) -> bytes:
    return private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)


@dataclass
class Issuer:
    """One in-memory issuer: orchestrator plus handles on its collaborators."""

    orchestrator: MintOrchestrator
    uow: InMemoryUnitOfWork
    feed: StaticPriceFeed
    events: InMemoryMintEventSink
    signing_key: Ed25519PrivateKey
    now: int = NOW

    def sign(
        self,
        *,
        receiver: str = RECEIVER,
        metadata_uri: str = "ipfs://kyc/basic",
        expiry: int = NOW + ONE_YEAR,
        duration: int = ONE_YEAR,
        tier: str = "basic",
        sequence_number: int | None = None,
        signing_key: Ed25519PrivateKey | None = None,
    ) -> str:
        """Hex signature over the challenge the service will rebuild."""
        if sequence_number is None:
            sequence_number = self.uow.ledger._sequence.get(receiver, 0)
        challenge = MintChallenge(
            issuer_identity=ISSUER,
            receiver_identity=receiver,
            receiver_sequence_number=sequence_number,
            metadata_uri=metadata_uri,
            expiry=expiry,
            duration_paid=duration,
            tier=tier,
        )
        return challenge.sign(signing_key or self.signing_key).hex()


@pytest.fixture
def signing_key() -> Ed25519PrivateKey:
    return Ed25519PrivateKey.generate()


@pytest.fixture
def issuer_config(signing_key: Ed25519PrivateKey) -> IssuerConfig:
    return IssuerConfig(
        issuer_identity=ISSUER,
        admin_identity=ADMIN,
        beneficiary_identity=BENEFICIARY,
        public_key=raw_public_key(signing_key),
        fee_per_year=FEE_PER_YEAR,
        price_feed_id=bytes.fromhex("aa" * 32),
    )


@pytest.fixture
def issuer(issuer_config: IssuerConfig, signing_key: Ed25519PrivateKey) -> Issuer:
    uow = InMemoryUnitOfWork(issuer_config)
    uow.ledger.deposit(RECEIVER, STARTING_BALANCE)
    feed = StaticPriceFeed(QUOTE_PRICE, QUOTE_EXPO)
    events = InMemoryMintEventSink()
    handle = Issuer(
        orchestrator=None,  # type: ignore[arg-type]
        uow=uow,
        feed=feed,
        events=events,
        signing_key=signing_key,
    )
    handle.orchestrator = MintOrchestrator(
        uow, PriceOracleAdapter(feed), events, clock=lambda: handle.now
    )
    return handle


@pytest.fixture(autouse=True)
def override_orchestrator(issuer: Issuer):
    """Every test gets a fresh in-memory issuer behind the API."""
    app.dependency_overrides[get_orchestrator] = lambda: issuer.orchestrator
    yield
    app.dependency_overrides.pop(get_orchestrator, None)


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(identity: str = RECEIVER) -> str:
    """Create a valid ES256 JWT for the given account identity."""
    return token_service.create_access_token(sub=identity)


def auth(identity: str = RECEIVER) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(identity)}"}


@pytest.fixture
def token() -> str:
    """Token for the default receiver."""
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    return mint_token(ADMIN)
