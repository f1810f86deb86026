"""Tests for Prometheus metrics.

prometheus-client keeps one global registry and counters only go up, so
every assertion here is on the DELTA around the action under test.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from kyc_issuer.services.registry import derive_key
from tests.conftest import (
    ADMIN,
    FEE_FOR_ONE_YEAR,
    ISSUER,
    NOW,
    ONE_YEAR,
    RECEIVER,
    Issuer,
    auth,
)


def _get_sample(name: str, labels: dict | None = None) -> float:
    """Read a metric sample's current value from the global registry."""
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def _mint_body(issuer: Issuer, tier: str = "basic") -> dict:
    return {
        "receiver": RECEIVER,
        "metadata_uri": "ipfs://kyc/basic",
        "expiry": NOW + ONE_YEAR,
        "duration": ONE_YEAR,
        "tier": tier,
        "signature": issuer.sign(),
    }


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    after = _get_sample("http_requests_total", labels)
    assert after - before >= 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    after = _get_sample("http_request_duration_seconds_count", labels)
    assert after - before >= 1


def test_credential_routes_are_labelled_by_template(client: TestClient) -> None:
    key = derive_key(ISSUER, RECEIVER)
    labels = {
        "method": "GET",
        "endpoint": "/v1/credentials/by-key/{key}/tier",
        "status_code": "404",
    }
    before = _get_sample("http_requests_total", labels)
    client.get(f"/v1/credentials/by-key/{key}/tier")
    after = _get_sample("http_requests_total", labels)
    assert after - before == 1


def test_metrics_endpoint_serves_prometheus_text(client: TestClient) -> None:
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "credential_mints_total" in resp.text


def test_mint_outcomes_are_counted(client: TestClient, issuer: Issuer) -> None:
    ok_before = _get_sample("credential_mints_total", {"result": "ok"})
    dup_before = _get_sample("credential_mints_total", {"result": "duplicate_credential"})
    fees_before = _get_sample("mint_fees_collected_total")

    client.post("/v1/credentials/mint", json=_mint_body(issuer), headers=auth())
    client.post("/v1/credentials/mint", json=_mint_body(issuer), headers=auth())

    assert _get_sample("credential_mints_total", {"result": "ok"}) - ok_before == 1
    assert (
        _get_sample("credential_mints_total", {"result": "duplicate_credential"})
        - dup_before
        == 1
    )
    assert _get_sample("mint_fees_collected_total") - fees_before == FEE_FOR_ONE_YEAR


def test_admin_rejections_are_counted(client: TestClient) -> None:
    labels = {"operation": "set_fee_rate"}
    before = _get_sample("admin_rejections_total", labels)
    client.put("/admin/config/fee-rate", json={"fee_per_year": 1}, headers=auth(RECEIVER))
    assert _get_sample("admin_rejections_total", labels) - before == 1

    before = _get_sample("admin_mutations_total", labels)
    client.put("/admin/config/fee-rate", json={"fee_per_year": 1}, headers=auth(ADMIN))
    assert _get_sample("admin_mutations_total", labels) - before == 1
