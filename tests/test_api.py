"""
Tests: /api routes, response envelope and status codes
"""
import pytest
from fastapi.testclient import TestClient

from dlmm_view.cache import TieredCache
from dlmm_view.main import create_app
from dlmm_view.pool_data import PoolDataService
from dlmm_view.providers.base import ProviderError, ProviderTimeoutError
from conftest import FakeProvider, POOL_A, POOL_B, POOL_C, USER, make_metadata, make_position


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def client(fake_provider):
    service = PoolDataService(fake_provider, TieredCache(), timeout_seconds=None)
    return TestClient(create_app(service))


# ===== POOL =====

def test_pool_returns_metrics(client):
    response = client.get(f"/api/pool/{POOL_A}")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["pool_address"] == POOL_A
    assert data["current_price"] == pytest.approx(1.5)
    assert data["active_bin"] == 100
    assert data["bin_step"] == 25
    assert data["token_x"]["symbol"] == "SOL"
    assert data["reserves"] == {"token_x": 5000.0, "token_y": 7500.0}


def test_pool_second_request_served_from_cache(client, fake_provider):
    client.get(f"/api/pool/{POOL_A}")
    client.get(f"/api/pool/{POOL_A}")
    assert fake_provider.calls["metadata"] == 1
    assert fake_provider.calls["pair_state"] == 1


def test_pool_invalid_address_is_400(client, fake_provider):
    response = client.get("/api/pool/not-a-pool")
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert "pool address" in body["message"]
    assert sum(fake_provider.calls.values()) == 0


def test_pool_unknown_is_404(client):
    response = client.get(f"/api/pool/{POOL_C}")
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_pool_provider_error_is_502(client, fake_provider):
    fake_provider.fail["metadata"] = ProviderError("ledger node error")
    response = client.get(f"/api/pool/{POOL_A}")
    assert response.status_code == 502
    assert response.json()["message"] == "ledger node error"


def test_pool_timeout_is_504(client, fake_provider):
    fake_provider.fail["pair_state"] = ProviderTimeoutError("too slow")
    response = client.get(f"/api/pool/{POOL_A}")
    assert response.status_code == 504


def test_pool_unexpected_error_is_500(client, fake_provider):
    fake_provider.fail["metadata"] = KeyError("boom")
    response = client.get(f"/api/pool/{POOL_A}")
    assert response.status_code == 500
    assert response.json()["success"] is False


# ===== BINS =====

def test_bins_returns_distribution(client):
    response = client.get(f"/api/pool/{POOL_A}/bins?range=3")
    assert response.status_code == 200
    bins = response.json()["data"]
    assert len(bins) == 7
    assert sum(1 for b in bins if b["is_active"]) == 1
    assert bins[3]["bin_id"] == 100


def test_bins_default_range(client):
    bins = client.get(f"/api/pool/{POOL_A}/bins").json()["data"]
    assert len(bins) == 101


def test_bins_fail_soft_to_empty_list(client, fake_provider):
    fake_provider.fail["bin_array"] = ProviderError("rpc error")
    response = client.get(f"/api/pool/{POOL_A}/bins")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == []


def test_bins_invalid_address_is_400(client):
    assert client.get("/api/pool/xyz/bins").status_code == 400


def test_bins_negative_range_rejected(client):
    assert client.get(f"/api/pool/{POOL_A}/bins?range=-1").status_code == 422


# ===== WALLETS =====

def test_fees_distribution(client, fake_provider):
    fake_provider.metadata[POOL_B] = make_metadata(POOL_B, base_symbol="JUP", quote_symbol="SOL")
    fake_provider.positions[(USER, POOL_A)] = [make_position(POOL_A, "p1", fees_x=3)]
    fake_provider.positions[(USER, POOL_B)] = [make_position(POOL_B, "p2", fees_y=1)]

    response = client.get(f"/api/fees/{USER}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert [d["pool_name"] for d in data] == ["SOL/USDC", "JUP/SOL"]
    assert data[0]["percentage"] == pytest.approx(75.0)
    assert data[1]["percentage"] == pytest.approx(25.0)
    assert data[0]["color"].startswith("#")


def test_fees_empty_when_no_positions(client):
    body = client.get(f"/api/fees/{USER}").json()
    assert body == {"success": True, "data": [], "message": None}


def test_fees_pool_list_failure_is_502(client, fake_provider):
    fake_provider.fail["pool_addresses"] = ProviderError("gateway down")
    assert client.get(f"/api/fees/{USER}").status_code == 502


def test_portfolio_summary(client, fake_provider):
    fake_provider.positions[(USER, POOL_A)] = [make_position(POOL_A, "p1", fees_x=2)]
    fake_provider.failing_pools.add(POOL_B)

    response = client.get(f"/api/portfolio/{USER}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["active_positions"] == 1
    assert data["total_fees_earned"] == 2.0
    assert data["positions_by_pool"] == {POOL_A: 1}
    assert data["failed_pools"] == [POOL_B]
    assert "last_updated" in data


def test_portfolio_invalid_wallet_is_400(client):
    response = client.get("/api/portfolio/0000")
    assert response.status_code == 400
    assert response.json()["success"] is False
