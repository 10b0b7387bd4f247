"""
HTTP Tests for the Stocky API

Exercises the FastAPI app end to end against an in-memory database with the
price feed disabled.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from stocky.api import create_app
from stocky.config import Settings
from stocky.container import Services

from conftest import FIXED_NOW

REWARD = {"user_id": 42, "stock_symbol": "tcs", "quantity": "5", "reference_id": "evt-1"}


@pytest.fixture
def client(db, price_store, price_source, service, valuation):
    services = Services(
        db=db,
        prices=price_store,
        price_source=price_source,
        rewards=service,
        valuation=valuation,
        feed=None,
        history_window_days=2,
    )
    app = create_app(services, settings=Settings(price_feed_enabled=False))
    with TestClient(app) as c:
        yield c


class TestRewardEndpoints:
    def test_create_reward(self, client):
        response = client.post("/api/reward", json=REWARD)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Reward created successfully"
        assert body["reward"]["stock_symbol"] == "TCS"
        assert Decimal(body["reward"]["unit_price"]) == Decimal("1000")
        assert len(body["ledger_entry"]["postings"]) == 5

    def test_duplicate_reward_is_conflict(self, client):
        client.post("/api/reward", json=REWARD)
        response = client.post("/api/reward", json=REWARD)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_REWARD"

    @pytest.mark.parametrize("field,value", [
        ("quantity", "0"),
        ("quantity", "0.0000001"),
        ("user_id", 0),
        ("reference_id", ""),
    ])
    def test_invalid_request_is_rejected(self, client, field, value):
        response = client.post("/api/reward", json={**REWARD, field: value})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unavailable_price_is_503(self, client):
        response = client.post("/api/reward", json={**REWARD, "stock_symbol": "WIPRO"})

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["code"] == "UPSTREAM_PRICE_UNAVAILABLE"
        assert error["retryable"] is True

    def test_get_reward(self, client):
        client.post("/api/reward", json=REWARD)

        assert client.get("/api/rewards/evt-1").json()["user_id"] == 42
        assert client.get("/api/rewards/nope").status_code == 404


class TestUserEndpoints:
    def test_today_stocks(self, client):
        client.post("/api/reward", json=REWARD)

        body = client.get("/api/today-stocks/42").json()
        assert [r["reference_id"] for r in body] == ["evt-1"]

    def test_stats_and_portfolio(self, client):
        client.post("/api/reward", json=REWARD)
        client.post("/api/prices", json={
            "stock_symbol": "TCS", "price": "1100",
            "timestamp": (FIXED_NOW - timedelta(minutes=5)).isoformat(),
        })

        stats = client.get("/api/stats/42").json()
        assert Decimal(stats["portfolio_value"]) == Decimal("5500")
        assert Decimal(stats["total_shares_today"][0]["total_quantity"]) == Decimal("5")

        portfolio = client.get("/api/portfolio/42").json()
        assert portfolio[0]["stock_symbol"] == "TCS"
        assert Decimal(portfolio[0]["value_inr"]) == Decimal("5500")

    def test_historical_uses_configured_window(self, client):
        body = client.get("/api/historical-inr/42").json()

        assert len(body) == 3
        assert body[-1]["date"] == "2024-03-10"

    def test_historical_window_override(self, client):
        assert len(client.get("/api/historical-inr/42", params={"days": 0}).json()) == 1
        assert client.get("/api/historical-inr/42", params={"days": -1}).status_code == 400


class TestPriceEndpoints:
    def test_record_and_read_price(self, client):
        ts = FIXED_NOW.isoformat()
        response = client.post("/api/prices", json={"stock_symbol": "infy", "price": "1510.5", "timestamp": ts})
        assert response.status_code == 201

        body = client.get("/api/prices/INFY", params={"as_of": ts}).json()
        assert set(body) == {"stock_symbol", "price", "as_of"}
        assert body["stock_symbol"] == "INFY"
        assert Decimal(body["price"]) == Decimal("1510.5")
        assert body["as_of"] == ts

    def test_price_below_four_places_rejected(self, client):
        response = client.post("/api/prices", json={"stock_symbol": "TCS", "price": "0.00001"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_missing_price_is_404(self, client):
        response = client.get("/api/prices/NOPE", params={"as_of": FIXED_NOW.isoformat()})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PRICE_NOT_FOUND"


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "service": "stocky", "database": True}
