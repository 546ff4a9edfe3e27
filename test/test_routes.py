"""
Tests for the HTTP views.
"""

from unittest.mock import patch

import pytest

from conftest import MEX, MEX_POOL, USDC, XEGLD

from lending_risk import create_app


@pytest.fixture()
def client(engine):
    app = create_app(engine=engine)
    app.config["TESTING"] = True
    return app.test_client()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "healthy"}


def test_get_price(client):
    response = client.get(f"/risk/prices/{USDC}")
    assert response.status_code == 200
    assert response.get_json() == {"token": USDC, "asset_decimals": 6, "price": "0.025000000000000000"}


def test_get_usd_price(client):
    response = client.get(f"/risk/prices/{USDC}/usd")
    assert response.status_code == 200
    assert response.get_json()["usd_price"] == "1.000000000000000000"


def test_unknown_token_is_404(client):
    response = client.get("/risk/prices/UNKNOWN-000000")
    assert response.status_code == 404
    assert response.get_json()["error"] == "PriceNotFound"


def test_paused_aggregator_is_503(client, aggregator):
    aggregator.paused = True
    response = client.get(f"/risk/prices/{USDC}")
    assert response.status_code == 503


def test_price_view_allows_unsafe_prices(client, sources):
    sources.pools[MEX_POOL].out_amount = 120 * 10**12
    response = client.get(f"/risk/prices/{MEX}")
    assert response.status_code == 200
    assert response.get_json()["price"] == "0.000110000000000000"


def test_estimate_liquidation(client):
    response = client.post(
        "/risk/liquidation/estimate",
        json={
            "total_collateral_value": "125",
            "weighted_collateral_value": "100",
            "proportion_seized": "0.8",
            "min_bonus": "0.05",
            "total_debt_value": "105",
            "current_health_factor": "0.952380952380952380952380952",
        },
    )
    assert response.status_code == 200
    body = response.get_json()
    assert set(body) == {"debt_to_repay", "bonus_rate", "resulting_health_factor"}
    assert body["resulting_health_factor"].startswith("1.0199") or body["resulting_health_factor"].startswith("1.02")


def test_estimate_liquidation_rejects_bad_body(client):
    response = client.post("/risk/liquidation/estimate", json={"total_collateral_value": "abc"})
    assert response.status_code == 400


def test_plan_liquidation(client):
    response = client.post(
        "/risk/liquidation/plan",
        json={
            "collaterals": [
                {
                    "token": USDC,
                    "amount": str(1000 * 10**6),
                    "liquidation_threshold": "0.8",
                    "liquidation_bonus": "0.05",
                    "liquidation_fee": "0.1",
                }
            ],
            "debts": [{"token": XEGLD, "amount": str(20 * 10**18)}],
        },
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body["bad_debt"] is False
    assert body["seized"][0]["token"] == USDC


@patch("lending_risk.engine.routes.post_unsafe_price_notification")
def test_plan_with_unsafe_price_is_409(mock_notify, client, sources):
    sources.pools[MEX_POOL].out_amount = 120 * 10**12
    response = client.post(
        "/risk/liquidation/plan",
        json={
            "collaterals": [
                {
                    "token": MEX,
                    "amount": str(10**24),
                    "liquidation_threshold": "0.5",
                    "liquidation_bonus": "0.1",
                    "liquidation_fee": "0.1",
                }
            ],
            "debts": [{"token": XEGLD, "amount": str(100 * 10**18)}],
        },
    )
    assert response.status_code == 409
    assert response.get_json()["error"] == "UnsafePrice"
    mock_notify.assert_called_once()


def test_plan_healthy_position_is_422(client):
    response = client.post(
        "/risk/liquidation/plan",
        json={
            "collaterals": [
                {
                    "token": USDC,
                    "amount": str(1000 * 10**6),
                    "liquidation_threshold": "0.8",
                    "liquidation_bonus": "0.05",
                    "liquidation_fee": "0.1",
                }
            ],
            "debts": [{"token": XEGLD, "amount": str(10**18)}],
        },
    )
    assert response.status_code == 422
    assert response.get_json()["error"] == "PositionNotLiquidatable"


@patch("lending_risk.engine.routes.post_error_notification")
def test_unexpected_error_is_500(mock_notify, client, engine, monkeypatch):
    def broken_feed(token, ctx=None):
        raise RuntimeError("rpc connection reset")

    monkeypatch.setattr(engine, "price_feed", broken_feed)
    response = client.get(f"/risk/prices/{USDC}")

    assert response.status_code == 500
    assert response.get_json()["error"] == "InternalError"
    mock_notify.assert_called_once()
    assert "RuntimeError" in mock_notify.call_args.args[0]


def test_unmatched_route_is_still_404(client):
    response = client.get("/risk/nowhere")
    assert response.status_code == 404
