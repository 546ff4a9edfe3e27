"""
Tests for the notifications module.
"""

from unittest.mock import patch

from lending_risk.engine.fixed_point import DecimalValue, bps
from lending_risk.engine.models import LiquidationPlan, SeizedCollateral
from lending_risk.engine.notifications import (
    post_bad_debt_notification,
    post_error_notification,
    post_unsafe_price_notification,
)


@patch("lending_risk.engine.notifications.Apprise")
def test_post_error_notification(mock_apprise, config):
    mock_apprise.return_value.notify.return_value = True
    assert post_error_notification("Test error message", config)

    kwargs = mock_apprise.return_value.notify.call_args.kwargs
    assert kwargs["title"] == "Error Notification"
    assert "Test error message" in kwargs["body"]


@patch("lending_risk.engine.notifications.Apprise")
def test_post_error_notification_without_config(mock_apprise):
    mock_apprise.return_value.notify.return_value = False
    assert not post_error_notification("Test error message")
    mock_apprise.return_value.add.assert_not_called()


@patch("lending_risk.engine.notifications.Apprise")
def test_post_unsafe_price_notification(mock_apprise, config):
    mock_apprise.return_value.notify.return_value = True
    assert post_unsafe_price_notification("MEX-455c57", "ratio 1.2000", config)
    assert "MEX-455c57" in mock_apprise.return_value.notify.call_args.kwargs["body"]


@patch("lending_risk.engine.notifications.Apprise")
def test_post_bad_debt_notification(mock_apprise, config):
    mock_apprise.return_value.notify.return_value = True
    plan = LiquidationPlan(
        debt_to_repay=DecimalValue.from_units(1, 27),
        max_collateral_seized=DecimalValue.from_units(1, 27),
        bonus_rate=bps(1500),
        health_factor=DecimalValue.parse("0.2", 27),
        resulting_health_factor=DecimalValue.zero(27),
        refund_value=DecimalValue.zero(27),
        bad_debt=True,
        seized=[SeizedCollateral("USDC-c76f1f", 1000, DecimalValue.zero(6))],
    )
    assert post_bad_debt_notification(plan, config)
    assert "1000 USDC-c76f1f" in mock_apprise.return_value.notify.call_args.kwargs["body"]
