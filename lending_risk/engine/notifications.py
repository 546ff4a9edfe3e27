"""
Apprise notification functions for the risk engine.
"""

import time
from typing import Optional

from apprise import Apprise

from .config_loader import MarketConfig
from .logging_config import setup_logger
from .models import LiquidationPlan

logger = setup_logger()


def setup_apprise_notification_object(config: Optional[MarketConfig]) -> Apprise:
    """Set up the Apprise notification engine."""
    apprise = Apprise()
    if config and config.NOTIFICATION_URL:
        apprise.add(config.NOTIFICATION_URL)
    return apprise


def _network_line(config: Optional[MarketConfig]) -> str:
    return f"Market: `{config.MARKET_NAME}`" if config else ""


def post_unsafe_price_notification(token: str, reason: str, config: Optional[MarketConfig]) -> bool:
    """Post a notification about prices that failed tolerance reconciliation."""
    message = (
        ":warning: *Unsafe Price Detected* :warning:\n\n"
        f"*Token*: `{token}`\n"
        f"*Reason*: {reason}\n"
        f"Time of detection: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"{_network_line(config)}\n"
    )
    logger.info("Unsafe price notification:\n%s", message)

    apprise = setup_apprise_notification_object(config)
    return apprise.notify(body=message, title="Unsafe Price Detected")


def post_bad_debt_notification(plan: LiquidationPlan, config: Optional[MarketConfig]) -> bool:
    """Post a notification about a position left with bad debt after liquidation."""
    seized = ", ".join(f"{item.amount} {item.token}" for item in plan.seized) or "none"
    message = (
        ":rotating_light: *Bad Debt After Liquidation* :rotating_light:\n\n"
        f"*Health Factor*: `{plan.health_factor}`\n"
        f"*Debt Repaid*: `{plan.debt_to_repay}`\n"
        f"*Bonus*: `{plan.bonus_rate}`\n"
        f"*Seized*: {seized}\n"
        f"Time of detection: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"{_network_line(config)}\n"
    )
    logger.info("Bad debt notification:\n%s", message)

    apprise = setup_apprise_notification_object(config)
    return apprise.notify(body=message, title="Bad Debt After Liquidation")


def post_error_notification(message: str, config: Optional[MarketConfig] = None) -> bool:
    """Post an error notification."""
    error_message = f":rotating_light: *Error Notification* :rotating_light:\n\n{message}\n\n"
    error_message += f"Time: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
    error_message += _network_line(config)

    logger.info("Error notification:\n%s", error_message)

    apprise = setup_apprise_notification_object(config)
    return apprise.notify(body=error_message, title="Error Notification")
