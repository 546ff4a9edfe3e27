"""Module for handling API routes"""

from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, make_response, request
from werkzeug.exceptions import HTTPException

from .constants import BPS_PRECISION, RAY_PRECISION
from .exceptions import (
    ConfigurationError,
    PriceNotFound,
    ReentrancyError,
    RiskEngineError,
    SafetyViolation,
    UnavailableError,
    UnsafePrice,
)
from .fixed_point import DecimalValue
from .logging_config import setup_logger
from .models import CollateralPosition, DebtPosition, LiquidationInputs, LiquidationOutcome, LiquidationPlan
from .notifications import post_error_notification, post_unsafe_price_notification

logger = setup_logger()

risk = Blueprint("risk", __name__)


class InvalidRequest(ValueError):
    """Raised when a request body cannot be parsed."""


def _get_engine():
    """Get the risk engine instance."""
    return current_app.config["RISK_ENGINE"]


def _decimal_field(body: Dict[str, Any], name: str, precision: int) -> DecimalValue:
    if name not in body:
        raise InvalidRequest(f"Missing field '{name}'")
    try:
        return DecimalValue.parse(body[name], precision)
    except ValueError as exc:
        raise InvalidRequest(f"Invalid value for '{name}': {body[name]!r}") from exc


def _optional_decimal_field(body: Dict[str, Any], name: str, precision: int) -> Optional[DecimalValue]:
    if body.get(name) is None:
        return None
    return _decimal_field(body, name, precision)


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise InvalidRequest("Expected a JSON object body")
    return body


def _outcome_to_json(outcome: LiquidationOutcome) -> Dict[str, str]:
    return {
        "debt_to_repay": str(outcome.debt_to_repay),
        "bonus_rate": str(outcome.bonus_rate),
        "resulting_health_factor": str(outcome.resulting_health_factor),
    }


def _plan_to_json(plan: LiquidationPlan) -> Dict[str, Any]:
    return {
        "debt_to_repay": str(plan.debt_to_repay),
        "max_collateral_seized": str(plan.max_collateral_seized),
        "bonus_rate": str(plan.bonus_rate),
        "health_factor": str(plan.health_factor),
        "resulting_health_factor": str(plan.resulting_health_factor),
        "refund_value": str(plan.refund_value),
        "bad_debt": plan.bad_debt,
        "seized": [
            {"token": item.token, "amount": str(item.amount), "protocol_fee": str(item.protocol_fee)}
            for item in plan.seized
        ],
    }


def _collateral_from_json(entry: Dict[str, Any]) -> CollateralPosition:
    try:
        return CollateralPosition(
            token=entry["token"],
            amount=int(entry["amount"]),
            liquidation_threshold=_decimal_field(entry, "liquidation_threshold", BPS_PRECISION),
            liquidation_bonus=_decimal_field(entry, "liquidation_bonus", BPS_PRECISION),
            liquidation_fee=_decimal_field(entry, "liquidation_fee", BPS_PRECISION),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidRequest(f"Invalid collateral entry {entry!r}") from exc


def _debt_from_json(entry: Dict[str, Any]) -> DebtPosition:
    try:
        return DebtPosition(token=entry["token"], amount=int(entry["amount"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidRequest(f"Invalid debt entry {entry!r}") from exc


@risk.errorhandler(InvalidRequest)
def handle_invalid_request(error: InvalidRequest):
    return jsonify({"error": str(error)}), 400


@risk.errorhandler(RiskEngineError)
def handle_engine_error(error: RiskEngineError):
    if isinstance(error, PriceNotFound):
        status = 404
    elif isinstance(error, ConfigurationError):
        status = 400
    elif isinstance(error, UnavailableError):
        status = 503
    elif isinstance(error, (SafetyViolation, ReentrancyError)):
        status = 409
    else:
        status = 422

    logger.error("API: %s on %s: %s", type(error).__name__, request.path, error)
    if isinstance(error, UnsafePrice):
        token = (request.view_args or {}).get("token", request.path)
        post_unsafe_price_notification(token, str(error), _get_engine().config)
    elif isinstance(error, SafetyViolation):
        post_error_notification(f"{type(error).__name__} on `{request.path}`: {error}", _get_engine().config)

    return jsonify({"error": type(error).__name__, "message": str(error)}), status


@risk.errorhandler(Exception)
def handle_unexpected_error(error: Exception):
    if isinstance(error, HTTPException):
        return error

    logger.error("API: Unexpected error on %s: %s", request.path, error, exc_info=True)
    post_error_notification(f"Unexpected {type(error).__name__} on `{request.path}`: {error}", _get_engine().config)
    return jsonify({"error": "InternalError", "message": "Unexpected error"}), 500


@risk.route("/prices/<token>", methods=["GET"])
def get_price(token: str):
    logger.info("API: Getting price for %s", token)
    feed = _get_engine().price_feed(token)
    return make_response(jsonify({"token": token, "asset_decimals": feed.asset_decimals, "price": str(feed.price)}))


@risk.route("/prices/<token>/usd", methods=["GET"])
def get_usd_price(token: str):
    logger.info("API: Getting USD price for %s", token)
    price = _get_engine().usd_price(token)
    return make_response(jsonify({"token": token, "usd_price": str(price)}))


@risk.route("/liquidation/estimate", methods=["POST"])
def estimate_liquidation():
    body = _json_body()
    inputs = LiquidationInputs(
        total_collateral_value=_decimal_field(body, "total_collateral_value", RAY_PRECISION),
        weighted_collateral_value=_decimal_field(body, "weighted_collateral_value", RAY_PRECISION),
        proportion_seized=_decimal_field(body, "proportion_seized", BPS_PRECISION),
        min_bonus=_decimal_field(body, "min_bonus", BPS_PRECISION),
        total_debt_value=_decimal_field(body, "total_debt_value", RAY_PRECISION),
        current_health_factor=_decimal_field(body, "current_health_factor", RAY_PRECISION),
    )
    outcome = _get_engine().estimate(inputs)
    return make_response(jsonify(_outcome_to_json(outcome)))


@risk.route("/liquidation/plan", methods=["POST"])
def plan_liquidation():
    body = _json_body()
    collaterals = [_collateral_from_json(entry) for entry in body.get("collaterals", [])]
    debts = [_debt_from_json(entry) for entry in body.get("debts", [])]
    debt_payment = _optional_decimal_field(body, "debt_payment", RAY_PRECISION)

    logger.info("API: Planning liquidation for %s collaterals and %s debts", len(collaterals), len(debts))
    plan = _get_engine().plan(collaterals, debts, debt_payment=debt_payment)
    return make_response(jsonify(_plan_to_json(plan)))
