"""
Health factor, liquidation bonus, liquidation amount solver and the two-step
target schedule used to size liquidations. Also the anchor tolerance math
used when configuring price providers.
"""

from typing import Tuple, Union

from .constants import (
    BONUS_SCALING_FACTOR_RAY,
    BPS_PRECISION,
    MAX_FIRST_TOLERANCE_BPS,
    MAX_HEALTH_FACTOR_RAW,
    MAX_LAST_TOLERANCE_BPS,
    MAX_LIQUIDATION_BONUS_BPS,
    MIN_FIRST_TOLERANCE_BPS,
    MIN_LAST_TOLERANCE_BPS,
    PRIMARY_TARGET_HEALTH_FACTOR_RAY,
    RAY_PRECISION,
    SECONDARY_TARGET_HEALTH_FACTOR_RAY,
)
from .exceptions import InvalidToleranceError
from .fixed_point import (
    DecimalValue,
    bps,
    div_half_up,
    div_half_up_signed,
    max_value,
    min_value,
    mul_half_up,
    mul_half_up_signed,
    ray,
)
from .logging_config import setup_logger
from .models import LiquidationInputs, LiquidationOutcome, ToleranceBounds

logger = setup_logger()

MAX_HEALTH_FACTOR = ray(MAX_HEALTH_FACTOR_RAW)
MAX_LIQUIDATION_BONUS = bps(MAX_LIQUIDATION_BONUS_BPS)
PRIMARY_TARGET_HEALTH_FACTOR = ray(PRIMARY_TARGET_HEALTH_FACTOR_RAY)
SECONDARY_TARGET_HEALTH_FACTOR = ray(SECONDARY_TARGET_HEALTH_FACTOR_RAY)


def _as_bps(value: Union[int, DecimalValue]) -> DecimalValue:
    if isinstance(value, DecimalValue):
        return value.rescale(BPS_PRECISION)
    return bps(value)


def calculate_tolerance_range(tolerance: Union[int, DecimalValue]) -> Tuple[DecimalValue, DecimalValue]:
    """
    Derive an (upper, lower) band around 1.0 from a tolerance in BPS.

    upper = 1 + t and lower = 1 / upper, so a 500 bps tolerance gives
    (1.0500, 0.9524).
    """
    upper = DecimalValue.one(BPS_PRECISION) + _as_bps(tolerance)
    lower = div_half_up(DecimalValue.one(BPS_PRECISION), upper, BPS_PRECISION)
    return upper, lower


def validate_and_calculate_tolerances(
    first_tolerance: Union[int, DecimalValue], last_tolerance: Union[int, DecimalValue]
) -> ToleranceBounds:
    """
    Validate the first and last anchor tolerances and build their bands.

    Args:
        first_tolerance: Inner tolerance in BPS, within which the safe price is trusted.
        last_tolerance: Outer tolerance in BPS, within which the average price is used.

    Returns:
        ToleranceBounds with both bands.

    Raises:
        InvalidToleranceError: If a tolerance is out of range or last < first.
    """
    first = _as_bps(first_tolerance)
    last = _as_bps(last_tolerance)

    if not bps(MIN_FIRST_TOLERANCE_BPS) <= first <= bps(MAX_FIRST_TOLERANCE_BPS):
        raise InvalidToleranceError(
            f"First tolerance {first.raw} bps outside [{MIN_FIRST_TOLERANCE_BPS}, {MAX_FIRST_TOLERANCE_BPS}]"
        )
    if not bps(MIN_LAST_TOLERANCE_BPS) <= last <= bps(MAX_LAST_TOLERANCE_BPS):
        raise InvalidToleranceError(
            f"Last tolerance {last.raw} bps outside [{MIN_LAST_TOLERANCE_BPS}, {MAX_LAST_TOLERANCE_BPS}]"
        )
    if last < first:
        raise InvalidToleranceError(f"Last tolerance {last.raw} bps is tighter than first tolerance {first.raw} bps")

    first_upper, first_lower = calculate_tolerance_range(first)
    last_upper, last_lower = calculate_tolerance_range(last)

    return ToleranceBounds(
        first_upper=first_upper,
        first_lower=first_lower,
        last_upper=last_upper,
        last_lower=last_lower,
    )


def health_factor(weighted_collateral: DecimalValue, total_debt: DecimalValue) -> DecimalValue:
    """
    Ratio of weighted collateral to debt at RAY.

    A position without debt gets MAX_HEALTH_FACTOR instead of a division.
    """
    if total_debt.is_zero():
        return MAX_HEALTH_FACTOR
    return div_half_up(weighted_collateral, total_debt, RAY_PRECISION)


def liquidation_bonus(
    current_health_factor: DecimalValue, target_health_factor: DecimalValue, min_bonus: DecimalValue
) -> DecimalValue:
    """
    Liquidator bonus growing linearly with how far the position sits below target.

    gap = (target - current) / target, scaled by 2 and clamped to [0, 1], then
    interpolated between min_bonus and MAX_LIQUIDATION_BONUS. Returned in BPS.
    """
    target = target_health_factor.rescale(RAY_PRECISION)
    current = current_health_factor.rescale(RAY_PRECISION)
    min_bonus = min_bonus.rescale(BPS_PRECISION)

    gap = div_half_up_signed(target - current, target, RAY_PRECISION)
    scaled = mul_half_up_signed(ray(BONUS_SCALING_FACTOR_RAY), gap, RAY_PRECISION)
    scaled = min_value(max_value(scaled, DecimalValue.zero(RAY_PRECISION)), DecimalValue.one(RAY_PRECISION))

    if min_bonus >= MAX_LIQUIDATION_BONUS:
        return MAX_LIQUIDATION_BONUS

    bonus_range = MAX_LIQUIDATION_BONUS - min_bonus
    bonus_increment = mul_half_up(bonus_range, scaled, RAY_PRECISION).rescale(BPS_PRECISION)
    return min_value(min_bonus + bonus_increment, MAX_LIQUIDATION_BONUS)


def solve_liquidation(
    total_collateral: DecimalValue,
    weighted_collateral: DecimalValue,
    proportion_seized: DecimalValue,
    bonus: DecimalValue,
    total_debt: DecimalValue,
    target_health_factor: DecimalValue,
) -> LiquidationOutcome:
    """
    Debt repayment that brings a position to target_health_factor.

    Solves T = (W - p * d * (1 + b)) / (D - d) for d, falling back to the
    largest repayment the collateral can cover, d_max = C / (1 + b), when the
    denominator vanishes or the ideal repayment is negative.

    Returns:
        LiquidationOutcome with the repayment, the bonus and the simulated
        health factor after seizing collateral.
    """
    collateral = total_collateral.rescale(RAY_PRECISION)
    weighted = weighted_collateral.rescale(RAY_PRECISION)
    debt = total_debt.rescale(RAY_PRECISION)
    target = target_health_factor.rescale(RAY_PRECISION)
    proportion = proportion_seized.rescale(RAY_PRECISION)

    one_plus_bonus = DecimalValue.one(RAY_PRECISION) + bonus.rescale(RAY_PRECISION)
    max_repayable = div_half_up(collateral, one_plus_bonus, RAY_PRECISION)
    seized_per_unit = mul_half_up(proportion, one_plus_bonus, RAY_PRECISION)

    if target == seized_per_unit:
        debt_to_repay = max_repayable
    else:
        numerator = mul_half_up_signed(target, debt, RAY_PRECISION) - weighted
        denominator = target - seized_per_unit
        ideal = div_half_up_signed(numerator, denominator, RAY_PRECISION)
        if ideal.is_negative():
            debt_to_repay = max_repayable
        else:
            debt_to_repay = min_value(ideal, max_repayable)

    return simulate_liquidation(weighted, proportion, bonus, debt, debt_to_repay)


def simulate_liquidation(
    weighted_collateral: DecimalValue,
    proportion_seized: DecimalValue,
    bonus: DecimalValue,
    total_debt: DecimalValue,
    debt_to_repay: DecimalValue,
) -> LiquidationOutcome:
    """
    Outcome of repaying debt_to_repay: the weighted collateral drops by
    p * d * (1 + b), capped at the weighted collateral, and the debt by d.
    """
    weighted = weighted_collateral.rescale(RAY_PRECISION)
    proportion = proportion_seized.rescale(RAY_PRECISION)
    debt = total_debt.rescale(RAY_PRECISION)
    debt_to_repay = debt_to_repay.rescale(RAY_PRECISION)
    one_plus_bonus = DecimalValue.one(RAY_PRECISION) + bonus.rescale(RAY_PRECISION)

    seized_weighted = mul_half_up(mul_half_up(proportion, debt_to_repay, RAY_PRECISION), one_plus_bonus, RAY_PRECISION)
    seized_weighted = min_value(seized_weighted, weighted)
    new_weighted = weighted - seized_weighted
    new_debt = DecimalValue.zero(RAY_PRECISION) if debt_to_repay >= debt else debt - debt_to_repay

    return LiquidationOutcome(
        debt_to_repay=debt_to_repay,
        bonus_rate=bonus.rescale(BPS_PRECISION),
        resulting_health_factor=health_factor(new_weighted, new_debt),
    )


def estimate_liquidation(inputs: LiquidationInputs) -> LiquidationOutcome:
    """
    Size a liquidation against two successive targets.

    The primary target (1.02) is tried first and kept when it restores the
    position to a health factor of at least 1.0. Otherwise the secondary
    target (1.01) is solved with its own bonus and returned as-is.
    """
    outcome = None
    for target in (PRIMARY_TARGET_HEALTH_FACTOR, SECONDARY_TARGET_HEALTH_FACTOR):
        bonus = liquidation_bonus(inputs.current_health_factor, target, inputs.min_bonus)
        outcome = solve_liquidation(
            total_collateral=inputs.total_collateral_value,
            weighted_collateral=inputs.weighted_collateral_value,
            proportion_seized=inputs.proportion_seized,
            bonus=bonus,
            total_debt=inputs.total_debt_value,
            target_health_factor=target,
        )
        logger.debug(
            "estimate_liquidation: target %s bonus %s repay %s resulting hf %s",
            target, bonus, outcome.debt_to_repay, outcome.resulting_health_factor,
        )
        if outcome.resulting_health_factor >= DecimalValue.one(RAY_PRECISION):
            return outcome
    return outcome


def one_plus(rate: DecimalValue) -> DecimalValue:
    """1 + rate at BPS, used to apply a bonus."""
    return DecimalValue.one(BPS_PRECISION) + rate.rescale(BPS_PRECISION)
