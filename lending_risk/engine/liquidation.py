"""
Liquidation planning.

Values a position's collateral and debt through the price resolver, sizes the
liquidation with the two-target estimate and splits the seized collateral
across the supplied assets.
"""

from typing import List, Optional, Sequence, Tuple

from .constants import BPS_PRECISION, RAY_PRECISION, WAD_PRECISION
from .context import ExecutionContext
from .exceptions import PositionNotLiquidatable
from .fixed_point import DecimalValue, div_half_up, mul_half_up
from .logging_config import setup_logger
from .models import CollateralPosition, DebtPosition, LiquidationInputs, LiquidationPlan, SeizedCollateral
from .oracle import PriceResolver
from .risk_math import estimate_liquidation, health_factor, one_plus, simulate_liquidation

logger = setup_logger()


class LiquidationPlanner:
    """
    Plans liquidations of a single position.

    Args:
        resolver: Price resolver used for every valuation.
        bad_debt_usd_threshold: USD amount under which leftover collateral is dust.
    """

    def __init__(self, resolver: PriceResolver, bad_debt_usd_threshold: DecimalValue):
        self.resolver = resolver
        self.bad_debt_usd_threshold = bad_debt_usd_threshold.rescale(WAD_PRECISION)

    def token_value(self, token: str, amount: int, ctx: ExecutionContext) -> DecimalValue:
        """Reference-token value of a raw token amount, at WAD."""
        feed = self.resolver.resolve(token, ctx)
        return mul_half_up(DecimalValue(amount, feed.asset_decimals), feed.price, WAD_PRECISION)

    def collateral_values(
        self, collaterals: Sequence[CollateralPosition], ctx: ExecutionContext
    ) -> Tuple[DecimalValue, DecimalValue]:
        """Return (weighted collateral, total collateral) at RAY."""
        weighted = DecimalValue.zero(RAY_PRECISION)
        total = DecimalValue.zero(RAY_PRECISION)
        for position in collaterals:
            value = self.token_value(position.token, position.amount, ctx)
            total += value.rescale(RAY_PRECISION)
            weighted += mul_half_up(value, position.liquidation_threshold, RAY_PRECISION)
        return weighted, total

    def total_debt_value(self, debts: Sequence[DebtPosition], ctx: ExecutionContext) -> DecimalValue:
        total = DecimalValue.zero(RAY_PRECISION)
        for position in debts:
            total += self.token_value(position.token, position.amount, ctx).rescale(RAY_PRECISION)
        return total

    def seizure_proportions(
        self, total_collateral: DecimalValue, collaterals: Sequence[CollateralPosition], ctx: ExecutionContext
    ) -> Tuple[DecimalValue, DecimalValue]:
        """
        Value-weighted liquidation threshold and bonus of the collateral, in BPS.

        The first is the share of weighted collateral removed per unit of debt
        repaid, the second is the minimum bonus offered to the liquidator.
        """
        proportion_seized = DecimalValue.zero(BPS_PRECISION)
        weighted_bonus = DecimalValue.zero(BPS_PRECISION)
        if total_collateral.is_zero():
            return proportion_seized, weighted_bonus

        for position in collaterals:
            value = self.token_value(position.token, position.amount, ctx)
            fraction = div_half_up(value, total_collateral, RAY_PRECISION).rescale(BPS_PRECISION)
            proportion_seized += mul_half_up(fraction, position.liquidation_threshold, RAY_PRECISION).rescale(BPS_PRECISION)
            weighted_bonus += mul_half_up(fraction, position.liquidation_bonus, RAY_PRECISION).rescale(BPS_PRECISION)
        return proportion_seized, weighted_bonus

    def build_inputs(
        self, collaterals: Sequence[CollateralPosition], debts: Sequence[DebtPosition], ctx: ExecutionContext
    ) -> LiquidationInputs:
        """
        Aggregate a position into solver inputs.

        Raises:
            PositionNotLiquidatable: If the health factor is not below 1.0.
        """
        weighted, total = self.collateral_values(collaterals, ctx)
        debt = self.total_debt_value(debts, ctx)
        current_health_factor = health_factor(weighted, debt)

        if current_health_factor >= DecimalValue.one(RAY_PRECISION):
            raise PositionNotLiquidatable(f"Health factor {current_health_factor} is not below 1")

        proportion_seized, min_bonus = self.seizure_proportions(total, collaterals, ctx)
        return LiquidationInputs(
            total_collateral_value=total,
            weighted_collateral_value=weighted,
            proportion_seized=proportion_seized,
            min_bonus=min_bonus,
            total_debt_value=debt,
            current_health_factor=current_health_factor,
        )

    def liquidation_amounts(
        self, inputs: LiquidationInputs, debt_payment: Optional[DecimalValue] = None
    ) -> Tuple[DecimalValue, DecimalValue, DecimalValue, DecimalValue]:
        """
        Size the liquidation, capped by the liquidator's payment when given.

        Returns:
            (debt to repay, max collateral seized, bonus, resulting health factor)
            with values at RAY and the bonus in BPS.
        """
        outcome = estimate_liquidation(inputs)
        if debt_payment is not None and debt_payment.rescale(RAY_PRECISION) < outcome.debt_to_repay:
            outcome = simulate_liquidation(
                inputs.weighted_collateral_value,
                inputs.proportion_seized,
                outcome.bonus_rate,
                inputs.total_debt_value,
                debt_payment.rescale(RAY_PRECISION),
            )

        debt_to_repay = outcome.debt_to_repay
        max_collateral_seized = mul_half_up(debt_to_repay, one_plus(outcome.bonus_rate), RAY_PRECISION)
        return debt_to_repay, max_collateral_seized, outcome.bonus_rate, outcome.resulting_health_factor

    def seized_collateral(
        self,
        collaterals: Sequence[CollateralPosition],
        total_collateral: DecimalValue,
        debt_to_repay: DecimalValue,
        bonus: DecimalValue,
        ctx: ExecutionContext,
    ) -> List[SeizedCollateral]:
        """
        Split the repaid debt across collateral assets in proportion to their value.

        Each share is converted to token units, grown by the bonus and capped at
        the position amount. The protocol fee is the bonus part times the
        asset's liquidation fee.
        """
        seized = []
        if total_collateral.is_zero():
            return seized

        for position in collaterals:
            feed = self.resolver.resolve(position.token, ctx)
            value = self.token_value(position.token, position.amount, ctx)

            proportion = div_half_up(value, total_collateral, RAY_PRECISION)
            seized_value = mul_half_up(proportion, debt_to_repay, RAY_PRECISION).rescale(WAD_PRECISION)
            seized_units = div_half_up(seized_value, feed.price, RAY_PRECISION).rescale(feed.asset_decimals)

            with_bonus = mul_half_up(seized_units, one_plus(bonus), RAY_PRECISION).rescale(feed.asset_decimals)
            protocol_fee = mul_half_up(with_bonus - seized_units, position.liquidation_fee, RAY_PRECISION).rescale(
                feed.asset_decimals
            )
            seized.append(
                SeizedCollateral(
                    token=position.token,
                    amount=min(with_bonus.raw, position.amount),
                    protocol_fee=protocol_fee,
                )
            )
        return seized

    def has_bad_debt(
        self, remaining_debt: DecimalValue, remaining_collateral: DecimalValue, ctx: ExecutionContext
    ) -> bool:
        """
        Whether a position is left with debt that cannot be liquidated further.

        True when debt exceeds collateral, the collateral is worth at most the
        dust threshold in USD and the debt at least that much.
        """
        reference_usd = self.resolver.reference_usd_price(ctx)
        debt_usd = mul_half_up(remaining_debt, reference_usd, WAD_PRECISION)
        collateral_usd = mul_half_up(remaining_collateral, reference_usd, WAD_PRECISION)

        return (
            debt_usd > collateral_usd
            and collateral_usd <= self.bad_debt_usd_threshold
            and debt_usd >= self.bad_debt_usd_threshold
        )

    def plan(
        self,
        collaterals: Sequence[CollateralPosition],
        debts: Sequence[DebtPosition],
        ctx: ExecutionContext,
        debt_payment: Optional[DecimalValue] = None,
    ) -> LiquidationPlan:
        """
        Plan a liquidation of a position.

        Prices must be safe: unsafe pricing is switched off on the context, and
        a context that allowed it has its cached prices dropped first.

        Args:
            collaterals: Supplied assets with accrued amounts.
            debts: Borrowed assets with accrued amounts.
            ctx: Execution context of the triggering call.
            debt_payment: Reference-token value the liquidator offers, if capped.

        Raises:
            ReentrancyError: If a flash loan is in progress.
            PositionNotLiquidatable: If the position is healthy.
            UnsafePrice: If a price cannot be reconciled.
        """
        ctx.require_not_reentrant()
        if ctx.allow_unsafe_price:
            ctx.invalidate_prices()
            ctx.allow_unsafe_price = False

        inputs = self.build_inputs(collaterals, debts, ctx)
        debt_to_repay, max_collateral_seized, bonus, resulting_health_factor = self.liquidation_amounts(
            inputs, debt_payment
        )
        seized = self.seized_collateral(collaterals, inputs.total_collateral_value, debt_to_repay, bonus, ctx)

        seized_value = DecimalValue.zero(RAY_PRECISION)
        for item in seized:
            seized_value += self.token_value(item.token, item.amount, ctx).rescale(RAY_PRECISION)

        total_debt = inputs.total_debt_value
        total_collateral = inputs.total_collateral_value
        remaining_debt = total_debt - debt_to_repay if total_debt > debt_to_repay else DecimalValue.zero(RAY_PRECISION)
        remaining_collateral = (
            total_collateral - seized_value if total_collateral > seized_value else DecimalValue.zero(RAY_PRECISION)
        )

        refund_value = DecimalValue.zero(RAY_PRECISION)
        if debt_payment is not None and debt_payment.rescale(RAY_PRECISION) > debt_to_repay:
            refund_value = debt_payment.rescale(RAY_PRECISION) - debt_to_repay

        bad_debt = self.has_bad_debt(remaining_debt, remaining_collateral, ctx)
        logger.info(
            "LiquidationPlanner: hf %s repay %s bonus %s seized value %s bad debt %s",
            inputs.current_health_factor, debt_to_repay, bonus, seized_value, bad_debt,
        )

        return LiquidationPlan(
            debt_to_repay=debt_to_repay,
            max_collateral_seized=max_collateral_seized,
            bonus_rate=bonus,
            health_factor=inputs.current_health_factor,
            resulting_health_factor=resulting_health_factor,
            refund_value=refund_value,
            bad_debt=bad_debt,
            seized=seized,
        )
