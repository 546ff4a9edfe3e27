"""
Tests for liquidation planning.
"""

import pytest

from conftest import MEX, MEX_POOL, USDC, XEGLD

from lending_risk.engine.constants import RAY_PRECISION
from lending_risk.engine.exceptions import PositionNotLiquidatable, UnsafePrice
from lending_risk.engine.fixed_point import DecimalValue, bps, div_half_up, mul_half_up
from lending_risk.engine.models import CollateralPosition, DebtPosition
from lending_risk.engine.risk_math import (
    PRIMARY_TARGET_HEALTH_FACTOR,
    liquidation_bonus,
    one_plus,
    simulate_liquidation,
)


def ray_of(text: str) -> DecimalValue:
    return DecimalValue.parse(text, RAY_PRECISION)


@pytest.fixture()
def collaterals():
    # 1000 USDC = 25 EGLD, weighted 20 EGLD
    return [
        CollateralPosition(
            token=USDC,
            amount=1000 * 10**6,
            liquidation_threshold=bps(8000),
            liquidation_bonus=bps(500),
            liquidation_fee=bps(1000),
        )
    ]


@pytest.fixture()
def debts():
    # 20 XEGLD = 22 EGLD
    return [DebtPosition(token=XEGLD, amount=20 * 10**18)]


def test_collateral_and_debt_values(planner, ctx, collaterals, debts):
    weighted, total = planner.collateral_values(collaterals, ctx)
    assert total == ray_of("25")
    assert weighted == ray_of("20")
    assert planner.total_debt_value(debts, ctx) == ray_of("22")


def test_seizure_proportions_are_value_weighted(planner, ctx, collaterals):
    collaterals.append(
        CollateralPosition(
            token=XEGLD,
            amount=25 * 10**18 // 11 * 10,
            liquidation_threshold=bps(7000),
            liquidation_bonus=bps(1000),
            liquidation_fee=bps(1000),
        )
    )
    _, total = planner.collateral_values(collaterals, ctx)
    proportion, bonus = planner.seizure_proportions(total, collaterals, ctx)
    # two halves of roughly equal value
    assert proportion == bps(7500)
    assert bonus == bps(750)


def test_healthy_position_is_not_liquidatable(planner, ctx, collaterals):
    with pytest.raises(PositionNotLiquidatable):
        planner.build_inputs(collaterals, [DebtPosition(token=XEGLD, amount=10**18)], ctx)


def test_build_inputs(planner, ctx, collaterals, debts):
    inputs = planner.build_inputs(collaterals, debts, ctx)
    assert inputs.current_health_factor == div_half_up(ray_of("20"), ray_of("22"), RAY_PRECISION)
    assert inputs.proportion_seized == bps(8000)
    assert inputs.min_bonus == bps(500)


def test_plan_restores_position(planner, ctx, collaterals, debts):
    plan = planner.plan(collaterals, debts, ctx)

    assert ctx.allow_unsafe_price is False
    assert plan.resulting_health_factor >= DecimalValue.one(RAY_PRECISION)
    assert plan.debt_to_repay <= div_half_up(ray_of("25"), one_plus(plan.bonus_rate), RAY_PRECISION)
    assert plan.max_collateral_seized == mul_half_up(plan.debt_to_repay, one_plus(plan.bonus_rate), RAY_PRECISION)
    assert not plan.bad_debt
    assert plan.refund_value.is_zero()

    (seized,) = plan.seized
    assert seized.token == USDC
    assert 0 < seized.amount <= collaterals[0].amount
    assert seized.protocol_fee > DecimalValue.zero(6)


def test_plan_bonus_matches_primary_target(planner, ctx, collaterals, debts):
    inputs = planner.build_inputs(collaterals, debts, ctx)
    plan = planner.plan(collaterals, debts, ctx)
    assert plan.bonus_rate == liquidation_bonus(inputs.current_health_factor, PRIMARY_TARGET_HEALTH_FACTOR, bps(500))


def test_debt_payment_caps_repayment(planner, ctx, collaterals, debts):
    plan = planner.plan(collaterals, debts, ctx, debt_payment=ray_of("5"))
    assert plan.debt_to_repay == ray_of("5")
    assert plan.refund_value.is_zero()

    uncapped = planner.plan(collaterals, debts, ctx)
    overpaid = planner.plan(collaterals, debts, ctx, debt_payment=ray_of("100"))
    assert overpaid.debt_to_repay == uncapped.debt_to_repay
    assert overpaid.refund_value == ray_of("100") - uncapped.debt_to_repay


def test_seized_collateral_capped_at_position(planner, ctx, collaterals):
    seized = planner.seized_collateral(collaterals, ray_of("25"), ray_of("25"), bps(1500), ctx)
    assert seized[0].amount == collaterals[0].amount


def test_bad_debt_detection(planner, ctx):
    # EGLD is 40 USD, threshold 5 USD
    assert planner.has_bad_debt(ray_of("1"), ray_of("0.1"), ctx)
    assert not planner.has_bad_debt(ray_of("1"), ray_of("0.2"), ctx)
    assert not planner.has_bad_debt(ray_of("0.1"), ray_of("0.01"), ctx)


def test_capped_repayment_reports_its_own_health_factor(planner, ctx, collaterals, debts):
    inputs = planner.build_inputs(collaterals, debts, ctx)
    uncapped = planner.plan(collaterals, debts, ctx)
    capped = planner.plan(collaterals, debts, ctx, debt_payment=ray_of("1"))

    assert capped.debt_to_repay == ray_of("1")
    assert capped.health_factor < capped.resulting_health_factor < uncapped.resulting_health_factor
    expected = simulate_liquidation(
        inputs.weighted_collateral_value, inputs.proportion_seized, capped.bonus_rate, inputs.total_debt_value, ray_of("1")
    )
    assert capped.resulting_health_factor == expected.resulting_health_factor


def test_plan_drops_prices_cached_by_a_lenient_context(planner, engine, ctx, sources, debts):
    # pool quotes MEX 20% above the aggregator, past the 10% outer band
    sources.pools[MEX_POOL].out_amount = 12 * 10**13
    collaterals = [
        CollateralPosition(
            token=MEX,
            amount=10**24,
            liquidation_threshold=bps(5000),
            liquidation_bonus=bps(1000),
            liquidation_fee=bps(1000),
        )
    ]
    assert planner.resolver.resolve(MEX, ctx).price == DecimalValue.parse("0.00011", 18)

    with pytest.raises(UnsafePrice):
        planner.plan(collaterals, debts, ctx)
    assert ctx.allow_unsafe_price is False

    view_ctx = engine.new_context()
    engine.price_feed(MEX, view_ctx)
    with pytest.raises(UnsafePrice):
        engine.plan(collaterals, debts, ctx=view_ctx)


def test_plan_without_collateral_value(planner, ctx, debts):
    empty = [
        CollateralPosition(
            token=USDC,
            amount=0,
            liquidation_threshold=bps(8000),
            liquidation_bonus=bps(500),
            liquidation_fee=bps(1000),
        )
    ]
    plan = planner.plan(empty, debts, ctx)

    assert plan.seized == []
    assert plan.debt_to_repay.is_zero()
    assert plan.bad_debt
