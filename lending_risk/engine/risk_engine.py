"""
Risk engine wiring: one resolver, one planner and the shared protocol state per market.
"""

import time
from typing import Any, Callable, Optional, Sequence

from .config_loader import MarketConfig
from .context import ExecutionContext, ProtocolState
from .fixed_point import DecimalValue
from .flash_loan import execute_flash_loan
from .liquidation import LiquidationPlanner
from .logging_config import setup_logger
from .models import CollateralPosition, DebtPosition, LiquidationInputs, LiquidationOutcome, LiquidationPlan, PriceFeed
from .notifications import post_bad_debt_notification
from .oracle import PriceResolver
from .risk_math import estimate_liquidation

logger = setup_logger()


class RiskEngine:
    """
    Entry points for pricing and liquidation, each opening its own ExecutionContext.

    Args:
        resolver: Price resolver for the market.
        planner: Liquidation planner sharing the resolver.
        state: Shared protocol state. A fresh one is created when omitted.
        config: Market config, used for notifications.
        clock: Source of the current unix time for new contexts.
    """

    def __init__(
        self,
        resolver: PriceResolver,
        planner: LiquidationPlanner,
        state: Optional[ProtocolState] = None,
        config: Optional[MarketConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.resolver = resolver
        self.planner = planner
        self.state = state or ProtocolState()
        self.config = config
        self.clock = clock

    @classmethod
    def from_config(cls, config: MarketConfig) -> "RiskEngine":
        resolver = PriceResolver(
            registry=config.build_provider_registry(),
            sources=config.build_price_sources(),
            reference_token=config.REFERENCE_TOKEN,
            reference_decimals=int(config.REFERENCE_DECIMALS),
            reference_aliases=config.REFERENCE_ALIASES,
            default_max_staleness_seconds=int(config.DEFAULT_MAX_STALENESS_SECONDS),
        )
        planner = LiquidationPlanner(resolver, config.BAD_DEBT_USD_THRESHOLD)
        logger.info(
            "RiskEngine: initialized market %s with %s price providers",
            config.MARKET_NAME, len(resolver.registry.tokens()),
        )
        return cls(resolver, planner, config=config)

    def new_context(self, allow_unsafe_price: bool = True, now: Optional[int] = None) -> ExecutionContext:
        if now is None:
            now = int(self.clock())
        return ExecutionContext(self.state, now=now, allow_unsafe_price=allow_unsafe_price)

    def price_feed(self, token: str, ctx: Optional[ExecutionContext] = None) -> PriceFeed:
        return self.resolver.resolve(token, ctx or self.new_context())

    def usd_price(self, token: str, ctx: Optional[ExecutionContext] = None) -> DecimalValue:
        return self.resolver.usd_price(token, ctx or self.new_context())

    def estimate(self, inputs: LiquidationInputs) -> LiquidationOutcome:
        return estimate_liquidation(inputs)

    def plan(
        self,
        collaterals: Sequence[CollateralPosition],
        debts: Sequence[DebtPosition],
        debt_payment: Optional[DecimalValue] = None,
        ctx: Optional[ExecutionContext] = None,
    ) -> LiquidationPlan:
        plan = self.planner.plan(collaterals, debts, ctx or self.new_context(allow_unsafe_price=False), debt_payment)
        if plan.bad_debt:
            post_bad_debt_notification(plan, self.config)
        return plan

    def flash_loan(self, receiver: Callable[..., Any], token: str, amount: int, *args: Any) -> Any:
        return execute_flash_loan(self.state, receiver, token, amount, *args)
