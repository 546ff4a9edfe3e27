from typing import Dict, Optional, Tuple

import pytest
from dotenv import load_dotenv

from lending_risk.engine.config_loader import MarketConfig, load_engine_config
from lending_risk.engine.constants import WAD
from lending_risk.engine.context import ExecutionContext, ProtocolState
from lending_risk.engine.fixed_point import DecimalValue
from lending_risk.engine.liquidation import LiquidationPlanner
from lending_risk.engine.models import AggregatorRound, ExchangeSource, PricingMethod, ProviderKind
from lending_risk.engine.oracle import PriceResolver
from lending_risk.engine.provider_registry import PriceProviderRegistry
from lending_risk.engine.risk_engine import RiskEngine
from lending_risk.engine.sources.base_source import (
    ExchangePool,
    ExchangeRateSource,
    PriceAggregator,
    PriceSources,
)

TEST_MARKET = "mainnet"
NOW = 1_700_000_000

REFERENCE = "EGLD"
WEGLD = "WEGLD-bd4d79"
USDC = "USDC-c76f1f"
MEX = "MEX-455c57"
XEGLD = "XEGLD-e413ed"
LP = "EGLDUSDC-594e5e"

MEX_POOL = "0x2a3B4c5D6e7F8091A2b3C4d5E6f708192A3b4C5d"
XEGLD_STAKING = "0x7c8D9e0F1a2B3c4D5e6F708192a3B4c5D6e7F809"
LP_POOL = "0x9e0F1a2B3c4D5e6F708192A3b4C5d6E7f8091a2B"


class FakeAggregator(PriceAggregator):
    def __init__(self, prices_usd: Dict[str, int], timestamp: int = NOW - 60):
        self.paused = False
        self.rounds: Dict[Tuple[str, str], AggregatorRound] = {
            (ticker, "USD"): AggregatorRound(round_id=1, timestamp=timestamp, price=price)
            for ticker, price in prices_usd.items()
        }
        self.calls = 0

    def is_paused(self) -> bool:
        return self.paused

    def latest_round(self, base_ticker: str, quote_ticker: str) -> Optional[AggregatorRound]:
        self.calls += 1
        return self.rounds.get((base_ticker, quote_ticker))

    def set_price(self, ticker: str, price: int, timestamp: int = NOW - 60) -> None:
        self.rounds[(ticker, "USD")] = AggregatorRound(round_id=2, timestamp=timestamp, price=price)


class FakePool(ExchangePool):
    def __init__(self, out_token: str, out_amount: int, reserves: Tuple[int, int, int] = (0, 0, 0)):
        self.active = True
        self.out_token = out_token
        self.out_amount = out_amount
        self.reserves = reserves
        self.requests = []

    def is_active(self, pair_id: Optional[int] = None) -> bool:
        return self.active

    def get_safe_price(self, token_in, amount_in, token_out, offset_seconds, pair_id=None):
        self.requests.append((token_in, amount_in, token_out, offset_seconds, pair_id))
        return self.out_token, self.out_amount

    def get_reserves_and_total_supply(self) -> Tuple[int, int, int]:
        return self.reserves


class FakeRateSource(ExchangeRateSource):
    def __init__(self, rate: int):
        self.rate = rate

    def get_exchange_rate(self) -> int:
        return self.rate


class FakeSources(PriceSources):
    def __init__(self, aggregator: FakeAggregator, pools: Dict[str, FakePool], rates: Dict[str, FakeRateSource]):
        self._aggregator = aggregator
        self.pools = pools
        self.rates = rates

    def aggregator(self) -> PriceAggregator:
        return self._aggregator

    def pool_for(self, provider) -> ExchangePool:
        return self.pools[provider.provider_address]

    def rate_source_for(self, provider) -> ExchangeRateSource:
        return self.rates[provider.provider_address]


@pytest.fixture()
def config() -> MarketConfig:
    load_dotenv(dotenv_path=".env.example")
    return load_engine_config(TEST_MARKET)


@pytest.fixture()
def registry() -> PriceProviderRegistry:
    registry = PriceProviderRegistry()
    registry.register(
        token=USDC,
        base_token=USDC,
        quote_token=USDC,
        provider_address="",
        provider_kind=ProviderKind.NORMAL,
        exchange_source=ExchangeSource.NONE,
        asset_decimals=6,
        pricing_method=PricingMethod.AGGREGATOR,
        first_tolerance=150,
        last_tolerance=500,
        max_staleness_seconds=900,
    )
    registry.register(
        token=MEX,
        base_token=MEX,
        quote_token=WEGLD,
        provider_address=MEX_POOL,
        provider_kind=ProviderKind.NORMAL,
        exchange_source=ExchangeSource.DEX_PAIR,
        asset_decimals=18,
        pricing_method=PricingMethod.MIX,
        first_tolerance=200,
        last_tolerance=1000,
        max_staleness_seconds=900,
    )
    registry.register(
        token=XEGLD,
        base_token=REFERENCE,
        quote_token=XEGLD,
        provider_address=XEGLD_STAKING,
        provider_kind=ProviderKind.DERIVED,
        exchange_source=ExchangeSource.LIQUID_STAKING,
        asset_decimals=18,
        pricing_method=PricingMethod.NONE,
        first_tolerance=150,
        last_tolerance=500,
        max_staleness_seconds=900,
    )
    registry.register(
        token=LP,
        base_token=WEGLD,
        quote_token=USDC,
        provider_address=LP_POOL,
        provider_kind=ProviderKind.LP,
        exchange_source=ExchangeSource.DEX_PAIR,
        asset_decimals=18,
        pricing_method=PricingMethod.NONE,
        first_tolerance=200,
        last_tolerance=1000,
        max_staleness_seconds=900,
    )
    return registry


@pytest.fixture()
def aggregator() -> FakeAggregator:
    # EGLD = 40 USD, USDC = 1 USD, MEX = 0.004 USD
    return FakeAggregator({"EGLD": 40 * WAD, "USDC": WAD, "MEX": 4 * WAD // 1000})


@pytest.fixture()
def sources(aggregator) -> FakeSources:
    pools = {
        # one MEX quotes 0.0001 WEGLD
        MEX_POOL: FakePool(out_token=WEGLD, out_amount=10**14),
        # 1000 WEGLD, 40000 USDC, 100 LP
        LP_POOL: FakePool(out_token=USDC, out_amount=0, reserves=(1000 * WAD, 40_000 * 10**6, 100 * WAD)),
    }
    rates = {XEGLD_STAKING: FakeRateSource(11 * WAD // 10)}
    return FakeSources(aggregator, pools, rates)


@pytest.fixture()
def resolver(registry, sources) -> PriceResolver:
    return PriceResolver(
        registry=registry,
        sources=sources,
        reference_token=REFERENCE,
        reference_decimals=18,
        reference_aliases=[WEGLD],
        default_max_staleness_seconds=900,
    )


@pytest.fixture()
def state() -> ProtocolState:
    return ProtocolState()


@pytest.fixture()
def ctx(state) -> ExecutionContext:
    return ExecutionContext(state, now=NOW)


@pytest.fixture()
def planner(resolver) -> LiquidationPlanner:
    return LiquidationPlanner(resolver, DecimalValue.from_units(5, 18))


@pytest.fixture()
def engine(resolver, planner, state) -> RiskEngine:
    return RiskEngine(resolver, planner, state=state, clock=lambda: NOW)
