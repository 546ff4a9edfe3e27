"""
web3 implementations of the price source interfaces.
"""

from typing import Optional, Tuple

from web3.contract import Contract

from lending_risk.engine.exceptions import UnsupportedExchangeSource
from lending_risk.engine.models import AggregatorRound
from lending_risk.engine.sources.base_source import ExchangePool, ExchangeRateSource, PriceAggregator

POOL_STATE_ACTIVE = 1


class Web3PriceAggregator(PriceAggregator):
    def __init__(self, instance: Contract):
        self.instance = instance

    def is_paused(self) -> bool:
        return self.instance.functions.isPaused().call()

    def latest_round(self, base_ticker: str, quote_ticker: str) -> Optional[AggregatorRound]:
        found, round_id, timestamp, price, decimals = self.instance.functions.latestRound(base_ticker, quote_ticker).call()
        if not found:
            return None
        return AggregatorRound(round_id=round_id, timestamp=timestamp, price=price, decimals=decimals)


class Web3DexPair(ExchangePool):
    """Single two-token pair contract."""

    def __init__(self, instance: Contract):
        self.instance = instance

    def is_active(self, pair_id: Optional[int] = None) -> bool:
        return self.instance.functions.state().call() == POOL_STATE_ACTIVE

    def get_safe_price(
        self, token_in: str, amount_in: int, token_out: str, offset_seconds: int, pair_id: Optional[int] = None
    ) -> Tuple[str, int]:
        out_token, out_amount = self.instance.functions.getSafePrice(token_in, amount_in, offset_seconds).call()
        return out_token, out_amount

    def get_reserves_and_total_supply(self) -> Tuple[int, int, int]:
        first_reserve, second_reserve, supply = self.instance.functions.getReservesAndTotalSupply().call()
        return first_reserve, second_reserve, supply


class Web3DexMultiPair(ExchangePool):
    """Router contract holding many pairs addressed by pair id."""

    def __init__(self, instance: Contract):
        self.instance = instance

    def is_active(self, pair_id: Optional[int] = None) -> bool:
        return self.instance.functions.pairState(pair_id).call() == POOL_STATE_ACTIVE

    def get_safe_price(
        self, token_in: str, amount_in: int, token_out: str, offset_seconds: int, pair_id: Optional[int] = None
    ) -> Tuple[str, int]:
        out_amount = self.instance.functions.getSafePrice(pair_id, token_in, amount_in, token_out, offset_seconds).call()
        return token_out, out_amount

    def get_reserves_and_total_supply(self) -> Tuple[int, int, int]:
        raise UnsupportedExchangeSource("Multi-pair pools do not expose LP reserves")


class Web3LiquidStaking(ExchangeRateSource):
    def __init__(self, instance: Contract):
        self.instance = instance

    def get_exchange_rate(self) -> int:
        return self.instance.functions.getExchangeRate().call()
