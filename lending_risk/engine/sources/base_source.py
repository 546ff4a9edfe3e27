"""
Capability interfaces for the external price sources the resolver reads.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

from lending_risk.engine.models import AggregatorRound, PriceProviderConfig


class PriceAggregator(ABC):
    """Off-chain price aggregator fed by submitted rounds."""

    @abstractmethod
    def is_paused(self) -> bool:
        """Whether the aggregator is paused."""

    @abstractmethod
    def latest_round(self, base_ticker: str, quote_ticker: str) -> Optional[AggregatorRound]:
        """Latest round for a ticker pair, or None when the pair has no submissions."""


class ExchangePool(ABC):
    """Exchange pool exposing time-weighted safe prices and reserves."""

    @abstractmethod
    def is_active(self, pair_id: Optional[int] = None) -> bool:
        """Whether the pool is in an active trading state."""

    @abstractmethod
    def get_safe_price(
        self, token_in: str, amount_in: int, token_out: str, offset_seconds: int, pair_id: Optional[int] = None
    ) -> Tuple[str, int]:
        """Time-weighted output (token, amount) for amount_in over the offset window."""

    @abstractmethod
    def get_reserves_and_total_supply(self) -> Tuple[int, int, int]:
        """Raw (first reserve, second reserve, LP supply)."""


class ExchangeRateSource(ABC):
    """Liquid staking or wrapper contract reporting a share-to-underlying rate."""

    @abstractmethod
    def get_exchange_rate(self) -> int:
        """Raw exchange rate at the derived token's decimals."""


class PriceSources(ABC):
    """Directory handing the resolver the source objects for a provider."""

    @abstractmethod
    def aggregator(self) -> PriceAggregator:
        """The price aggregator shared by every provider."""

    @abstractmethod
    def pool_for(self, provider: PriceProviderConfig) -> ExchangePool:
        """Exchange pool behind a SAFE, MIX or LP provider."""

    @abstractmethod
    def rate_source_for(self, provider: PriceProviderConfig) -> ExchangeRateSource:
        """Exchange rate source behind a DERIVED provider."""
