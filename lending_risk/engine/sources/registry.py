"""
Exchange source registry.

Maps each ExchangeSource to the web3 class that reads it and the ABI it is
built from, and hands the resolver contract-backed sources per provider.
"""

from typing import Any, Dict, Optional, Tuple

from web3 import Web3

from lending_risk.engine.contracts import create_contract_instance
from lending_risk.engine.exceptions import UnsupportedExchangeSource
from lending_risk.engine.logging_config import setup_logger
from lending_risk.engine.models import ExchangeSource, PriceProviderConfig
from lending_risk.engine.sources.base_source import ExchangePool, ExchangeRateSource, PriceAggregator, PriceSources
from lending_risk.engine.sources.web3_sources import (
    Web3DexMultiPair,
    Web3DexPair,
    Web3LiquidStaking,
    Web3PriceAggregator,
)

logger = setup_logger()

SOURCE_REGISTRY = {
    ExchangeSource.DEX_PAIR: {
        "source_class": Web3DexPair,
        "abi": "pair",
    },
    ExchangeSource.DEX_MULTI_PAIR: {
        "source_class": Web3DexMultiPair,
        "abi": "multi_pair",
    },
    ExchangeSource.LIQUID_STAKING: {
        "source_class": Web3LiquidStaking,
        "abi": "liquid_staking",
    },
}


def get_source_entry(source: ExchangeSource) -> Dict[str, Any]:
    """Return the registry entry for an exchange source."""
    entry = SOURCE_REGISTRY.get(source)
    if not entry:
        raise UnsupportedExchangeSource(f"No source registered for {source.name}")
    return entry


class Web3PriceSources(PriceSources):
    """
    Builds and caches contract-backed sources for each provider address.

    Args:
        w3: Web3 instance for the market.
        aggregator_address: Address of the price aggregator contract.
        abi_paths: ABI file per source kind, keyed like the `abi` entries of
            SOURCE_REGISTRY plus `aggregator`.
    """

    def __init__(self, w3: Web3, aggregator_address: str, abi_paths: Dict[str, str]):
        self.w3 = w3
        self.aggregator_address = aggregator_address
        self.abi_paths = abi_paths
        self._aggregator: Optional[Web3PriceAggregator] = None
        self._sources: Dict[Tuple[ExchangeSource, str], Any] = {}

    def aggregator(self) -> PriceAggregator:
        if self._aggregator is None:
            instance = create_contract_instance(self.aggregator_address, self.abi_paths["aggregator"], self.w3)
            self._aggregator = Web3PriceAggregator(instance)
        return self._aggregator

    def _source_for(self, provider: PriceProviderConfig) -> Any:
        key = (provider.exchange_source, provider.provider_address)
        if key not in self._sources:
            entry = get_source_entry(provider.exchange_source)
            instance = create_contract_instance(provider.provider_address, self.abi_paths[entry["abi"]], self.w3)
            self._sources[key] = entry["source_class"](instance)
            logger.debug(
                "Web3PriceSources: created %s source at %s", provider.exchange_source.name, provider.provider_address
            )
        return self._sources[key]

    def pool_for(self, provider: PriceProviderConfig) -> ExchangePool:
        source = self._source_for(provider)
        if not isinstance(source, ExchangePool):
            raise UnsupportedExchangeSource(f"{provider.exchange_source.name} is not an exchange pool")
        return source

    def rate_source_for(self, provider: PriceProviderConfig) -> ExchangeRateSource:
        source = self._source_for(provider)
        if not isinstance(source, ExchangeRateSource):
            raise UnsupportedExchangeSource(f"{provider.exchange_source.name} has no exchange rate")
        return source
