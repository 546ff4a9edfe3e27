"""
Registry of price provider configurations, one per token.

Providers are created once through register(). Only their tolerance bands can
be edited afterwards.
"""

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Union

from .exceptions import ConfigurationError, PriceNotFound, PriceProviderExists, UnsupportedExchangeSource
from .fixed_point import DecimalValue
from .logging_config import setup_logger
from .models import ExchangeSource, PriceProviderConfig, PricingMethod, ProviderKind
from .risk_math import validate_and_calculate_tolerances

logger = setup_logger()

SAFE_PRICE_SOURCES = (ExchangeSource.DEX_PAIR, ExchangeSource.DEX_MULTI_PAIR)


def _check_source_supports(kind: ProviderKind, method: PricingMethod, source: ExchangeSource, pair_id: Optional[int]) -> None:
    if source == ExchangeSource.DEX_MULTI_PAIR and pair_id is None:
        raise ConfigurationError("DEX_MULTI_PAIR providers need a provider_pair_id")

    if kind == ProviderKind.LP:
        if source != ExchangeSource.DEX_PAIR:
            raise UnsupportedExchangeSource(f"LP providers need a DEX_PAIR source, got {source.name}")
    elif kind == ProviderKind.DERIVED:
        if source != ExchangeSource.LIQUID_STAKING:
            raise UnsupportedExchangeSource(f"DERIVED providers need a LIQUID_STAKING source, got {source.name}")
    elif method in (PricingMethod.SAFE, PricingMethod.MIX) and source not in SAFE_PRICE_SOURCES:
        raise UnsupportedExchangeSource(f"{method.name} pricing needs a DEX source, got {source.name}")


class PriceProviderRegistry:
    """In-memory store of PriceProviderConfig keyed by token."""

    def __init__(self) -> None:
        self._providers: Dict[str, PriceProviderConfig] = {}

    def register(
        self,
        token: str,
        base_token: str,
        quote_token: str,
        provider_address: str,
        provider_kind: ProviderKind,
        exchange_source: ExchangeSource,
        asset_decimals: int,
        pricing_method: PricingMethod,
        first_tolerance: Union[int, DecimalValue],
        last_tolerance: Union[int, DecimalValue],
        max_staleness_seconds: int,
        provider_pair_id: Optional[int] = None,
    ) -> PriceProviderConfig:
        """
        Create the price provider for a token.

        Raises:
            PriceProviderExists: If the token already has a provider.
            UnsupportedExchangeSource: If the source cannot serve the provider kind or method.
            InvalidToleranceError: If the tolerances are out of range.
        """
        if token in self._providers:
            raise PriceProviderExists(f"Price provider already set for {token}")

        _check_source_supports(provider_kind, pricing_method, exchange_source, provider_pair_id)
        if max_staleness_seconds <= 0:
            raise ConfigurationError(f"max_staleness_seconds must be positive for {token}")

        provider = PriceProviderConfig(
            token=token,
            base_token=base_token,
            quote_token=quote_token,
            provider_address=provider_address,
            provider_kind=provider_kind,
            exchange_source=exchange_source,
            asset_decimals=asset_decimals,
            pricing_method=pricing_method,
            tolerance=validate_and_calculate_tolerances(first_tolerance, last_tolerance),
            max_staleness_seconds=max_staleness_seconds,
            provider_pair_id=provider_pair_id,
        )
        self._providers[token] = provider
        logger.info(
            "PriceProviderRegistry: registered %s (%s/%s via %s)",
            token, provider_kind.name, pricing_method.name, exchange_source.name,
        )
        return provider

    def edit_tolerance(
        self, token: str, first_tolerance: Union[int, DecimalValue], last_tolerance: Union[int, DecimalValue]
    ) -> PriceProviderConfig:
        """Replace the tolerance bands of an existing provider."""
        provider = self.get(token)
        updated = replace(provider, tolerance=validate_and_calculate_tolerances(first_tolerance, last_tolerance))
        self._providers[token] = updated
        logger.info("PriceProviderRegistry: updated tolerance for %s", token)
        return updated

    def get(self, token: str) -> PriceProviderConfig:
        provider = self._providers.get(token)
        if provider is None:
            raise PriceNotFound(f"No price provider configured for {token}")
        return provider

    def __contains__(self, token: str) -> bool:
        return token in self._providers

    def tokens(self) -> List[str]:
        return list(self._providers)

    @classmethod
    def from_entries(cls, entries: Iterable[Dict[str, Any]]) -> "PriceProviderRegistry":
        """
        Build a registry from config entries such as the `price_providers` list in config.yaml.

        Enum fields are given by value, e.g. `provider_kind: normal`.
        """
        registry = cls()
        for entry in entries:
            try:
                registry.register(
                    token=entry["token"],
                    base_token=entry.get("base_token", entry["token"]),
                    quote_token=entry.get("quote_token", entry["token"]),
                    provider_address=entry.get("provider_address", ""),
                    provider_kind=ProviderKind(entry.get("provider_kind", "normal")),
                    exchange_source=ExchangeSource(entry.get("exchange_source", "none")),
                    asset_decimals=int(entry["asset_decimals"]),
                    pricing_method=PricingMethod(entry.get("pricing_method", "aggregator")),
                    first_tolerance=int(entry["first_tolerance"]),
                    last_tolerance=int(entry["last_tolerance"]),
                    max_staleness_seconds=int(entry["max_staleness_seconds"]),
                    provider_pair_id=entry.get("provider_pair_id"),
                )
            except (KeyError, ValueError) as exc:
                raise ConfigurationError(f"Invalid price provider entry {entry!r}: {exc}") from exc
        return registry
