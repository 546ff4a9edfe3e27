"""
Price resolver.

Resolves a token to a PriceFeed in reference-token terms at WAD, dispatching
on the provider kind (NORMAL, DERIVED, LP) and, for NORMAL providers, on the
pricing method (AGGREGATOR, SAFE, MIX). Independent prices are reconciled
with the anchor tolerance bands of the provider.
"""

import math
from typing import Iterable, Optional

from .constants import (
    RAY_PRECISION,
    SAFE_PRICE_OFFSET_SECONDS,
    TOKEN_TICKER_SEPARATOR,
    USD_TICKER,
    WAD_PRECISION,
)
from .context import ExecutionContext
from .exceptions import (
    AggregatorPaused,
    NoPriceAvailable,
    PoolNotActive,
    StalePrice,
    UnsafePrice,
    UnsupportedExchangeSource,
)
from .fixed_point import DecimalValue, average, div_half_up, mul_half_up
from .logging_config import setup_logger
from .models import ExchangeSource, PriceFeed, PriceProviderConfig, PricingMethod, ProviderKind, ToleranceBounds
from .provider_registry import PriceProviderRegistry
from .sources.base_source import PriceSources

logger = setup_logger()


def sqrt_wad(value: DecimalValue) -> DecimalValue:
    """Integer square root of a non-negative value, at WAD."""
    value = value.rescale(WAD_PRECISION).to_unsigned()
    return DecimalValue(math.isqrt(value.raw * 10**WAD_PRECISION), WAD_PRECISION)


def fair_lp_price(
    first_reserve: DecimalValue,
    second_reserve: DecimalValue,
    total_supply: DecimalValue,
    first_price: DecimalValue,
    second_price: DecimalValue,
) -> DecimalValue:
    """
    LP token price from the pool invariant rather than its spot reserves.

    With k = r0 * r1 the reserves at external prices p0, p1 would be
    x' = sqrt(k * p1 / p0) and y' = sqrt(k * p0 / p1). The LP price is
    (x' * p0 + y' * p1) / supply, all at WAD.
    """
    k = mul_half_up(first_reserve, second_reserve, WAD_PRECISION)
    fair_first = sqrt_wad(div_half_up(mul_half_up(k, second_price, WAD_PRECISION), first_price, WAD_PRECISION))
    fair_second = sqrt_wad(div_half_up(mul_half_up(k, first_price, WAD_PRECISION), second_price, WAD_PRECISION))
    fair_value = mul_half_up(fair_first, first_price, WAD_PRECISION) + mul_half_up(fair_second, second_price, WAD_PRECISION)
    return div_half_up(fair_value, total_supply, WAD_PRECISION)


def reconcile_prices(
    aggregator_price: DecimalValue,
    safe_price: DecimalValue,
    tolerance: ToleranceBounds,
    allow_unsafe_price: bool,
) -> DecimalValue:
    """
    Pick a price from an aggregator quote and an on-chain safe quote.

    Returns the safe price when safe / aggregator sits in the first band, the
    average when it sits in the last band. Outside both, the average is only
    returned when unsafe prices are allowed.

    Raises:
        UnsafePrice: If the prices diverge past the last band and unsafe prices are not allowed.
    """
    ratio = div_half_up(safe_price, aggregator_price, RAY_PRECISION).rescale(tolerance.first_upper.precision)

    if tolerance.first_lower <= ratio <= tolerance.first_upper:
        return safe_price

    mid_price = average(aggregator_price, safe_price)
    if tolerance.last_lower <= ratio <= tolerance.last_upper:
        return mid_price

    if not allow_unsafe_price:
        raise UnsafePrice(f"Safe price {safe_price} deviates from aggregator price {aggregator_price} (ratio {ratio})")

    logger.warning(
        "reconcile_prices: ratio %s outside tolerance, using average %s of aggregator %s and safe %s",
        ratio, mid_price, aggregator_price, safe_price,
    )
    return mid_price


class PriceResolver:
    """
    Resolves token prices in reference-token terms.

    Args:
        registry: Price provider configurations.
        sources: Directory of aggregator, pool and exchange rate sources.
        reference_token: Token every price is expressed in.
        reference_decimals: Decimals of the reference token.
        reference_aliases: Other identifiers of the reference token, e.g. its wrapped form.
        default_max_staleness_seconds: Staleness bound for the reference token's own USD price.
    """

    def __init__(
        self,
        registry: PriceProviderRegistry,
        sources: PriceSources,
        reference_token: str,
        reference_decimals: int,
        reference_aliases: Optional[Iterable[str]] = None,
        default_max_staleness_seconds: int = 900,
    ):
        self.registry = registry
        self.sources = sources
        self.reference_token = reference_token
        self.reference_decimals = reference_decimals
        self.reference_ticker = self._split_ticker(reference_token)
        self.reference_aliases = set(reference_aliases or [])
        self.default_max_staleness_seconds = default_max_staleness_seconds

    @staticmethod
    def _split_ticker(token: str) -> str:
        return token.split(TOKEN_TICKER_SEPARATOR)[0]

    def ticker(self, token: str) -> str:
        """Aggregator ticker for a token identifier, with reference aliases folded in."""
        if self.is_reference(token):
            return self.reference_ticker
        return self._split_ticker(token)

    def is_reference(self, token: str) -> bool:
        return token == self.reference_token or token in self.reference_aliases

    def reference_feed(self) -> PriceFeed:
        return PriceFeed(asset_decimals=self.reference_decimals, price=DecimalValue.one(WAD_PRECISION))

    def resolve(self, token: str, ctx: ExecutionContext) -> PriceFeed:
        """
        Resolve a token's price feed, using the context cache.

        Raises:
            PriceNotFound: If the token has no price provider.
            UnsafePrice: If reconciliation fails and ctx disallows unsafe prices.
        """
        if self.is_reference(token):
            return self.reference_feed()

        cached = ctx.cached_price(token)
        if cached is not None:
            return cached

        provider = self.registry.get(token)

        if provider.provider_kind == ProviderKind.NORMAL:
            price = self._normal_price(provider, ctx)
        elif provider.provider_kind == ProviderKind.DERIVED:
            price = self._derived_price(provider, ctx, safe_underlying=True)
        elif provider.provider_kind == ProviderKind.LP:
            price = self._lp_price(provider, ctx)
        else:
            raise NoPriceAvailable(f"Unknown provider kind {provider.provider_kind} for {token}")

        feed = PriceFeed(asset_decimals=provider.asset_decimals, price=price)
        ctx.store_price(token, feed)
        logger.debug("PriceResolver: resolved %s to %s", token, price)
        return feed

    def _normal_price(self, provider: PriceProviderConfig, ctx: ExecutionContext) -> DecimalValue:
        method = provider.pricing_method
        if method == PricingMethod.AGGREGATOR:
            return self.aggregator_price(provider.token, provider.max_staleness_seconds, ctx)
        if method == PricingMethod.SAFE:
            return self.safe_price(provider, ctx)
        if method == PricingMethod.MIX:
            aggregator_price = self.aggregator_price(provider.token, provider.max_staleness_seconds, ctx)
            safe_price = self.safe_price(provider, ctx)
            return reconcile_prices(aggregator_price, safe_price, provider.tolerance, ctx.allow_unsafe_price)
        raise NoPriceAvailable(f"No pricing method configured for {provider.token}")

    def _aggregator_usd_price(self, token: str, max_staleness_seconds: int, ctx: ExecutionContext) -> DecimalValue:
        aggregator = self.sources.aggregator()
        if aggregator.is_paused():
            raise AggregatorPaused("Price aggregator is paused")

        ticker = self.ticker(token)
        latest = aggregator.latest_round(ticker, USD_TICKER)
        if latest is None:
            raise NoPriceAvailable(f"No aggregator round for {ticker}/{USD_TICKER}")

        age = ctx.now - latest.timestamp
        if age >= max_staleness_seconds:
            raise StalePrice(
                f"Aggregator round {latest.round_id} for {ticker} is {age}s old, limit {max_staleness_seconds}s"
            )
        return DecimalValue(latest.price, latest.decimals).rescale(WAD_PRECISION)

    def reference_usd_price(self, ctx: ExecutionContext) -> DecimalValue:
        """USD price of the reference token, cached on the context."""
        if ctx.reference_usd_price is None:
            ctx.reference_usd_price = self._aggregator_usd_price(
                self.reference_token, self.default_max_staleness_seconds, ctx
            )
        return ctx.reference_usd_price

    def aggregator_price(self, token: str, max_staleness_seconds: int, ctx: ExecutionContext) -> DecimalValue:
        """Aggregator USD price of a token divided by the reference token's USD price."""
        if self.is_reference(token):
            return DecimalValue.one(WAD_PRECISION)
        token_usd = self._aggregator_usd_price(token, max_staleness_seconds, ctx)
        reference_usd = self.reference_usd_price(ctx)
        return div_half_up(token_usd, reference_usd, RAY_PRECISION).rescale(WAD_PRECISION)

    def safe_price(self, provider: PriceProviderConfig, ctx: ExecutionContext) -> DecimalValue:
        """
        Time-weighted exchange price of one whole token, in reference terms.

        The pool quotes the paired token. When that token is not the reference
        token the quote is valued at its own resolved price.
        """
        pool = self.sources.pool_for(provider)
        if not pool.is_active(provider.provider_pair_id):
            raise PoolNotActive(f"Pool {provider.provider_address} for {provider.token} is not active")

        token_out = provider.base_token if provider.token == provider.quote_token else provider.quote_token
        out_token, out_amount = pool.get_safe_price(
            provider.token,
            10**provider.asset_decimals,
            token_out,
            SAFE_PRICE_OFFSET_SECONDS,
            provider.provider_pair_id,
        )

        if self.is_reference(out_token):
            return DecimalValue(out_amount, self.reference_decimals).rescale(WAD_PRECISION)

        out_feed = self.resolve(out_token, ctx)
        amount = DecimalValue(out_amount, out_feed.asset_decimals)
        return mul_half_up(amount, out_feed.price, RAY_PRECISION).rescale(WAD_PRECISION)

    def _derived_price(self, provider: PriceProviderConfig, ctx: ExecutionContext, safe_underlying: bool) -> DecimalValue:
        rate = DecimalValue(self.sources.rate_source_for(provider).get_exchange_rate(), provider.asset_decimals)
        underlying = provider.base_token

        if self.is_reference(underlying):
            underlying_price = DecimalValue.one(WAD_PRECISION)
        elif safe_underlying:
            underlying_price = self.resolve(underlying, ctx).price
        else:
            underlying_price = self.aggregator_price(underlying, provider.max_staleness_seconds, ctx)

        return mul_half_up(rate, underlying_price, RAY_PRECISION).rescale(WAD_PRECISION)

    def _component_aggregator_price(self, token: str, ctx: ExecutionContext) -> DecimalValue:
        if self.is_reference(token):
            return DecimalValue.one(WAD_PRECISION)
        provider = self.registry.get(token)
        if provider.provider_kind == ProviderKind.DERIVED:
            return self._derived_price(provider, ctx, safe_underlying=False)
        return self.aggregator_price(token, provider.max_staleness_seconds, ctx)

    def _lp_price(self, provider: PriceProviderConfig, ctx: ExecutionContext) -> DecimalValue:
        if provider.exchange_source != ExchangeSource.DEX_PAIR:
            raise UnsupportedExchangeSource(f"LP pricing for {provider.token} needs a DEX_PAIR source")

        pool = self.sources.pool_for(provider)
        first_raw, second_raw, supply_raw = pool.get_reserves_and_total_supply()

        first_feed = self.resolve(provider.base_token, ctx)
        second_feed = self.resolve(provider.quote_token, ctx)

        first_reserve = DecimalValue(first_raw, first_feed.asset_decimals).rescale(WAD_PRECISION)
        second_reserve = DecimalValue(second_raw, second_feed.asset_decimals).rescale(WAD_PRECISION)
        total_supply = DecimalValue(supply_raw, provider.asset_decimals).rescale(WAD_PRECISION)

        safe_lp_price = fair_lp_price(first_reserve, second_reserve, total_supply, first_feed.price, second_feed.price)
        aggregator_lp_price = fair_lp_price(
            first_reserve,
            second_reserve,
            total_supply,
            self._component_aggregator_price(provider.base_token, ctx),
            self._component_aggregator_price(provider.quote_token, ctx),
        )
        return reconcile_prices(aggregator_lp_price, safe_lp_price, provider.tolerance, ctx.allow_unsafe_price)

    def usd_price(self, token: str, ctx: ExecutionContext) -> DecimalValue:
        """USD price of a token at WAD."""
        price = self.resolve(token, ctx).price
        return mul_half_up(price, self.reference_usd_price(ctx), WAD_PRECISION)
