"""
Data classes and enums shared by the price resolver and the liquidation engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .constants import WAD_PRECISION
from .fixed_point import DecimalValue


class ProviderKind(Enum):
    """How a token's price is obtained."""

    NORMAL = "normal"
    DERIVED = "derived"
    LP = "lp"


class PricingMethod(Enum):
    """Which sources a NORMAL provider reads."""

    NONE = "none"
    SAFE = "safe"
    AGGREGATOR = "aggregator"
    MIX = "mix"


class ExchangeSource(Enum):
    """External protocol backing a price provider."""

    NONE = "none"
    DEX_PAIR = "dex_pair"
    DEX_MULTI_PAIR = "dex_multi_pair"
    LIQUID_STAKING = "liquid_staking"


@dataclass(frozen=True)
class ToleranceBounds:
    """Anchor tolerance bands, BPS ratios centered on 1.0."""

    first_upper: DecimalValue
    first_lower: DecimalValue
    last_upper: DecimalValue
    last_lower: DecimalValue


@dataclass(frozen=True)
class PriceProviderConfig:
    """Governance-owned description of where a token's price comes from."""

    token: str
    base_token: str
    quote_token: str
    provider_address: str
    provider_kind: ProviderKind
    exchange_source: ExchangeSource
    asset_decimals: int
    pricing_method: PricingMethod
    tolerance: ToleranceBounds
    max_staleness_seconds: int
    provider_pair_id: Optional[int] = None


@dataclass(frozen=True)
class PriceFeed:
    """A resolved price in reference-token terms, at WAD."""

    asset_decimals: int
    price: DecimalValue


@dataclass(frozen=True)
class AggregatorRound:
    """Latest round submitted to the price aggregator."""

    round_id: int
    timestamp: int
    price: int
    decimals: int = WAD_PRECISION


@dataclass(frozen=True)
class LiquidationInputs:
    """Position aggregates feeding the liquidation solver."""

    total_collateral_value: DecimalValue
    weighted_collateral_value: DecimalValue
    proportion_seized: DecimalValue
    min_bonus: DecimalValue
    total_debt_value: DecimalValue
    current_health_factor: DecimalValue


@dataclass(frozen=True)
class LiquidationOutcome:
    """Debt to repay, bonus and simulated health factor for one liquidation."""

    debt_to_repay: DecimalValue
    bonus_rate: DecimalValue
    resulting_health_factor: DecimalValue


@dataclass
class CollateralPosition:
    """A supplied asset with its accrued amount and risk parameters."""

    token: str
    amount: int
    liquidation_threshold: DecimalValue
    liquidation_bonus: DecimalValue
    liquidation_fee: DecimalValue


@dataclass
class DebtPosition:
    """A borrowed asset with its accrued amount."""

    token: str
    amount: int


@dataclass
class SeizedCollateral:
    """Collateral taken from a position during a liquidation."""

    token: str
    amount: int
    protocol_fee: DecimalValue


@dataclass
class LiquidationPlan:
    """Full result of planning a liquidation against a position."""

    debt_to_repay: DecimalValue
    max_collateral_seized: DecimalValue
    bonus_rate: DecimalValue
    health_factor: DecimalValue
    resulting_health_factor: DecimalValue
    refund_value: DecimalValue
    bad_debt: bool
    seized: List[SeizedCollateral] = field(default_factory=list)
