"""
Custom exceptions for the risk engine.
"""


class RiskEngineError(Exception):
    """Base exception for all risk engine errors."""


class ConfigurationError(RiskEngineError):
    """Raised for price provider and tolerance configuration errors."""


class PriceNotFound(ConfigurationError):
    """Raised when no price provider is configured for a token."""


class PriceProviderExists(ConfigurationError):
    """Raised when registering a price provider for a token that already has one."""


class InvalidToleranceError(ConfigurationError):
    """Raised when anchor tolerances are out of range or inverted."""


class UnsupportedExchangeSource(ConfigurationError):
    """Raised when an exchange source cannot serve the requested provider kind."""


class UnavailableError(RiskEngineError):
    """Raised when no price source produced a usable value."""


class NoPriceAvailable(UnavailableError):
    """Raised when a price source has nothing to report."""


class AggregatorPaused(UnavailableError):
    """Raised when the price aggregator is paused."""


class PoolNotActive(UnavailableError):
    """Raised when the exchange pool is not in an active trading state."""


class StalePrice(UnavailableError):
    """Raised when the latest aggregator round is older than the allowed staleness."""


class SafetyViolation(RiskEngineError):
    """Raised when a computed value is outside safe bounds."""


class UnsafePrice(SafetyViolation):
    """Raised when reconciled prices diverge beyond the outer tolerance band."""


class ArithmeticDomainError(RiskEngineError):
    """Raised for invalid fixed-point operations."""


class DivisionByZeroError(ArithmeticDomainError):
    """Raised when dividing a fixed-point value by zero."""


class PrecisionMismatchError(ArithmeticDomainError):
    """Raised when combining values of different precisions."""


class NegativeValueError(ArithmeticDomainError):
    """Raised when a negative value reaches an unsigned operation."""


class LiquidationError(RiskEngineError):
    """Raised for errors while planning a liquidation."""


class PositionNotLiquidatable(LiquidationError):
    """Raised when the position health factor is not below one."""


class ReentrancyError(RiskEngineError):
    """Raised when an entry point is called while a flash loan is in progress."""
