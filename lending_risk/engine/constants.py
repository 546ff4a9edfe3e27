"""
Protocol-wide constants for the risk engine.
"""

RAY_PRECISION = 27
WAD_PRECISION = 18
BPS_PRECISION = 4

RAY = 10**RAY_PRECISION
WAD = 10**WAD_PRECISION
BPS = 10**BPS_PRECISION

# Health factor reported for positions without debt (u128 max at WAD, carried at RAY)
MAX_HEALTH_FACTOR_RAW = (2**128 - 1) * 10 ** (RAY_PRECISION - WAD_PRECISION)

# Liquidation bonus
MAX_LIQUIDATION_BONUS_BPS = 1_500
BONUS_SCALING_FACTOR_RAY = 2 * RAY

# Dutch auction targets, at RAY
PRIMARY_TARGET_HEALTH_FACTOR_RAY = 102 * RAY // 100
SECONDARY_TARGET_HEALTH_FACTOR_RAY = 101 * RAY // 100

# Anchor tolerance limits, in BPS
MIN_FIRST_TOLERANCE_BPS = 50
MAX_FIRST_TOLERANCE_BPS = 5_000
MIN_LAST_TOLERANCE_BPS = 150
MAX_LAST_TOLERANCE_BPS = 10_000

# Time-weighted window used for exchange safe prices
SAFE_PRICE_OFFSET_SECONDS = 15 * 60

USD_TICKER = "USD"
TOKEN_TICKER_SEPARATOR = "-"

DEFAULT_BAD_DEBT_USD_THRESHOLD = 5
