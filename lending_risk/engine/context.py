"""
Per-call execution context: price cache, unsafe-price switch and reentrancy flag.

A context lives for one triggering operation. Nothing in it outlives the call
except through ProtocolState, which holds the flash loan flag shared by every
entry point.
"""

import time
from dataclasses import dataclass
from typing import Dict, Optional

from .exceptions import ReentrancyError
from .fixed_point import DecimalValue
from .models import PriceFeed


@dataclass
class ProtocolState:
    """Mutable protocol-level state read at the start of every call."""

    flash_loan_ongoing: bool = False


class ExecutionContext:
    """
    Scoped state threaded through price resolution and liquidation math.

    Args:
        state: Shared protocol state, read once for the reentrancy flag.
        now: Unix timestamp used for staleness checks. Defaults to the current time.
        allow_unsafe_price: Whether prices outside the outer tolerance band fall
            back to the average instead of failing. Read-only views allow it.
    """

    def __init__(self, state: ProtocolState, now: Optional[int] = None, allow_unsafe_price: bool = True):
        self.state = state
        self.now = int(time.time()) if now is None else int(now)
        self.allow_unsafe_price = allow_unsafe_price
        self.flash_loan_ongoing = state.flash_loan_ongoing
        self.reference_usd_price: Optional[DecimalValue] = None
        self._prices: Dict[str, PriceFeed] = {}

    def cached_price(self, token: str) -> Optional[PriceFeed]:
        return self._prices.get(token)

    def store_price(self, token: str, feed: PriceFeed) -> None:
        self._prices[token] = feed

    def invalidate_prices(self) -> None:
        """Drop every cached price. Call after anything that moves pool state, e.g. a swap."""
        self._prices.clear()
        self.reference_usd_price = None

    def require_not_reentrant(self) -> None:
        if self.flash_loan_ongoing:
            raise ReentrancyError("Flash loan in progress, reentrant call rejected")
