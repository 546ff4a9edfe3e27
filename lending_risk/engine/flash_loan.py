"""
Flash loan reentrancy guard.

While a flash loan is out, control sits with an untrusted receiver that may
call back into the protocol. The shared flag makes every entry point reject
such calls through ExecutionContext.require_not_reentrant().
"""

from contextlib import contextmanager
from typing import Any, Callable, Iterator

from .context import ExecutionContext, ProtocolState
from .logging_config import setup_logger

logger = setup_logger()


@contextmanager
def flash_loan_guard(state: ProtocolState) -> Iterator[None]:
    """
    Hold the flash loan flag for the duration of the block.

    Raises:
        ReentrancyError: If a flash loan is already in progress.
    """
    ExecutionContext(state).require_not_reentrant()
    state.flash_loan_ongoing = True
    try:
        yield
    finally:
        state.flash_loan_ongoing = False


def execute_flash_loan(
    state: ProtocolState, receiver: Callable[..., Any], token: str, amount: int, *args: Any
) -> Any:
    """
    Hand `amount` of `token` to `receiver` with the reentrancy flag set.

    Args:
        state: Shared protocol state holding the flag.
        receiver: Callable invoked as receiver(token, amount, *args).
        token: Borrowed token.
        amount: Raw borrowed amount.

    Returns:
        Whatever the receiver returns.
    """
    if amount <= 0:
        raise ValueError(f"Flash loan amount must be positive, got {amount}")

    logger.info("execute_flash_loan: lending %s of %s", amount, token)
    with flash_loan_guard(state):
        try:
            return receiver(token, amount, *args)
        except Exception as ex:
            logger.error("execute_flash_loan: receiver failed for %s: %s", token, ex, exc_info=True)
            raise
