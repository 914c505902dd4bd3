"""
Settle-all aggregation for independent remote calls.

Every awaitable runs to completion; a failure is recorded next to its name
instead of cancelling or hiding the others.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Generic, Mapping, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Settled(Generic[T]):
    """Outcome of one awaitable: a value or the error it raised."""
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle_all(awaitables: Mapping[str, Awaitable[T]]) -> dict[str, Settled[T]]:
    """
    Await every named awaitable concurrently and collect each outcome.

    Args:
        awaitables: Request name -> coroutine or future

    Returns:
        Request name -> Settled, in the input order

    Raises:
        BaseException: Cancellation and other non-Exception signals are
            re-raised rather than recorded
    """
    names = list(awaitables)
    results = await asyncio.gather(*awaitables.values(), return_exceptions=True)

    settled: dict[str, Settled[T]] = {}
    for name, result in zip(names, results):
        if isinstance(result, Exception):
            logger.warning(f"{name} failed: {result}")
            settled[name] = Settled(error=result)
        elif isinstance(result, BaseException):
            raise result
        else:
            settled[name] = Settled(value=result)
    return settled
