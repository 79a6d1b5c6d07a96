"""
Two-step call strategy.

Runs a primary call and, only when it fails with an error the predicate
accepts, one fallback call. The trigger condition is a plain function so
it can be tested and swapped independently of the adapter using it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, TypeVar

from ..exceptions import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def fall_back_on_provider_error(error: Exception) -> bool:
    """Default trigger: any classified provider failure of the primary call."""
    return isinstance(error, ProviderError)


@dataclass
class FallbackStrategy(Generic[T]):
    """Primary call with a single predicate-gated fallback.

    Attributes:
        primary: Coroutine factory tried first
        fallback: Coroutine factory tried once if primary fails
        should_fall_back: Decides whether a primary error triggers fallback
        name: Label used in log messages
    """

    primary: Callable[[], Awaitable[T]]
    fallback: Callable[[], Awaitable[T]]
    should_fall_back: Callable[[Exception], bool] = field(
        default=fall_back_on_provider_error
    )
    name: str = "strategy"

    async def run(self) -> T:
        """Run primary, then fallback if the predicate accepts the error.

        Errors the predicate rejects, and any error raised by the fallback,
        propagate unchanged.
        """
        try:
            return await self.primary()
        except Exception as e:
            if not self.should_fall_back(e):
                raise
            logger.warning(f"{self.name}: primary call failed, using fallback: {e}")
        return await self.fallback()
