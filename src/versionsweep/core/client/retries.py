"""
Bounded retry of progress reads.

A poll that raises is final by default. With more than one attempt the
read is repeated after a fixed pause. Only transient remote failures
(no response, throttling, server errors) are repeated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from .base import RemoteFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often one progress read may be attempted."""

    attempts: int = 1
    wait_seconds: float = 5.0
    retry_on: tuple[type[Exception], ...] = (RemoteFailure,)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {self.attempts}")
        if self.wait_seconds < 0:
            raise ValueError(f"wait_seconds must be >= 0, got {self.wait_seconds}")

    def should_retry(self, error: BaseException) -> bool:
        if not isinstance(error, self.retry_on):
            return False
        return getattr(error, "transient", True)

    @property
    def enabled(self) -> bool:
        return self.attempts > 1

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_fixed(self.wait_seconds),
            retry=retry_if_exception(self.should_retry),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Await ``func(*args)``, repeating it on a retryable failure.

        Raises:
            The last failure once every attempt has failed
        """
        if not self.enabled:
            return await func(*args)

        async for attempt in self.retrying():
            with attempt:
                result = await func(*args)
        return result
