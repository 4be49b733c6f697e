"""
Retry with backoff for RPC and explorer reads

A one-shot deployment script has no second chance once it is halfway
through, so reads that fail on the transport (dropped connection, provider
timeout) are retried a few times before giving up. Contract reverts and
validation errors are never retried.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

T = TypeVar('T')
LOG = logging.getLogger(__name__)

# requests' and aiohttp's connection errors both derive from OSError
TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (OSError, asyncio.TimeoutError)

JITTER_FRACTION = 0.25


def operation_name(func: Callable) -> str:
    """Readable name for log lines, unwrapping run_sync(web3.eth.get_code, ...)"""
    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", None)
    return name or type(func).__name__


@dataclass
class RetryState:
    """Attempts and accumulated delay of one retried call"""
    max_retries: int
    base_delay: float
    max_delay: float
    exponential_base: float = 2.0
    jitter: bool = True
    attempt: int = 0
    total_delay: float = 0.0
    last_exception: Optional[BaseException] = None

    def should_retry(self) -> bool:
        return self.attempt < self.max_retries

    def next_delay(self) -> float:
        delay = self.base_delay * (self.exponential_base ** self.attempt)
        if self.jitter:
            spread = delay * JITTER_FRACTION
            delay += random.uniform(-spread, spread)
        delay = min(delay, self.max_delay)
        self.total_delay += delay
        return delay

    def record_attempt(self, exception: BaseException) -> None:
        self.attempt += 1
        self.last_exception = exception


class AsyncRetry:
    """
    Exponential backoff around an awaitable.

    `max_retries` counts attempts in total, so max_retries=3 means the call
    runs at most three times.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        retry_on: Optional[Tuple[Type[BaseException], ...]] = None,
        stop_on: Optional[Tuple[Type[BaseException], ...]] = None
    ):
        """
        Args:
            max_retries: Maximum number of attempts in total
            base_delay: Delay in seconds before the first retry
            max_delay: Upper bound for a single delay
            exponential_base: Multiplier applied per attempt
            jitter: Spread each delay by up to 25% either way
            retry_on: Exception types that trigger a retry, transport errors by default
            stop_on: Exception types raised immediately even if listed in retry_on
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.retry_on = retry_on or TRANSIENT_ERRORS
        self.stop_on = stop_on or ()

    def new_state(self) -> RetryState:
        return RetryState(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exponential_base=self.exponential_base,
            jitter=self.jitter
        )

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, self.retry_on) and not isinstance(error, self.stop_on)

    async def execute(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Await func(*args, **kwargs), retrying transport failures.

        Raises:
            The last exception once all attempts are used, or the first
            non-retryable one
        """
        state = self.new_state()
        # run_sync(fn, ...) is the common case; name the wrapped call
        name = operation_name(args[0] if args and callable(args[0]) else func)

        while True:
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                if not self.is_retryable(e):
                    raise
                state.record_attempt(e)
                if not state.should_retry():
                    LOG.error(f"{name} failed after {state.attempt} attempts: {type(e).__name__}: {e}")
                    raise
                delay = state.next_delay()
                LOG.warning(
                    f"{name} attempt {state.attempt}/{state.max_retries} failed: "
                    f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s..."
                )
                await asyncio.sleep(delay)
                continue

            if state.attempt:
                LOG.info(f"{name} succeeded after {state.attempt} retries ({state.total_delay:.2f}s waited)")
            return result
