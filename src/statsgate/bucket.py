import asyncio
import contextlib
import logging
import math
import threading
import time
from typing import Callable, Union

from .errors import AcquireCancelled, AcquireTimeout
from .state import BucketState
from .types import BucketStatus

DEFAULT_MAX_TOKENS = 10
DEFAULT_REFILL_RATE = 2.0

# Float slack so a refill that lands a hair under 1.0 still counts as a token
_EPSILON = 1e-9


# ---------- Base bucket (shared logic; waiting handled by subclasses) ----------


class _Bucket:
    def __init__(
        self,
        max_tokens: int,
        refill_rate: float,
        clock: Union[Callable[[], float], None],
        log_level: Union[int, None],
    ):
        """Initialize a _Bucket.

        Args:
            max_tokens (int): burst capacity; the bucket starts full
            refill_rate (float): tokens added per second
            clock (Callable[[], float] | None): monotonic clock, seconds
            log_level (int | None): level for the statsgate logger

        Raises:
            ValueError: if max_tokens or refill_rate is not positive
        """
        if max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be > 0")
        self.max_tokens = max_tokens
        self.refill_rate = float(refill_rate)
        self._clock = clock or time.monotonic
        self._state = BucketState(tokens=float(max_tokens), last_refill=self._now())
        self._logger = logging.getLogger("statsgate")
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)

    def _now(self) -> float:
        return self._clock()

    def _refill(self, now: float) -> None:
        self._state.refill(now, self.max_tokens, self.refill_rate)

    def _try_take(self) -> float:
        """Refill, then take a token if one is there. Returns 0.0 on success,
        otherwise the time until the next token is due. Caller holds the lock."""
        self._refill(self._now())
        if self._state.tokens >= 1.0 - _EPSILON:
            self._state.tokens = max(0.0, self._state.tokens - 1.0)
            return 0.0
        return (1.0 - self._state.tokens) / self.refill_rate

    def _check_deadline(self, deadline: Union[float, None], delay: float, timeout) -> None:
        if deadline is not None and self._now() + delay > deadline:
            raise AcquireTimeout(timeout)

    def _snapshot(self) -> BucketStatus:
        self._refill(self._now())
        return BucketStatus(
            tokens_available=int(math.floor(self._state.tokens + _EPSILON)),
            max_tokens=int(self.max_tokens),
        )


# ---------- Sync bucket (threads) ----------


class TokenBucket(_Bucket):
    """Token bucket for threaded callers; ``acquire`` blocks the calling thread."""

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        refill_rate: float = DEFAULT_REFILL_RATE,
        clock: Union[Callable[[], float], None] = None,
        sleep: Union[Callable[[float], None], None] = None,
        log_level: Union[int, None] = None,
    ):
        super().__init__(max_tokens, refill_rate, clock, log_level)
        self._sleep = sleep or time.sleep
        # an injected sleep drives simulated time, so cancel is polled around it
        self._custom_sleep = sleep is not None
        self._lock = threading.Lock()

    def acquire(
        self,
        timeout: Union[float, None] = None,
        cancel: Union[threading.Event, None] = None,
    ) -> None:
        """Consume one token, waiting for a refill if the bucket is empty.

        Raises:
            AcquireTimeout: the next token would arrive after ``timeout`` seconds
            AcquireCancelled: ``cancel`` was set before a token was granted
        """
        deadline = None if timeout is None else self._now() + timeout
        while True:
            if cancel is not None and cancel.is_set():
                raise AcquireCancelled()
            with self._lock:
                delay = self._try_take()
            if delay <= 0:
                return
            self._check_deadline(deadline, delay, timeout)
            self._logger.debug(f"rate limit bucket empty; waiting ~{delay:.2f}s")
            if cancel is not None and not self._custom_sleep:
                if cancel.wait(delay):
                    raise AcquireCancelled()
            else:
                self._sleep(delay)

    def status(self) -> BucketStatus:
        with self._lock:
            return self._snapshot()


# ---------- Async bucket (asyncio) ----------


class AsyncTokenBucket(_Bucket):
    """Token bucket for asyncio callers; waiting yields to the event loop.

    Cancelling a task blocked in ``acquire`` raises CancelledError out of the wait
    and leaves the bucket untouched.
    """

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        refill_rate: float = DEFAULT_REFILL_RATE,
        clock: Union[Callable[[], float], None] = None,
        sleep=None,
        log_level: Union[int, None] = None,
    ):
        super().__init__(max_tokens, refill_rate, clock, log_level)
        self._sleep = sleep or asyncio.sleep
        self._lock = asyncio.Lock()

    async def acquire(self, timeout: Union[float, None] = None) -> None:
        deadline = None if timeout is None else self._now() + timeout
        while True:
            async with self._lock:
                delay = self._try_take()
            if delay <= 0:
                return
            self._check_deadline(deadline, delay, timeout)
            self._logger.debug(f"rate limit bucket empty; waiting ~{delay:.2f}s")
            await self._sleep(delay)

    def status(self) -> BucketStatus:
        # no await between refill and read, so the event loop cannot interleave
        return self._snapshot()
