"""Rate-limited, paginated fetch orchestration.

Every source adapter goes through a ``FetchOrchestrator`` bound to that
source's limiter. The limiter is shared by all categories of the source, so
concurrent category fetches still respect a single request budget.

Retry contract:

- ``RateLimitedError``: wait the limiter's full cooldown (or the server's
  Retry-After if longer), on a separate counter.
- ``NotFoundError``: fail fast. Retrying cannot change "no data".
- any other ``FetchError``: exponential backoff, bounded attempts, capped delay.

Pagination returns what it has when a terminal error, the page limit or the
deadline stops it, marked partial. Complete listings can be kept in the
export-scoped cache so a repeated fetch within one export costs no requests.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from typing import TypeVar

from chainledger.config import EngineSettings
from chainledger.exceptions import FetchError, NotFoundError, RateLimitedError
from chainledger.ingestion.base import FetchResult, Page
from chainledger.ingestion.cache import ExportCache
from chainledger.models.enums import ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], None]


class RateLimiter(ABC):
    """Base for the thread-safe request limiters shared by one source."""

    cooldown: float = 0.0

    def __init__(self, clock: Clock = time.monotonic, sleep: Sleep = time.sleep):
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

    @abstractmethod
    def acquire(self) -> None:
        """Block until the next request may be sent."""
        ...


class FixedDelayLimiter(RateLimiter):
    """Minimum spacing between consecutive requests."""

    def __init__(self, interval: float, cooldown: float | None = None, **kwargs):
        super().__init__(**kwargs)
        self.interval = interval
        self.cooldown = cooldown if cooldown is not None else max(interval, 1.0)
        self._last: float | None = None

    def acquire(self) -> None:
        with self._lock:
            now = self._clock()
            if self._last is not None:
                wait = self._last + self.interval - now
                if wait > 0:
                    self._sleep(wait)
                    now = self._clock()
            self._last = now


class BurstWindowLimiter(RateLimiter):
    """Up to ``burst`` requests, then wait out the rest of a ``window``-second window.

    Matches explorers that allow a handful of calls per minute and reset the
    whole budget at the end of the window.
    """

    def __init__(self, burst: int, window: float, **kwargs):
        super().__init__(**kwargs)
        self.burst = burst
        self.window = window
        self.cooldown = window
        self._window_start: float | None = None
        self._count = 0

    def acquire(self) -> None:
        with self._lock:
            now = self._clock()
            if self._window_start is None or now - self._window_start >= self.window:
                self._window_start = now
                self._count = 0
            if self._count >= self.burst:
                wait = self._window_start + self.window - now
                if wait > 0:
                    logger.info("Burst of %d requests used, waiting %.1fs for the window", self.burst, wait)
                    self._sleep(wait)
                self._window_start = self._clock()
                self._count = 0
            self._count += 1


class TokenBucketLimiter(RateLimiter):
    """Classic token bucket: ``rate`` tokens per second, at most ``capacity`` stored."""

    def __init__(self, rate: float, capacity: int, **kwargs):
        super().__init__(**kwargs)
        self.rate = rate
        self.capacity = capacity
        self.cooldown = capacity / rate
        self._tokens = float(capacity)
        self._updated: float | None = None

    def acquire(self) -> None:
        with self._lock:
            now = self._clock()
            if self._updated is not None:
                self._tokens = min(self.capacity, self._tokens + (now - self._updated) * self.rate)
            self._updated = now
            if self._tokens < 1:
                wait = (1 - self._tokens) / self.rate
                self._sleep(wait)
                self._tokens = 1.0
                self._updated = self._clock()
            self._tokens -= 1


class SlidingWindowLimiter(RateLimiter):
    """At most ``limit`` requests in any trailing ``window`` seconds."""

    def __init__(self, limit: int, window: float, **kwargs):
        super().__init__(**kwargs)
        self.limit = limit
        self.window = window
        self.cooldown = window
        self._sent: deque[float] = deque()

    def acquire(self) -> None:
        with self._lock:
            now = self._clock()
            while self._sent and now - self._sent[0] >= self.window:
                self._sent.popleft()
            if len(self._sent) >= self.limit:
                wait = self._sent[0] + self.window - now
                if wait > 0:
                    self._sleep(wait)
                now = self._clock()
                self._sent.popleft()
            self._sent.append(now)


class FetchOrchestrator:
    """Runs fetch calls for one source under its limiter and retry policy."""

    def __init__(
        self,
        limiter: RateLimiter,
        settings: EngineSettings | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
        cache: ExportCache | None = None,
    ):
        self.limiter = limiter
        self.settings = settings or EngineSettings()
        self.cache = cache
        self._clock = clock
        self._sleep = sleep

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based): 1s, 2s, 4s, ... capped."""
        delay = self.settings.initial_backoff * (2 ** (attempt - 1))
        return min(delay, self.settings.max_backoff)

    def call(self, fn: Callable[..., T], *args, **kwargs) -> T:
        """Call ``fn`` under the rate budget, retrying per the fetch contract."""
        return self.call_before(None, fn, *args, **kwargs)

    def call_before(self, deadline: float | None, fn: Callable[..., T], *args, **kwargs) -> T:
        """``call`` that gives up instead of waiting past ``deadline``."""
        attempts = 0
        rate_limited = 0
        while True:
            self.limiter.acquire()
            try:
                return fn(*args, **kwargs)
            except NotFoundError:
                raise
            except RateLimitedError as exc:
                rate_limited += 1
                if rate_limited >= self.settings.max_rate_limit_retries:
                    logger.warning("Still rate limited after %d cooldowns, giving up", rate_limited)
                    raise
                wait = max(self.limiter.cooldown, exc.retry_after or 0.0)
                logger.warning("Rate limited (%d/%d), cooling down %.1fs",
                               rate_limited, self.settings.max_rate_limit_retries, wait)
                self._pause(wait, deadline, exc)
            except FetchError as exc:
                attempts += 1
                if attempts >= self.settings.max_attempts:
                    logger.error("Fetch failed after %d attempts: %s", attempts, exc)
                    raise
                delay = self.backoff(attempts)
                logger.warning("Fetch attempt %d/%d failed: %s - retrying in %.1fs",
                               attempts, self.settings.max_attempts, exc, delay)
                self._pause(delay, deadline, exc)

    def _pause(self, delay: float, deadline: float | None, exc: FetchError) -> None:
        if deadline is not None and self._clock() + delay >= deadline:
            logger.warning("Retry would pass the deadline, giving up: %s", exc)
            raise exc
        self._sleep(delay)

    def paginate(
        self,
        fetch_page: Callable[[str | None], Page],
        max_pages: int | None = None,
        deadline: float | None = None,
        cache_key: str | None = None,
    ) -> FetchResult:
        """Follow cursors until the listing ends.

        ``deadline`` is an absolute value of the orchestrator's clock. Errors
        are returned in the result, never raised: entries fetched before the
        error are kept and the result is marked partial. With a cache and a
        ``cache_key``, complete listings are served from and stored in the
        cache; partial ones are never stored.
        """
        if self.cache is not None and cache_key:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Serving %s from cache", cache_key)
                return FetchResult(list(cached))

        result = self._paginate(fetch_page, max_pages, deadline)
        if self.cache is not None and cache_key and result.error is None:
            self.cache.set(cache_key, list(result.entries))
        return result

    def _paginate(
        self,
        fetch_page: Callable[[str | None], Page],
        max_pages: int | None,
        deadline: float | None,
    ) -> FetchResult:
        limit = max_pages if max_pages is not None else self.settings.max_pages
        entries: list = []
        cursor: str | None = None

        for page_number in range(limit):
            if deadline is not None and self._clock() >= deadline:
                logger.warning("Deadline reached after %d pages, returning partial result", page_number)
                return FetchResult(entries, partial=bool(entries), error=ErrorKind.PARTIAL_RESULT,
                                   detail=f"deadline reached after {page_number} pages")
            try:
                page = self.call_before(deadline, fetch_page, cursor)
            except FetchError as exc:
                return FetchResult(entries, partial=bool(entries), error=exc.kind, detail=str(exc))

            entries.extend(page.entries)
            cursor = page.next_cursor
            if not cursor:
                return FetchResult(entries)

        logger.warning("Page limit %d reached, returning partial result", limit)
        return FetchResult(entries, partial=True, error=ErrorKind.PARTIAL_RESULT,
                           detail=f"page limit {limit} reached")
