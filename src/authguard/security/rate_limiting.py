"""
Fixed-window rate limiting for authentication endpoints.
Prevents brute force attacks and API abuse.
"""

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from authguard.config.settings import settings
from authguard.core.models import APIRequest, RateLimitConfig, RateLimitEntry, RateLimitResult
from authguard.security.validation import InputValidator
from authguard.utils.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


# Default rate limiting configurations
RATE_LIMIT_CONFIGS = {
    # Sign in, sign up
    'AUTH_ENDPOINTS': RateLimitConfig(
        window_seconds=15 * 60,
        max_requests=20,
        skip_successful_requests=True
    ),
    'PASSWORD_RESET': RateLimitConfig(
        window_seconds=60 * 60,
        max_requests=5,
        skip_successful_requests=False
    ),
    'GENERAL_API': RateLimitConfig(
        window_seconds=15 * 60,
        max_requests=100,
        skip_successful_requests=True
    ),
    # Account changes and other sensitive operations
    'SENSITIVE_OPERATIONS': RateLimitConfig(
        window_seconds=60 * 60,
        max_requests=3,
        skip_successful_requests=False
    ),
}


class RateLimitStore(ABC):
    """
    Keyed fixed-window counters.

    Implementations must make ``increment`` atomic per key. Only the
    in-memory backend ships here; a shared backend for multi-instance
    deployments would implement this same interface.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock

    @abstractmethod
    def get(self, key: str) -> Optional[RateLimitEntry]:
        """Return the live entry for ``key``, dropping it if expired."""

    @abstractmethod
    def increment(self, key: str, window_seconds: float) -> RateLimitEntry:
        """Count one request, opening a new window when none is live."""

    @abstractmethod
    def reset(self, key: str) -> None:
        """Delete ``key`` unconditionally."""

    @abstractmethod
    def size(self) -> int:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class InMemoryRateLimitStore(RateLimitStore):
    """
    Process-local store with lazy expiry and a background sweep thread.

    Entries are only ever handed out as copies taken under the lock, so a
    caller never observes a count another thread is still changing.
    """

    def __init__(self, sweep_interval: Optional[float] = None,
                 clock: Callable[[], float] = time.time,
                 start_sweeper: bool = True):
        super().__init__(clock)
        self.sweep_interval = sweep_interval or settings.rate_limit_sweep_interval_seconds
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

        if start_sweeper:
            self.start()

    def _live_entry(self, key: str, now: float) -> Optional[RateLimitEntry]:
        entry = self._entries.get(key)
        if entry is not None and entry.is_expired(now):
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> Optional[RateLimitEntry]:
        with self._lock:
            entry = self._live_entry(key, self.clock())
            return replace(entry) if entry is not None else None

    def increment(self, key: str, window_seconds: float) -> RateLimitEntry:
        with self._lock:
            now = self.clock()
            entry = self._live_entry(key, now)

            if entry is None:
                # First request in window
                entry = RateLimitEntry(count=1, reset_time=now + window_seconds, first_request=now)
                self._entries[key] = entry
            else:
                entry.count += 1

            return replace(entry)

    def reset(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def sweep(self) -> int:
        """Delete every expired entry. Returns the number removed."""
        with self._lock:
            now = self.clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def is_sweeping(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def start(self) -> None:
        """Start the background sweep thread if it is not running."""
        if self.is_sweeping:
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name="authguard-rate-limit-sweep",
            daemon=True,
        )
        self._sweeper.start()

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(timeout=self.sweep_interval):
            removed = self.sweep()
            if removed:
                logger.debug("Rate limit sweep removed %d expired entries", removed)

    def close(self) -> None:
        """Stop the sweep thread and drop all entries."""
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join()
            self._sweeper = None
        self.clear()


LimitReachedListener = Callable[[str, RateLimitConfig], None]


class RateLimiter:
    """
    Turns store counts into allow/deny decisions.

    Limit-reached listeners (``config.on_limit_reached`` and any added with
    ``add_listener``) are notifications only: a failing listener is logged
    and the request continues.
    """

    def __init__(self, store: RateLimitStore, input_validator: Optional[InputValidator] = None):
        self.store = store
        self.input_validator = input_validator or InputValidator()
        self._listeners: List[LimitReachedListener] = []

    def add_listener(self, listener: LimitReachedListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: LimitReachedListener) -> None:
        self._listeners.remove(listener)

    def resolve_key(self, request: APIRequest, config: RateLimitConfig,
                    custom_key: Optional[str] = None) -> str:
        """Custom key, else the config's generator, else the client IP."""
        if custom_key:
            return custom_key
        if config.key_generator is not None:
            return config.key_generator(request)
        return self.input_validator.generate_rate_limit_key(request, 'ip')

    def check_rate_limit(self, request: APIRequest, config: RateLimitConfig,
                         custom_key: Optional[str] = None) -> RateLimitResult:
        """Count this request and report whether it is within the limit."""
        key = self.resolve_key(request, config, custom_key)
        entry = self.store.increment(key, config.window_seconds)

        result = RateLimitResult(
            success=entry.count <= config.max_requests,
            limit=config.max_requests,
            remaining=max(0, config.max_requests - entry.count),
            reset_time=entry.reset_time
        )

        if not result.success:
            result.retry_after = math.ceil(entry.reset_time - self.store.clock())
            self._notify_limit_reached(key, config)

        return result

    def enforce_rate_limit(self, request: APIRequest, config: RateLimitConfig,
                           custom_key: Optional[str] = None) -> RateLimitResult:
        """
        Like ``check_rate_limit`` but raises when the limit is exceeded.

        Raises:
            RateLimitExceededError: code RATE_LIMIT_EXCEEDED, with the
                result attached as ``rate_limit``
        """
        result = self.check_rate_limit(request, config, custom_key)

        if not result.success:
            raise RateLimitExceededError(
                f"Rate limit exceeded. Try again in {result.retry_after} seconds.",
                result
            )

        return result

    def clear_rate_limit(self, request: APIRequest, config: RateLimitConfig,
                         custom_key: Optional[str] = None) -> None:
        """Forget a key after a successful authentication, if the config allows it."""
        if config.skip_successful_requests:
            self.store.reset(self.resolve_key(request, config, custom_key))

    def get_rate_limit_status(self, request: APIRequest, config: RateLimitConfig,
                              custom_key: Optional[str] = None) -> RateLimitResult:
        """Current status; like the check itself, this counts as a request."""
        return self.check_rate_limit(request, config, custom_key)

    def reset_rate_limit(self, request: APIRequest, config: RateLimitConfig,
                         custom_key: Optional[str] = None) -> None:
        self.store.reset(self.resolve_key(request, config, custom_key))

    def get_stats(self) -> Dict[str, int]:
        return {"total_keys": self.store.size()}

    def _notify_limit_reached(self, key: str, config: RateLimitConfig) -> None:
        listeners = list(self._listeners)
        if config.on_limit_reached is not None:
            listeners.insert(0, config.on_limit_reached)

        for listener in listeners:
            try:
                listener(key, config)
            except Exception:
                logger.exception("Rate limit listener failed for key %s", key)
