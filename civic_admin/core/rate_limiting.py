"""Rate limiting for login attempts."""

from collections import defaultdict
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
import threading

from civic_admin.core.config import settings


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RateLimiter:
    """
    In-memory sliding-window rate limiter.

    Attempts older than the window are forgotten on every check, so an identifier
    becomes allowed again as soon as its oldest attempt ages out.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._attempts: dict[str, list[datetime]] = defaultdict(list)
        self._lock = threading.Lock()
        self._clock = clock

    def is_rate_limited(
        self, identifier: str, max_attempts: int, window_seconds: int
    ) -> tuple[bool, int | None]:
        """
        Check if an identifier is rate limited.

        Returns:
            Tuple of (is_limited, retry_after_seconds)
        """
        with self._lock:
            now = self._clock()
            cutoff = now - timedelta(seconds=window_seconds)

            recent = [ts for ts in self._attempts.get(identifier, []) if ts > cutoff]
            if recent:
                self._attempts[identifier] = recent
            else:
                self._attempts.pop(identifier, None)

            if len(recent) >= max_attempts:
                oldest_attempt = min(recent)
                retry_after = (
                    oldest_attempt + timedelta(seconds=window_seconds) - now
                ).total_seconds()
                return True, int(max(1, retry_after))

            return False, None

    def record_attempt(self, identifier: str) -> None:
        with self._lock:
            self._attempts[identifier].append(self._clock())

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._attempts.pop(identifier, None)

    def cleanup_old_entries(self, max_age_seconds: int) -> None:
        """Drop attempts older than max_age_seconds and any identifier left empty."""
        with self._lock:
            cutoff = self._clock() - timedelta(seconds=max_age_seconds)
            for identifier in list(self._attempts):
                kept = [ts for ts in self._attempts[identifier] if ts > cutoff]
                if kept:
                    self._attempts[identifier] = kept
                else:
                    del self._attempts[identifier]

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)


class LoginRateLimiter:
    """
    Failed-login throttle keyed by client IP.

    A client that fails ``max_attempts`` times within ``window_seconds`` is refused
    until the oldest failure leaves the window. A successful login clears the count.
    """

    def __init__(
        self,
        max_attempts: int | None = None,
        window_seconds: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.max_attempts = max_attempts or settings.LOGIN_MAX_ATTEMPTS
        self.window_seconds = window_seconds or settings.LOGIN_WINDOW_SECONDS
        self.ip_limiter = RateLimiter(clock=clock)

    def check_login_allowed(self, ip_address: str) -> tuple[bool, int | None]:
        """Return (is_allowed, retry_after_seconds)."""
        limited, retry_after = self.ip_limiter.is_rate_limited(
            ip_address, self.max_attempts, self.window_seconds
        )
        return not limited, retry_after

    def record_failed_attempt(self, ip_address: str) -> None:
        self.ip_limiter.cleanup_old_entries(self.window_seconds)
        self.ip_limiter.record_attempt(ip_address)

    def record_successful_login(self, ip_address: str) -> None:
        self.ip_limiter.reset(ip_address)


login_rate_limiter = LoginRateLimiter()


def get_login_rate_limiter() -> LoginRateLimiter:
    """FastAPI dependency; tests override it with a fresh limiter."""
    return login_rate_limiter
