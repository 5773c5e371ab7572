"""Rate limiter — token bucket limiting how often clients may start runs."""

import time
from dataclasses import dataclass, field
from typing import Optional

from readycheck.config import get_settings


@dataclass
class _Bucket:
    tokens: float
    updated_at: float = field(default_factory=time.monotonic)


class TokenBucketRateLimiter:
    """In-memory token bucket, one bucket per client key.

    A bucket holds at most `max_tokens` and refills continuously, so a full
    bucket is restored `refill_seconds` after it was emptied.
    """

    def __init__(
        self,
        max_tokens: Optional[int] = None,
        refill_seconds: Optional[int] = None,
    ):
        settings = get_settings()
        self.max_tokens = max_tokens or settings.RATE_LIMIT_MAX_RUNS
        self.refill_seconds = refill_seconds or settings.RATE_LIMIT_WINDOW_SECONDS
        self._buckets: dict[str, _Bucket] = {}

    @property
    def _rate(self) -> float:
        return self.max_tokens / self.refill_seconds

    def _refill(self, key: str) -> _Bucket:
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = self._buckets[key] = _Bucket(tokens=float(self.max_tokens))
            return bucket
        now = time.monotonic()
        bucket.tokens = min(float(self.max_tokens), bucket.tokens + (now - bucket.updated_at) * self._rate)
        bucket.updated_at = now
        return bucket

    def allow_request(self, key: str = "global") -> bool:
        """Consume a token for `key`; False when the bucket is empty."""
        bucket = self._refill(key)
        if bucket.tokens < 1:
            return False
        bucket.tokens -= 1
        return True

    def remaining_tokens(self, key: str = "global") -> int:
        if key not in self._buckets:
            return self.max_tokens
        return int(self._refill(key).tokens)

    def reset_time(self, key: str = "global") -> float:
        """Seconds until `key` has a whole token again."""
        if key not in self._buckets:
            return 0.0
        missing = 1 - self._refill(key).tokens
        return max(0.0, missing / self._rate)

    def reset(self) -> None:
        self._buckets.clear()


# Module-level singleton
rate_limiter = TokenBucketRateLimiter()
