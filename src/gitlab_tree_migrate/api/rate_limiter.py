"""Rate limiting for GitLab API calls."""

import time


class RateLimiter:
    """Token bucket rate limiter for API requests."""

    def __init__(self, requests_per_second: float = 10.0):
        """Initialize rate limiter.

        Args:
            requests_per_second: Maximum requests per second allowed
        """
        self.requests_per_second = requests_per_second
        self.tokens = requests_per_second
        self.last_update = time.monotonic()

    def _refill(self) -> float:
        now = time.monotonic()
        elapsed = now - self.last_update
        self.last_update = now

        # Add tokens based on elapsed time
        self.tokens = min(
            self.requests_per_second, self.tokens + elapsed * self.requests_per_second
        )
        return self.tokens

    def acquire_sync(self) -> None:
        """Acquire a token for making a request.

        Blocks until a token is available.
        """
        if self._refill() >= 1:
            self.tokens -= 1
            return

        # Calculate sleep time needed
        sleep_time = (1 - self.tokens) / self.requests_per_second
        time.sleep(sleep_time)
        self.tokens = 0
        self.last_update = time.monotonic()

