"""
Token bucket limiter for outbound Jupiter and RPC calls
"""

import asyncio
import time
from typing import Any, Dict
import logging

from ..constants import RATE_LIMITS

logger = logging.getLogger(__name__)

class RateLimiter:
    """Token bucket rate limiter with burst support"""

    def __init__(self, calls_per_second: float, burst: int = 5, name: str = "default"):
        self.calls_per_second = calls_per_second
        self.burst = burst
        self.name = name
        self.tokens = float(burst)
        self.last_update = time.monotonic()
        self.lock = asyncio.Lock()
        self.total_requests = 0
        self.total_wait_time = 0.0

    def _refill(self):
        now = time.monotonic()
        elapsed = now - self.last_update
        self.tokens = min(self.burst, self.tokens + elapsed * self.calls_per_second)
        self.last_update = now

    async def acquire(self, tokens: int = 1):
        """Acquire tokens, waiting if the bucket is empty"""
        async with self.lock:
            self.total_requests += 1
            start_wait = time.monotonic()

            self._refill()
            if self.tokens < tokens:
                wait_time = (tokens - self.tokens) / self.calls_per_second
                logger.debug(f"Rate limiter {self.name}: waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
                self._refill()

            self.tokens -= tokens

            wait_duration = time.monotonic() - start_wait
            self.total_wait_time += wait_duration
            if wait_duration > 0.1:
                logger.info(f"Rate limiter {self.name}: waited {wait_duration:.2f}s")

    def get_stats(self) -> Dict[str, Any]:
        """Get rate limiter statistics"""
        avg_wait = self.total_wait_time / self.total_requests if self.total_requests > 0 else 0

        return {
            'name': self.name,
            'total_requests': self.total_requests,
            'average_wait_time': avg_wait,
            'current_tokens': self.tokens,
            'calls_per_second': self.calls_per_second,
            'burst': self.burst
        }

def create_rate_limiter(name: str) -> RateLimiter:
    """Build a limiter from the RATE_LIMITS table"""
    limits = RATE_LIMITS[name]
    return RateLimiter(limits['calls_per_second'], limits['burst'], name)
