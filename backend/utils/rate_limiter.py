"""Rate limiting for login attempts - CoolTrack"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import os
import logging

logger = logging.getLogger(__name__)

LOGIN_MAX_ATTEMPTS = int(os.getenv("LOGIN_MAX_ATTEMPTS", "10"))
LOGIN_WINDOW_MINUTES = int(os.getenv("LOGIN_WINDOW_MINUTES", "15"))

class RateLimiter:
    def __init__(self):
        # In-memory, per process
        self.attempts = {}

    async def check_rate_limit(
        self,
        key: str,
        max_attempts: int,
        window_minutes: int
    ) -> tuple[bool, Optional[str]]:
        """
        Record an attempt for key and report whether it is allowed.

        Returns:
            (allowed: bool, error_message: Optional[str])
        """
        now = datetime.now(timezone.utc)
        window = timedelta(minutes=window_minutes)
        recent = [t for t in self.attempts.get(key, []) if now - t < window]

        if len(recent) >= max_attempts:
            self.attempts[key] = recent
            wait_seconds = int((min(recent) + window - now).total_seconds())
            logger.warning(f"Rate limit hit for {key}")
            return False, f"Too many attempts. Try again in {wait_seconds} seconds"

        recent.append(now)
        self.attempts[key] = recent
        return True, None

    def reset(self, key: str):
        self.attempts.pop(key, None)

rate_limiter = RateLimiter()
