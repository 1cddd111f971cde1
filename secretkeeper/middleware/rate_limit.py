"""Per-client throttling of credential submissions."""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List

from fastapi import HTTPException, Request, status


class RateLimiter:
    """Simple in-memory sliding-window rate limiter keyed by client IP."""

    def __init__(self, requests_per_minute: int):
        """
        Initialize rate limiter.

        Args:
            requests_per_minute: Maximum submissions per minute per IP (0 disables)
        """
        self.requests_per_minute = requests_per_minute
        self.requests: Dict[str, List[datetime]] = defaultdict(list)

    async def check(self, request: Request) -> None:
        """
        Check if request should be rate limited.

        Args:
            request: FastAPI request object

        Raises:
            HTTPException: If rate limit exceeded
        """
        if self.requests_per_minute <= 0:
            return

        client_ip = request.client.host if request.client else "unknown"
        now = datetime.now()

        # Clean old requests (older than 1 minute)
        cutoff = now - timedelta(minutes=1)
        self._prune(cutoff)

        if len(self.requests[client_ip]) >= self.requests_per_minute:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "Rate limit exceeded",
                    "message": f"Maximum {self.requests_per_minute} attempts per minute allowed",
                    "retry_after": 60,
                },
                headers={"Retry-After": "60"},
            )

        self.requests[client_ip].append(now)

    def _prune(self, cutoff: datetime) -> None:
        """Drop timestamps older than the window, and clients left with none."""
        for client_ip in list(self.requests):
            recent = [req_time for req_time in self.requests[client_ip] if req_time > cutoff]
            if recent:
                self.requests[client_ip] = recent
            else:
                del self.requests[client_ip]
