import time
from dataclasses import dataclass

from fastapi import Request, Response
from limits import parse
from slowapi import Limiter
from slowapi.util import get_remote_address
from structlog import get_logger

from marketplace.core.config import Settings
from marketplace.core.errors import TooManyRequests

logger = get_logger()


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int


class RequestRateLimiter:
    """Per-application request counters, keyed by route scope and client address.

    Created by ``create_app`` and stored on ``app.state.rate_limiter``.
    """

    def __init__(self, storage_uri: str = "memory://", enabled: bool = True):
        self.enabled = enabled
        self._limiter = Limiter(key_func=get_remote_address, storage_uri=storage_uri, enabled=enabled)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RequestRateLimiter":
        return cls(storage_uri=settings.RATE_LIMIT_STORAGE_URI, enabled=settings.RATE_LIMIT_ENABLED)

    def allow(self, *, key: str, scope: str, limit: str) -> RateLimitResult:
        item = parse(limit)
        strategy = self._limiter.limiter
        allowed = strategy.hit(item, scope, key)
        reset_time, remaining = strategy.get_window_stats(item, scope, key)
        return RateLimitResult(
            allowed=allowed,
            limit=item.amount,
            remaining=remaining,
            reset_seconds=max(0, int(reset_time - time.time())),
        )

    def reset(self) -> None:
        self._limiter.reset()


def rate_limit(scope: str, setting: str):
    """Dependency counting each request against the limit string held in ``settings.<setting>``."""
    async def check(request: Request, response: Response) -> None:
        limiter: RequestRateLimiter = request.app.state.rate_limiter
        if not limiter.enabled:
            return

        client = get_remote_address(request)
        result = limiter.allow(key=client, scope=scope, limit=getattr(request.app.state.settings, setting))
        if not result.allowed:
            logger.warning("Rate limit exceeded", scope=scope, client=client, limit=result.limit)
            raise TooManyRequests(retry_after=result.reset_seconds)

        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        response.headers["X-RateLimit-Reset"] = str(result.reset_seconds)
    return check
