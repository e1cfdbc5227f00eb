"""
Rate Limiting for Model Admission Control

Fixed-window per-user limiter guarding the generative model. Counters live in
an injectable store: in-process for single-instance deployments, MongoDB for
deployments with more than one API instance.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
from dataclasses import dataclass
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument


@dataclass
class CounterState:
    """Request count for a key inside its current window."""
    count: int
    reset_at: datetime


@dataclass
class RateLimitResult:
    """
    Result of rate limit check.

    Attributes:
        allowed: Whether the request is allowed
        remaining: Number of requests remaining in current window
        reset_at: When the rate limit window resets
        reset_in_seconds: Seconds until the window resets
        reason: Why the request was blocked (if applicable)
    """
    allowed: bool
    remaining: int
    reset_at: datetime
    reset_in_seconds: float
    reason: Optional[str] = None

    @property
    def retry_after(self) -> int:
        return max(int(-(-self.reset_in_seconds // 1)), 1)


class CounterStore(ABC):
    """Abstract counter store for fixed-window counting."""

    @abstractmethod
    async def increment(self, key: str, window_seconds: int) -> CounterState:
        """
        Count one request for key.

        Opens a fresh window (count=1) when none exists or the previous one
        has elapsed; otherwise increments the current window.

        Args:
            key: User identifier
            window_seconds: Window length used when a new window is opened

        Returns:
            Counter state after this request
        """
        pass


class InMemoryCounterStore(CounterStore):
    """
    Process-local counter store.

    Suitable for single-instance deployments or testing. Each API process
    keeps its own counts, so N instances admit up to N times the limit.
    """

    def __init__(self):
        self._counters: Dict[str, CounterState] = {}
        self._lock = asyncio.Lock()

    async def increment(self, key: str, window_seconds: int) -> CounterState:
        async with self._lock:
            now = datetime.now(timezone.utc)
            state = self._counters.get(key)

            # Lazy reset: an elapsed window is replaced on the next request
            if state is None or state.reset_at <= now:
                state = CounterState(count=1, reset_at=now + timedelta(seconds=window_seconds))
                self._counters[key] = state
            else:
                state.count += 1

            return CounterState(count=state.count, reset_at=state.reset_at)

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._counters.pop(key, None)


class MongoCounterStore(CounterStore):
    """
    Counter store shared by every API instance.

    Uses atomic find_one_and_update so concurrent increments from different
    processes never lose counts within a window.
    """

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def increment(self, key: str, window_seconds: int) -> CounterState:
        now = datetime.now(timezone.utc)

        doc = await self.collection.find_one_and_update(
            {"_id": key, "reset_at": {"$gt": now}},
            {"$inc": {"count": 1}},
            return_document=ReturnDocument.AFTER,
        )

        if doc is None:
            # No live window: open a new one. Two instances racing here both
            # write count=1, which under-counts by at most one request.
            doc = await self.collection.find_one_and_update(
                {"_id": key},
                {"$set": {"count": 1, "reset_at": now + timedelta(seconds=window_seconds)}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )

        reset_at = doc["reset_at"]
        if reset_at.tzinfo is None:
            # Mongo returns naive UTC datetimes
            reset_at = reset_at.replace(tzinfo=timezone.utc)

        return CounterState(count=doc["count"], reset_at=reset_at)


class FixedWindowRateLimiter:
    """
    Per-user fixed-window admission control.

    Usage:
        >>> limiter = FixedWindowRateLimiter(InMemoryCounterStore(), max_requests=30)
        >>> result = await limiter.check("user-123")
        >>> if not result.allowed:
        ...     # Reject before calling the model
    """

    def __init__(
        self,
        store: CounterStore,
        max_requests: int = 30,
        window_seconds: int = 60,
    ):
        """
        Initialize rate limiter.

        Args:
            store: Counter backend
            max_requests: Max requests per window
            window_seconds: Window length in seconds
        """
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    async def check(self, user_id: str) -> RateLimitResult:
        """
        Count this request and decide admission.

        Args:
            user_id: Authenticated user identifier

        Returns:
            Rate limit result
        """
        state = await self.store.increment(user_id, self.window_seconds)
        now = datetime.now(timezone.utc)
        reset_in = max((state.reset_at - now).total_seconds(), 0.0)

        if state.count > self.max_requests:
            logger.bind(user_id=user_id, count=state.count, limit=self.max_requests).warning(
                f"Rate limit exceeded for {user_id}"
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_at=state.reset_at,
                reset_in_seconds=reset_in,
                reason=f"Rate limit exceeded: {self.max_requests} requests per {self.window_seconds}s"
            )

        return RateLimitResult(
            allowed=True,
            remaining=self.max_requests - state.count,
            reset_at=state.reset_at,
            reset_in_seconds=reset_in,
        )
