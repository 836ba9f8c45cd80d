"""
Time-stamped memo cell used for per-instance caching with a fixed TTL.
"""
import time
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class TimedValue(Generic[T]):
    """
    Holds one value and the time it was stored.

    The cell is owned by a single object (one per normalizer) and is never
    shared across sources. Reads and writes are plain attribute access: safe
    under one event loop, not across threads.
    """
    
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Optional[T] = None
        self._stored_at: float = 0.0
    
    def get(self) -> Optional[T]:
        """Return the stored value, or None if empty or expired."""
        if self._value is None:
            return None
        if self._clock() - self._stored_at >= self.ttl_seconds:
            return None
        return self._value
    
    def set(self, value: T) -> T:
        self._value = value
        self._stored_at = self._clock()
        return value
    
    def clear(self):
        self._value = None
        self._stored_at = 0.0
    
    @property
    def age_seconds(self) -> Optional[float]:
        """Seconds since the value was stored, None when empty."""
        if self._value is None:
            return None
        return self._clock() - self._stored_at
