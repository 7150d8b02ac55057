"""
Lock-guarded lazy cache cell used for the webhook verification key
"""

import asyncio
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class CacheCell(Generic[T]):
    """
    Holds a single lazily resolved value.

    The check-resolve-store sequence runs under an asyncio.Lock, so concurrent
    callers wait for one in-flight resolution instead of starting their own.
    A failed or cancelled resolution leaves the cell empty.
    """

    def __init__(self):
        self._value: Optional[T] = None
        self._present = False
        self._lock = asyncio.Lock()

    @property
    def is_set(self) -> bool:
        return self._present

    @property
    def value(self) -> Optional[T]:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        self._present = True

    async def get_or_resolve(self, resolver: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value, resolving it once if absent

        Args:
            resolver: Coroutine function producing the value

        Returns:
            Cached or freshly resolved value
        """
        if self._present:
            return self._value

        async with self._lock:
            # Another waiter may have filled the cell while we were queued
            if self._present:
                return self._value
            value = await resolver()
            self.set(value)
            return value
