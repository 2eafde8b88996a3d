"""A single-value broadcast channel: receivers wait for the latest value."""

from __future__ import annotations

import asyncio
from typing import Generic, List, TypeVar

T = TypeVar("T")


class Watch(Generic[T]):
    """Holds the latest value and wakes receivers whenever it is replaced."""

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._version = 0
        self._waiters: List[asyncio.Future] = []

    def send(self, value: T) -> None:
        """Replace the value and notify every waiting receiver."""
        self._value = value
        self._version += 1
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    def subscribe(self) -> "WatchReceiver[T]":
        """Create a receiver that treats the current value as already seen."""
        return WatchReceiver(self)


class WatchReceiver(Generic[T]):
    """Receiving end of a Watch."""

    def __init__(self, watch: Watch[T]) -> None:
        self._watch = watch
        self._seen = watch._version

    async def changed(self) -> None:
        """Wait until a value newer than the last seen one has been sent."""
        watch = self._watch
        while watch._version == self._seen:
            waiter = asyncio.get_running_loop().create_future()
            watch._waiters.append(waiter)
            try:
                await waiter
            finally:
                if waiter in watch._waiters:
                    watch._waiters.remove(waiter)
        self._seen = watch._version

    def borrow(self) -> T:
        """Return the current value."""
        return self._watch._value