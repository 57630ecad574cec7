"""
Request coalescing (Singleflight) for discovery passes.

When several callers ask for a resolution while one is already running,
only the first actually discovers - the others wait and receive the same
address.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class InFlightCall(Generic[T]):
    """In-flight call tracker."""

    future: "asyncio.Future[T]"
    """Future that resolves when the call completes."""

    subscribers: int = 1
    """Number of callers waiting for this call."""


@dataclass
class SingleflightResult(Generic[T]):
    """Result of a singleflight call."""

    value: T
    """The result value."""

    shared: bool
    """Whether this caller joined a call started by someone else."""

    subscribers: int
    """Number of callers that shared this result."""


class Singleflight:
    """
    Singleflight - coalescing of concurrent calls with the same key.

    Example:
        sf = Singleflight()

        # These 10 concurrent calls result in only 1 subnet scan
        results = await asyncio.gather(*[
            sf.do("discovery", scanner.scan) for _ in range(10)
        ])

        print(results[0].shared)  # False (the leader)
        print(results[1].shared)  # True (joined existing)
    """

    def __init__(self) -> None:
        self._in_flight: Dict[str, InFlightCall] = {}

    async def do(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
    ) -> SingleflightResult[T]:
        """
        Execute a function with call coalescing.

        If a call with the same key is in flight, wait for it and share its
        result or exception. Otherwise run fn and share its outcome with any
        callers that join while it runs.
        """
        existing = self._in_flight.get(key)
        if existing is not None:
            existing.subscribers += 1
            logger.debug(f"Joining in-flight call {key!r} ({existing.subscribers} subscribers)")
            try:
                value = await asyncio.shield(existing.future)
            except asyncio.CancelledError:
                task = asyncio.current_task()
                if existing.future.cancelled() and task is not None and not task.cancelling():
                    # The leader was cancelled, not us: take over the call
                    return await self.do(key, fn)
                raise
            return SingleflightResult(
                value=value,
                shared=True,
                subscribers=existing.subscribers,
            )

        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        in_flight = InFlightCall(future=future, subscribers=1)
        self._in_flight[key] = in_flight

        try:
            value = await fn()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as error:
            future.set_exception(error)
            # Mark retrieved so an unshared failure is not reported twice
            future.exception()
            raise
        else:
            future.set_result(value)
            return SingleflightResult(
                value=value,
                shared=False,
                subscribers=in_flight.subscribers,
            )
        finally:
            if self._in_flight.get(key) is in_flight:
                del self._in_flight[key]

    def is_in_flight(self, key: str) -> bool:
        """Check if a call is currently in flight."""
        return key in self._in_flight

    def get_subscribers(self, key: str) -> int:
        """Get the number of subscribers for an in-flight call."""
        existing = self._in_flight.get(key)
        return existing.subscribers if existing else 0

    def get_stats(self) -> dict:
        """Get statistics about in-flight calls."""
        return {"in_flight": len(self._in_flight)}
