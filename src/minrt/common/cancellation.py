"""Caller-supplied cancellation for long-running resolutions."""
from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Awaitable, Iterator, Optional, TypeVar

from minrt.errors import CancellationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation signal shared by every I/O call of one operation.

    ``cancel()`` may be called from any coroutine on the same loop. Awaiting
    through ``guard()`` aborts the in-flight awaitable promptly and raises
    ``CancellationError``.
    """

    def __init__(self) -> None:
        self._event: Optional[asyncio.Event] = None
        self._cancelled = False
        self.reason: Optional[str] = None

    def _get_event(self) -> asyncio.Event:
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    @property
    def cancelled(self) -> bool:
        """True once ``cancel()`` was called."""
        return self._cancelled

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Signal cancellation to every guarded awaitable."""
        if self._cancelled:
            return
        self._cancelled = True
        self.reason = reason
        if self._event is not None:
            self._event.set()
        logger.debug("Cancellation requested: %s", reason)

    def raise_if_cancelled(self, operation: str = "resolution") -> None:
        """Raise ``CancellationError`` if cancellation was requested."""
        if self._cancelled:
            raise CancellationError(operation)

    async def guard(self, awaitable: Awaitable[T], operation: str = "resolution") -> T:
        """Await ``awaitable`` unless the token fires first.

        When the token fires, the awaitable's task is cancelled and awaited so
        its cleanup (``finally`` blocks, response release) runs before
        ``CancellationError`` propagates.
        """
        self.raise_if_cancelled(operation)
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._get_event().wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task.done():
            return task.result()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        raise CancellationError(operation)


async def guarded(token: Optional[CancellationToken], awaitable: Awaitable[T], operation: str = "resolution") -> T:
    """Await through ``token`` when one is supplied, else await directly."""
    if token is None:
        return await awaitable
    return await token.guard(awaitable, operation)


@contextmanager
def cancellation_scope(token: Optional[CancellationToken], operation: str = "resolution") -> Iterator[None]:
    """Report a cancelled await inside the block as ``CancellationError`` once ``token`` fired.

    Shielded and gathered futures surface a plain ``asyncio.CancelledError``;
    cancellations not caused by ``token`` propagate unchanged.
    """
    try:
        yield
    except asyncio.CancelledError as exc:
        if token is None or not token.cancelled or isinstance(exc, CancellationError):
            raise
        raise CancellationError(operation) from exc
