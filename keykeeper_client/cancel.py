"""Cooperative cancellation for the client's suspension points.

A view owns a :class:`CancelToken` and hands it to every coroutine it
starts. Tearing the view down cancels the token; any await guarded by it is
abandoned and whatever result arrives afterwards is dropped.
"""
import asyncio
import weakref
from typing import Optional, TypeVar
from collections.abc import Awaitable

from .exceptions import OperationCancelledError

T = TypeVar("T")


class CancelToken:
    """Cancellation flag that can interrupt awaits.

    Tokens form a tree: cancelling a parent cancels every child created
    from it with :meth:`child`. A parent only holds weak references to its
    children; a child whose work is finished should call :meth:`release`.
    """

    def __init__(self, parent: Optional["CancelToken"] = None):
        self._event = asyncio.Event()
        self._children: weakref.WeakSet[CancelToken] = weakref.WeakSet()
        self._parent = parent
        if parent is not None:
            parent._children.add(self)
            if parent.cancelled:
                self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def child_count(self) -> int:
        return len(self._children)

    def cancel(self) -> None:
        self._event.set()
        for child in list(self._children):
            child.cancel()
        self._children.clear()

    def child(self) -> "CancelToken":
        return CancelToken(parent=self)

    def release(self) -> None:
        """Detach from the parent; the token no longer follows its cancellation."""
        parent, self._parent = self._parent, None
        if parent is not None:
            parent._children.discard(self)

    def raise_if_cancelled(self, operation: str = "") -> None:
        if self.cancelled:
            raise OperationCancelledError(operation)

    async def guard(self, aw: Awaitable[T], operation: str = "") -> T:
        """Await ``aw`` unless the token fires first.

        Raises:
            OperationCancelledError: when the token is (or becomes) cancelled.
                The wrapped awaitable is cancelled and its result discarded,
                even if it completed in the same loop iteration.
        """
        if self.cancelled:
            if asyncio.iscoroutine(aw):
                aw.close()
            raise OperationCancelledError(operation)
        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
        if self.cancelled:
            if task.done() and not task.cancelled():
                # retrieve so the loop does not report an unobserved exception
                task.exception()
            raise OperationCancelledError(operation)
        return task.result()


async def guarded(aw: Awaitable[T], token: Optional[CancelToken], operation: str = "") -> T:
    """Await through ``token`` when one is given."""
    if token is None:
        return await aw
    return await token.guard(aw, operation)
