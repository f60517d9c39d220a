"""Cooperative cancellation for in-flight validations.

A ``CancellationToken`` belongs to one validation attempt. Awaitables the
attempt runs (async validators, adapters) go through ``token.run`` so that
cancelling the token also cancels the awaiting task. Cancellation is
checked again when the attempt resumes, so a late result from a superseded
attempt is never reported.

Example:
    >>> async def check():
    ...     token = CancellationToken("email")
    ...     result = await token.run(asyncio.sleep(0, result=True))
    ...     token.cancel()
    ...     token.raise_if_cancelled()  # raises ValidationCancelled
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Optional, Set, TypeVar

from dynaform.lib.errors import ValidationCancelled

__all__ = ["CancellationToken"]

T = TypeVar("T")


class CancellationToken:
    """Cancellation flag plus the tasks currently running under it."""

    def __init__(self, field: Optional[str] = None) -> None:
        self.field = field
        self._cancelled = False
        self._tasks: Set[asyncio.Future] = set()

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"CancellationToken(field={self.field!r}, {state})"

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Mark the token cancelled and cancel every task running under it."""
        if self._cancelled:
            return
        self._cancelled = True
        for task in list(self._tasks):
            task.cancel()

    def raise_if_cancelled(self) -> None:
        """Raise ``ValidationCancelled`` if the token has been cancelled."""
        if self._cancelled:
            raise ValidationCancelled(self.field)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` as a task that this token can cancel.

        Raises:
            ValidationCancelled: If the token is cancelled before, during or
                right after the awaitable completes
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise ValidationCancelled(self.field)

        task: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        try:
            result = await task
        except asyncio.CancelledError:
            if self._cancelled:
                raise ValidationCancelled(self.field) from None
            raise
        finally:
            self._tasks.discard(task)

        self.raise_if_cancelled()
        return result
