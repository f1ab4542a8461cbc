"""Cancellable handles for in-flight resolutions."""
import asyncio
import logging
from typing import Any, Callable, Generator, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ResolutionHandle(Generic[T]):
    """
    A pending resolution that its owner can cancel.

    Wraps an asyncio task. The navigation state machine keeps the handle of
    the leg it is waiting for and cancels it when the user navigates away,
    instead of checking on arrival whether the result is still wanted.

    Awaiting a cancelled handle raises ``asyncio.CancelledError``.
    """

    def __init__(self, task: "asyncio.Future[T]", label: str = ""):
        self._task = task
        self.label = label

    @classmethod
    def spawn(cls, coro, label: str = "") -> "ResolutionHandle[T]":
        """Schedule ``coro`` on the running loop."""
        return cls(asyncio.ensure_future(coro), label)

    def done(self) -> bool:
        return self._task.done()

    def cancelled(self) -> bool:
        return self._task.cancelled()

    def cancel(self) -> bool:
        """Cancel the resolution; False if it already finished."""
        if self._task.done():
            return False
        logger.debug(f"Cancelling resolution '{self.label}'")
        return self._task.cancel()

    def result(self) -> T:
        """Result of a finished resolution (raises if pending or cancelled)."""
        return self._task.result()

    def exception(self) -> Optional[BaseException]:
        return self._task.exception()

    def add_done_callback(self, callback: Callable[["ResolutionHandle[T]"], Any]) -> None:
        """Call ``callback(handle)`` once the resolution finishes or is cancelled."""
        self._task.add_done_callback(lambda _: callback(self))

    async def wait(self) -> None:
        """Wait until finished or cancelled, without raising."""
        await asyncio.wait([self._task])

    def __await__(self) -> Generator[Any, None, T]:
        return self._task.__await__()

    def __repr__(self) -> str:
        if self._task.cancelled():
            state = "cancelled"
        elif self._task.done():
            state = "done"
        else:
            state = "pending"
        return f"ResolutionHandle({self.label!r}, {state})"
