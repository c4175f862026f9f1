"""Single-delivery completion channels for asynchronous compute operations.

Every compute operation takes a :class:`ResultChannel`, returns promptly, and
later writes exactly one :class:`AsyncResult` to it. Errors raised by a
provider travel as the error half of the result; they are never raised
across the channel boundary. :func:`blocking` is the synchronous convenience
wrapper for call sites that want to wait.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterator, List, Optional, Set, Tuple, TypeVar

from fleetcore.shared.errors import ChannelClosedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Strong references to in-flight tasks so abandoned channels still finish.
_background: Set[asyncio.Task] = set()


@dataclass(frozen=True)
class AsyncResult(Generic[T]):
    """Outcome of one operation: a value, or an error, never both."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    def __post_init__(self) -> None:
        if self.error is not None and self.value is not None:
            raise ValueError("AsyncResult holds either a value or an error")

    def __iter__(self) -> Iterator[Any]:
        yield self.value
        yield self.error

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, raising the delivered error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def _resolve(future: asyncio.Future, result: AsyncResult) -> None:
    if not future.done():
        future.set_result(result)


class ResultChannel:
    """A channel that accepts exactly one result.

    The channel is not bound to an event loop until someone awaits it, so it
    can be created outside a running loop and written from worker threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._result: Optional[AsyncResult] = None
        self._waiters: List[Tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    def done(self) -> bool:
        with self._lock:
            return self._result is not None

    def put(self, result: AsyncResult) -> None:
        """Write the single result; a second write raises ChannelClosedError."""
        with self._lock:
            if self._result is not None:
                raise ChannelClosedError("a result was already delivered to this channel")
            self._result = result
            waiters, self._waiters = self._waiters, []
        for loop, future in waiters:
            try:
                loop.call_soon_threadsafe(_resolve, future, result)
            except RuntimeError:
                # Loop already closed; the reader went away.
                logger.debug("Discarding result for closed event loop")

    put_threadsafe = put

    async def get(self) -> AsyncResult:
        """Wait for and return the delivered result."""
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._result is not None:
                return self._result
            future = loop.create_future()
            self._waiters.append((loop, future))
        return await future


def dispatch(
    channel: ResultChannel, operation: Callable[[], Any]
) -> "asyncio.Task[None]":
    """Run ``operation`` on the running loop and deliver its outcome.

    ``operation`` may return a coroutine or a plain value. Any exception it
    raises becomes the error half of the result. Must be called from a
    running event loop; returns the scheduled task without waiting for it.
    """

    loop = asyncio.get_running_loop()

    async def _run() -> None:
        try:
            value = operation()
            if inspect.isawaitable(value):
                value = await value
        except Exception as exc:
            logger.debug("Operation failed, delivering error: %r", exc)
            channel.put(AsyncResult(error=exc))
        else:
            channel.put(AsyncResult(value=value))

    task = loop.create_task(_run())
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


def compose(
    channel: ResultChannel,
    upstream: Callable[[ResultChannel], Any],
    transform: Callable[[Any], Any],
) -> "asyncio.Task[None]":
    """Derive an operation from ``upstream``.

    The upstream operation is run against an internal channel; its single
    result is awaited, a success value is mapped through ``transform`` and
    an error is forwarded to ``channel`` unchanged.
    """

    async def _forward() -> Any:
        inner = ResultChannel()
        upstream(inner)
        value, error = await inner.get()
        if error is not None:
            raise error
        return transform(value)

    return dispatch(channel, _forward)


def blocking_result(
    operation: Callable[..., Any], *args: Any, **kwargs: Any
) -> AsyncResult:
    """Run a channel-taking operation to completion and return its result.

    The channel is appended as the last positional argument.
    """

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        raise RuntimeError("blocking call made from inside a running event loop")

    async def _await() -> AsyncResult:
        channel = ResultChannel()
        operation(*args, channel, **kwargs)
        return await channel.get()

    return asyncio.run(_await())


def blocking(operation: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Like :func:`blocking_result`, but re-raise a delivered error."""
    return blocking_result(operation, *args, **kwargs).unwrap()
