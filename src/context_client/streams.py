"""Cold, cancellable value streams.

A :class:`Stream` wraps a producer coroutine that pushes values through an
``emit`` callback. Nothing runs until the stream is subscribed to, iterated,
or awaited with :meth:`Stream.first`; each of those starts an independent run
in its own task. Cancelling that task cancels every task the producer (and
the combinators below it) spawned, because they all live in
:class:`~context_client.scope.TaskScope` blocks.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from typing import (
    Any,
    AsyncIterable,
    Awaitable,
    Callable,
    Generic,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
    Union,
)

from .scope import TaskScope

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

Emit = Callable[[T], None]
Producer = Callable[[Emit[T]], Awaitable[None]]
AsyncSource = Union[T, Awaitable[T], AsyncIterable[T]]

_UNSET: Any = object()


class Subscription:
    """Handle for a running stream; ``unsubscribe`` stops all callbacks."""

    def __init__(self) -> None:
        self._task: Optional[asyncio.Task[None]] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


class Stream(Generic[T]):
    def __init__(self, producer: Producer[T], *, name: Optional[str] = None) -> None:
        self._producer = producer
        self.name = name or "stream"

    async def run(self, emit: Emit[T]) -> None:
        """Run the producer in the current task until it completes."""

        await self._producer(emit)

    def subscribe(
        self,
        on_next: Callable[[T], None],
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> Subscription:
        """Start a run in a new task. Requires a running event loop.

        If the run's task is cancelled by something other than
        :meth:`Subscription.unsubscribe`, the subscriber sees a completion.
        """

        subscription = Subscription()

        def emit(value: T) -> None:
            if subscription.closed:
                return
            try:
                on_next(value)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Subscriber of %s failed to handle a value", self.name)

        def finish(error: Optional[BaseException]) -> None:
            if subscription.closed:
                return
            subscription._closed = True  # noqa: SLF001
            if error is not None:
                if on_error is not None:
                    on_error(error)
                else:
                    logger.error("Unhandled error in %s: %s", self.name, error)
            elif on_complete is not None:
                on_complete()

        async def drive() -> None:
            try:
                await self.run(emit)
            except asyncio.CancelledError:
                finish(None)
                raise
            except Exception as exc:  # pylint: disable=broad-exception-caught
                finish(exc)
                return
            finish(None)

        subscription._task = asyncio.create_task(drive(), name=self.name)  # noqa: SLF001
        return subscription

    def __aiter__(self) -> "StreamIterator[T]":
        return StreamIterator(self)

    async def first(self, default: Any = _UNSET) -> T:
        """Resolve to the first value, then stop the run.

        If the stream completes without a value, ``default`` is returned, or
        ``LookupError`` raised when no default was given.
        """

        loop = asyncio.get_running_loop()
        result: asyncio.Future[T] = loop.create_future()

        def on_next(value: T) -> None:
            if not result.done():
                result.set_result(value)

        def on_error(exc: BaseException) -> None:
            if not result.done():
                result.set_exception(exc)

        def on_complete() -> None:
            if result.done():
                return
            if default is _UNSET:
                result.set_exception(LookupError(f"{self.name} completed without a value"))
            else:
                result.set_result(default)

        subscription = self.subscribe(on_next, on_error, on_complete)
        try:
            return await result
        finally:
            subscription.unsubscribe()


_NEXT = "next"
_ERROR = "error"
_DONE = "done"


class StreamIterator(Generic[T]):
    """Async iterator over one run of a stream. Close it to cancel the run."""

    def __init__(self, stream: Stream[T]) -> None:
        self._queue: asyncio.Queue[Tuple[str, Any]] = asyncio.Queue()
        self._subscription = stream.subscribe(
            lambda value: self._queue.put_nowait((_NEXT, value)),
            lambda exc: self._queue.put_nowait((_ERROR, exc)),
            lambda: self._queue.put_nowait((_DONE, None)),
        )

    def __aiter__(self) -> "StreamIterator[T]":
        return self

    async def __anext__(self) -> T:
        kind, value = await self._queue.get()
        if kind == _NEXT:
            return value
        # Keep the terminal marker so later calls end immediately too
        self._queue.put_nowait((_DONE, None))
        if kind == _ERROR:
            raise value
        raise StopAsyncIteration

    def close(self) -> None:
        if not self._subscription.closed:
            self._subscription.unsubscribe()
            self._queue.put_nowait((_DONE, None))

    async def aclose(self) -> None:
        self.close()

    async def __aenter__(self) -> "StreamIterator[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False


def from_source(factory: Callable[[], AsyncSource[T]], *, name: Optional[str] = None) -> Stream[T]:
    """Stream the values of whatever ``factory`` returns.

    Plain values emit once, awaitables emit their result, async iterables
    emit every item they yield.
    """

    async def produce(emit: Emit[T]) -> None:
        source = factory()
        if hasattr(source, "__aiter__"):
            if hasattr(source, "aclose"):
                async with contextlib.aclosing(source):  # type: ignore[type-var]
                    async for value in source:  # type: ignore[union-attr]
                        emit(value)
            else:
                async for value in source:  # type: ignore[union-attr]
                    emit(value)
        elif inspect.isawaitable(source):
            emit(await source)
        else:
            emit(source)  # type: ignore[arg-type]

    return Stream(produce, name=name or "from_source")


def just(value: T) -> Stream[T]:
    async def produce(emit: Emit[T]) -> None:
        emit(value)

    return Stream(produce, name="just")


def map_stream(stream: Stream[T], fn: Callable[[T], U]) -> Stream[U]:
    async def produce(emit: Emit[U]) -> None:
        await stream.run(lambda value: emit(fn(value)))

    return Stream(produce, name=stream.name)


def distinct_until_changed(stream: Stream[T]) -> Stream[T]:
    """Drop values equal to the previously emitted one."""

    async def produce(emit: Emit[T]) -> None:
        last: Any = _UNSET

        def on_value(value: T) -> None:
            nonlocal last
            if last is not _UNSET and value == last:
                return
            last = value
            emit(value)

        await stream.run(on_value)

    return Stream(produce, name=stream.name)


def catch_error(stream: Stream[T], handler: Callable[[Exception], T]) -> Stream[T]:
    """On failure, emit ``handler(exc)`` as the final value instead of failing."""

    async def produce(emit: Emit[T]) -> None:
        try:
            await stream.run(emit)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            emit(handler(exc))

    return Stream(produce, name=stream.name)


def combine_latest(streams: Sequence[Stream[T]]) -> Stream[List[T]]:
    """Emit the latest value of every input once all inputs have emitted.

    With no inputs, a single empty list is emitted.
    """

    inputs = list(streams)

    async def produce(emit: Emit[List[T]]) -> None:
        if not inputs:
            emit([])
            return
        latest: List[Any] = [_UNSET] * len(inputs)

        def on_value_at(index: int) -> Emit[T]:
            def on_value(value: T) -> None:
                latest[index] = value
                if all(v is not _UNSET for v in latest):
                    emit(list(latest))

            return on_value

        async with TaskScope("combine_latest") as scope:
            tasks = [
                scope.spawn(s.run(on_value_at(i)), name=f"combine_latest[{i}]")
                for i, s in enumerate(inputs)
            ]
            await asyncio.gather(*tasks)

    return Stream(produce, name="combine_latest")


def switch_map(stream: Stream[T], project: Callable[[T], Stream[U]]) -> Stream[U]:
    """Map each outer value to an inner stream, cancelling the previous one.

    Completes once the outer stream and the current inner stream complete.
    """

    async def produce(emit: Emit[U]) -> None:
        loop = asyncio.get_running_loop()
        failure: asyncio.Future[None] = loop.create_future()
        current: Optional[asyncio.Task[None]] = None

        async def guarded(start: Callable[[], Awaitable[None]]) -> None:
            try:
                await start()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                if not failure.done():
                    failure.set_exception(exc)

        async with TaskScope("switch_map") as scope:

            def on_outer(value: T) -> None:
                nonlocal current
                if current is not None:
                    current.cancel()
                inner = project(value)
                current = scope.spawn(guarded(lambda: inner.run(emit)), name="switch_map.inner")

            outer = scope.spawn(guarded(lambda: stream.run(on_outer)), name="switch_map.outer")
            while not failure.done():
                pending = [t for t in (outer, current) if t is not None and not t.done()]
                if not pending:
                    break
                await asyncio.wait([*pending, failure], return_when=asyncio.FIRST_COMPLETED)

        if failure.done():
            failure.result()
        else:
            failure.cancel()

    return Stream(produce, name="switch_map")
