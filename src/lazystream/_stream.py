# Requests vs results
#
# Calling ``stream.next()`` *issues* a request and immediately returns
# an awaitable (an ``asyncio.Future`` or ``Task``) for the result.
# Several requests to the same stream may be outstanding at once,
# e.g. the ones held in the buffer of a ``Prefetcher``.
# A stream produces results for its requests in the order they were issued.
#
# Most stages get that for free from ``Stream.next``, which runs ``_next``
# in a task guarded by a FIFO ``asyncio.Lock``. Stages that know the answer
# at issue time (leaf producers, ``Taker``) override ``next`` directly.
# ``ChainedStream`` threads every request through the state produced by
# the previous request.

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from typing import (
    Any,
    Generic,
    NamedTuple,
    TypeVar,
)

from typing_extensions import Self  # In 3.11, import this from `typing`

from ._queues import GrowingRingBuffer, RingBuffer

logger = logging.getLogger(__name__)


T = TypeVar('T')  # indicates input data element
TT = TypeVar('TT')  # indicates output after an op on `T`
Elem = TypeVar('Elem')


class EndOfStream:
    """
    Type of the end-of-stream marker :data:`END`.

    There is only one instance. Compare with ``is``.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return 'END'

    def __bool__(self):
        return False

    def __reduce__(self):
        return (EndOfStream, ())


END = EndOfStream()


def _settled(value) -> asyncio.Future:
    fut = asyncio.get_running_loop().create_future()
    fut.set_result(value)
    return fut


async def _resolve(z):
    if inspect.isawaitable(z):
        return await z
    return z


class Stream(Generic[Elem]):
    """
    The base class of all stream stages.

    A ``Stream`` is a lazy, read-once sequence of elements that is consumed
    by pulling, one request at a time::

        s = stream_from_items(range(100)).map(f).filter(g).batch(10).prefetch(4)
        while (batch := await s.next()) is not END:
            ...

    Each operator method returns a *new* stage wrapping the current one;
    nothing is pulled from upstream until ``next`` is called on the result.
    A stage has a single consumer. Once it has yielded :data:`END`, it yields
    ``END`` for every further request.

    A ``Stream`` is also an async iterator, hence ``async for x in s`` works.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._finished = False

    def next(self) -> Awaitable[Elem | EndOfStream]:
        """
        Issue a request for the next element.

        The returned awaitable resolves to the element, or to :data:`END`
        if the stream is exhausted. Requests are served strictly in the order
        they were issued, even if the caller awaits them in a different order.

        This must be called while an event loop is running.
        """
        return asyncio.get_running_loop().create_task(self._serve())

    async def _serve(self):
        async with self._lock:
            if self._finished:
                return END
            z = await self._next()
            if z is END:
                self._finished = True
            return z

    async def _next(self) -> Elem | EndOfStream:
        raise NotImplementedError

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> Elem:
        z = await self.next()
        if z is END:
            raise StopAsyncIteration
        return z

    async def collect_remaining(self) -> list[Elem]:
        """
        Collect all remaining elements into a list.

        This succeeds only for bounded streams that fit in memory.
        Useful for testing.
        """
        result = []
        while (x := await self.next()) is not END:
            result.append(x)
        return result

    async def drain(self) -> int:
        """
        Pull all remaining elements, discarding them.

        Return the number of elements pulled.
        """
        n = 0
        while await self.next() is not END:
            n += 1
        return n

    def map(self, func: Callable[[T], Any], /, **kwargs) -> Stream:
        """
        Transform each element by ``func``.

        Parameters
        ----------
        func
            Takes an element and returns the transformed element,
            or an awaitable of it (e.g. ``func`` is an ``async def`` function).
        **kwargs
            Additional keyword arguments to ``func``.
        """
        if kwargs:
            func = functools.partial(func, **kwargs)
        return QueueStream(MapPump(self, func))

    def filter(self, func: Callable[[T], bool], /, **kwargs) -> Stream:
        """
        Keep the elements for which ``func`` returns true.

        ``func`` may return an awaitable, which is awaited.
        ``**kwargs`` are passed on to ``func``.
        """
        if kwargs:
            func = functools.partial(func, **kwargs)
        return QueueStream(FilterPump(self, func))

    def batch(self, batch_size: int, small_last_batch: bool = True) -> Stream:
        """
        Group consecutive elements into lists of length ``batch_size``.

        Parameters
        ----------
        batch_size
            Number of elements in each batch. Must be positive.
        small_last_batch
            Whether to emit the final batch if it has fewer than ``batch_size``
            elements. If ``False``, those elements are dropped.
        """
        return QueueStream(BatchPump(self, batch_size, small_last_batch))

    def take(self, count: int | None = None) -> Stream:
        """
        Limit the stream to at most ``count`` elements.

        If ``count`` is ``None`` or negative, ``self`` is returned unaltered.
        """
        if count is None or count < 0:
            return self
        return Taker(self, count)

    def skip(self, count: int | None = None) -> Stream:
        """
        Skip the first ``count`` elements.

        If ``count`` is ``None`` or negative, ``self`` is returned unaltered.
        """
        if count is None or count < 0:
            return self
        return Skipper(self, count)

    async def concatenate(self, other: Stream) -> ChainedStream:
        """
        Return a stream of the elements of ``self`` followed by those of ``other``.

        This is a coroutine because the concatenating stage fetches its
        first underlying stream upon creation.
        """
        return await ChainedStream.create(ItemStream([self, other]))

    def prefetch(self, buffer_size: int) -> Prefetcher:
        """
        Keep up to ``buffer_size`` requests to ``self`` outstanding.

        Elements are returned in the original order. No guarantee is made
        about when the outstanding requests complete.
        """
        return Prefetcher(self, buffer_size)

    def shuffle(self, buffer_size: int, seed: str | None = None) -> Shuffler:
        """
        Randomly shuffle the elements within a sliding window.

        Parameters
        ----------
        buffer_size
            Number of outstanding elements to sample from. An element can come
            out at most ``buffer_size - 1`` positions ahead of its original
            position. ``1`` means no shuffling.
        seed
            Seed of the random generator. The same seed on the same input
            produces the same output. If ``None``, the result is not reproducible.
        """
        return Shuffler(self, buffer_size, seed)


class ItemStream(Stream[Elem]):
    def __init__(self, items: Sequence[Elem]):
        super().__init__()
        self._items = items
        self._trav = 0

    def next(self):
        if self._trav >= len(self._items):
            return _settled(END)
        z = self._items[self._trav]
        self._trav += 1
        return _settled(z)


class FunctionCallStream(Stream[Elem]):
    """
    Calls ``func()`` to produce every element, hence is unlimited unless
    ``func`` returns :data:`END` or the stream is limited by ``take``.

    ``func`` is called at the time a request is issued. If it returns
    an awaitable, that is scheduled right away, so that several outstanding
    requests (e.g. in a ``Prefetcher``) make progress concurrently.
    Results are still settled in issue order. Once ``func`` has returned
    ``END``, it is not called again, and every later request gets ``END``.
    """

    def __init__(self, func: Callable[[], Elem | Awaitable[Elem]], **kwargs):
        super().__init__()
        if kwargs:
            func = functools.partial(func, **kwargs)
        self._func = func
        self._last = None  # the most recently issued request

    def next(self):
        if self._finished:
            return _settled(END)
        loop = asyncio.get_running_loop()
        try:
            z = self._func()
        except Exception as e:
            fut = loop.create_future()
            fut.set_exception(e)
            self._last = fut
            return fut
        if inspect.isawaitable(z) or not (self._last is None or self._last.done()):
            fut = loop.create_task(self._settle_in_order(z, self._last))
        else:
            if z is END:
                self._finished = True
            fut = _settled(z)
        self._last = fut
        return fut

    async def _settle_in_order(self, z, prev):
        x = await _resolve(z)
        if prev is not None:
            # Wait for the previous request to settle, without taking its result.
            await asyncio.wait([prev])
        if self._finished:
            return END
        if x is END:
            self._finished = True
        return x


class Skipper(Stream[Elem]):
    def __init__(self, instream: Stream[Elem], /, max_count: int):
        super().__init__()
        self._instream = instream
        self._max_count = max_count
        self._count = 0

    async def _next(self):
        while self._count < self._max_count:
            self._count += 1
            if await self._instream.next() is END:
                # Upstream ended before the skipping is done.
                return END
        return await self._instream.next()


class Taker(Stream[Elem]):
    def __init__(self, instream: Stream[Elem], /, max_count: int):
        super().__init__()
        self._instream = instream
        self._max_count = max_count
        self._count = 0

    def next(self):
        if self._count >= self._max_count:
            return _settled(END)
        self._count += 1
        return self._instream.next()


class QueueStream(Stream[Elem]):
    """
    A stage that keeps an output queue of elements ready to be returned.

    This is needed when the transformation is not one-to-one, so that
    a variable number of upstream pulls go into each element of this stream.
    The upstream work is done by ``pump``, an async callable that takes the
    output queue, does one unit of work, and returns

    - ``True`` if it pulled from upstream and/or added to the queue
      (possibly nothing was added, e.g. the element was filtered out);
    - ``False`` if upstream is exhausted and nothing more will be added.
    """

    def __init__(self, pump: Callable[[GrowingRingBuffer], Awaitable[bool]]):
        super().__init__()
        self._pump = pump
        self._queue = GrowingRingBuffer()

    async def _next(self):
        q = self._queue
        while q.empty():
            if not await self._pump(q):
                return END
        return q.shift()


class MapPump:
    def __init__(self, instream: Stream, func: Callable[[T], TT | Awaitable[TT]]):
        self._instream = instream
        self._func = func

    async def __call__(self, q: GrowingRingBuffer) -> bool:
        x = await self._instream.next()
        if x is END:
            return False
        q.push(await _resolve(self._func(x)))
        return True


class FilterPump:
    def __init__(self, instream: Stream, func: Callable[[T], bool | Awaitable[bool]]):
        self._instream = instream
        self._func = func

    async def __call__(self, q: GrowingRingBuffer) -> bool:
        x = await self._instream.next()
        if x is END:
            return False
        if await _resolve(self._func(x)):
            q.push(x)
        return True


class BatchPump:
    def __init__(self, instream: Stream, batch_size: int, small_last_batch: bool = True):
        assert batch_size > 0
        self._instream = instream
        self._batch_size = batch_size
        self._small_last_batch = small_last_batch
        self._batch = []

    async def __call__(self, q: GrowingRingBuffer) -> bool:
        x = await self._instream.next()
        if x is END:
            if self._small_last_batch and self._batch:
                q.push(self._batch)
                self._batch = []
                # Report success once more to emit the small last batch.
                # The next call will find the batch empty.
                return True
            return False
        self._batch.append(x)
        if len(self._batch) == self._batch_size:
            q.push(self._batch)
            self._batch = []
        return True


class _ChainState(NamedTuple):
    item: Any
    stream: Stream | None  # `None` means all underlying streams are exhausted
    streams: Stream[Stream]
    error: BaseException | None = None  # set once a request has failed


async def _next_chain_state(state: _ChainState) -> _ChainState:
    stream = state.stream
    while stream is not None:
        item = await stream.next()
        if item is not END:
            return _ChainState(item, stream, state.streams)
        # The current stream is exhausted; move on to the next one
        # within the same request.
        stream = await state.streams.next()
        if stream is END:
            logger.debug('all underlying streams of %r are exhausted', state.streams)
            stream = None
        else:
            logger.debug('moving on to the next underlying stream %r', stream)
    return _ChainState(END, None, state.streams)


def _pass_on(after: asyncio.Future, state: asyncio.Future, task):
    # A request cancelled before it got to the chain state passes the
    # previous state on unchanged.
    if not state.done():
        after.add_done_callback(lambda f: state.set_result(f.result()))


class ChainedStream(Stream[Elem]):
    """
    Concatenates a stream of streams.

    Elements are returned in the right order according to when ``next``
    was called, even if the underlying fetches complete in a different order:
    every request starts from the chain state left by the previous request.

    If a request fails, every later request raises the same exception.
    The failure is carried in the chain state rather than in a failed future,
    so an abandoned stream does not leave exceptions nobody has retrieved.
    A request cancelled while earlier requests are pending does not take
    an element; one cancelled while fetching counts as failed.

    Use :meth:`create` to construct an instance.
    """

    def __init__(self, streams: Stream[Stream[Elem]], first: Stream[Elem] | None):
        super().__init__()
        self._state = _settled(_ChainState(END, first, streams))

    @classmethod
    async def create(cls, streams: Stream[Stream[Elem]]) -> ChainedStream[Elem]:
        first = await streams.next()
        return cls(streams, None if first is END else first)

    def next(self):
        loop = asyncio.get_running_loop()
        after = self._state
        state = self._state = loop.create_future()
        task = loop.create_task(self._advance(after, state))
        task.add_done_callback(functools.partial(_pass_on, after, state))
        return task

    async def _advance(self, after: asyncio.Future, state: asyncio.Future):
        # `after` and `state` always get a result, never an exception.
        prev = await asyncio.shield(after)
        if prev.error is not None:
            state.set_result(prev)
            raise prev.error
        try:
            z = await _next_chain_state(prev)
        except BaseException as e:
            state.set_result(prev._replace(error=e))
            raise
        state.set_result(z)
        return z.item


class Prefetcher(Stream[Elem]):
    """
    Keeps a fixed number of requests to the upstream outstanding,
    and returns their results in FIFO order.

    After a failure, requests already issued stay in the buffer. If the
    stream is then abandoned, asyncio may log those that failed too as
    "exception was never retrieved".
    """

    def __init__(self, instream: Stream[Elem], /, buffer_size: int):
        assert buffer_size > 0
        super().__init__()
        self._instream = instream
        self._buffer = RingBuffer(buffer_size)
        self._upstream_exhausted = False

    def _refill(self):
        # Issue requests until the buffer is full. Does not wait on them.
        if self._upstream_exhausted:
            return
        buffer = self._buffer
        while not buffer.full():
            buffer.push(self._instream.next())

    def _mark_exhausted(self):
        if not self._upstream_exhausted:
            logger.debug('upstream of %r is exhausted', self)
            self._upstream_exhausted = True

    async def _next(self):
        if self._upstream_exhausted:
            # Requests left in the buffer were issued after the one that
            # returned `END`; they are not looked at.
            return END
        self._refill()
        if self._buffer.empty():
            return END
        z = await self._buffer.shift()
        if z is END:
            self._mark_exhausted()
        self._refill()
        return z


class Shuffler(Prefetcher[Elem]):
    """
    A sliding-window random shuffle.

    Like ``Prefetcher``, this keeps ``buffer_size`` requests outstanding,
    but picks one at random each time instead of the oldest one.
    The picked slot is refilled in place with a new request.
    Mixing improves as ``buffer_size`` increases.
    """

    def __init__(self, instream: Stream[Elem], /, buffer_size: int, seed: str | None = None):
        super().__init__(instream, buffer_size)
        self._random = random.Random(seed)

    def _choose_index(self) -> int:
        return int(self._random.random() * len(self._buffer))

    async def _next(self):
        self._refill()
        buffer = self._buffer
        while not buffer.empty():
            idx = self._choose_index()
            z = await buffer[idx]
            if z is END:
                self._mark_exhausted()
                buffer.excise(idx)
                continue
            if self._upstream_exhausted:
                buffer.excise(idx)
            else:
                buffer.replace(idx, self._instream.next())
            return z
        return END


def stream_from_items(items: Sequence[Elem]) -> ItemStream[Elem]:
    """
    Create a stream from a sequence of items, e.g. a list.
    """
    return ItemStream(items)


def stream_from_function(func: Callable[[], Any], /, **kwargs) -> FunctionCallStream:
    """
    Create a stream that calls ``func`` for every element.

    ``func`` takes no positional argument (``**kwargs`` are passed on to it)
    and returns an element, or an awaitable of one.
    It signals the end of the stream by returning :data:`END`.
    """
    return FunctionCallStream(func, **kwargs)


async def stream_from_concatenated(streams: Stream[Stream[Elem]]) -> ChainedStream[Elem]:
    """
    Create a stream by concatenating the streams provided by ``streams``.

    This can be thought of as a "flatten" operation.
    """
    return await ChainedStream.create(streams)


async def stream_from_concatenated_function(
    func: Callable[[], Stream[Elem]], count: int
) -> ChainedStream[Elem]:
    """
    Create a stream by concatenating the streams produced by
    calling ``func`` ``count`` times.

    Since a stream is read-once, it can not be repeated, but this has
    a similar effect::

        s = await stream_from_concatenated_function(lambda: stream_from_items(data), 3)
    """
    return await stream_from_concatenated(stream_from_function(func).take(count))
