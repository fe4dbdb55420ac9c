"""
The module ``lazystream.stream`` provides a lazy, pull-based asynchronous stream
with a fixed set of composable operators.

The target use case is feeding a consumer (say, a model training loop)
from a long, possibly unlimited sequence of elements that are expensive to produce,
without materializing the whole sequence.

Introduction
============

A stream is created from a sequence, from a function, or by concatenating
other streams:

>>> import asyncio
>>> from lazystream.stream import END, stream_from_items
>>> async def main():
...     s = stream_from_items(range(10)).map(lambda x: x * 2).filter(lambda x: x % 3 == 0)
...     return await s.collect_remaining()
>>> asyncio.run(main())
[0, 6, 12, 18]

Operators return a new stream wrapping the old one. Nothing happens until
the consumer pulls, by calling :meth:`Stream.next` (or iterating with ``async for``).
Each call of ``next`` issues a "request" and returns an awaitable for its result,
which is either an element or the marker :data:`END`. ``END`` is
never confused with falsy elements such as ``0``, ``''`` or ``None``:

>>> async def main():
...     s = stream_from_items([0, None, ''])
...     return [await s.next() for _ in range(5)]
>>> asyncio.run(main())
[0, None, '', END, END]

Several requests may be outstanding at once. A stream serves them in the order
they were issued. :meth:`Stream.prefetch` uses this to keep a number of requests
to its upstream in flight, so that elements that need slow, async work
(e.g. I/O) are produced concurrently:

>>> from lazystream.stream import stream_from_function
>>> async def fetch():
...     await asyncio.sleep(0.01)
...     return 1
>>> async def main():
...     s = stream_from_function(fetch).take(20).prefetch(10)
...     return sum([x async for x in s])
>>> asyncio.run(main())
20

:meth:`Stream.shuffle` performs a sliding-window shuffle with an optional seed:

>>> async def main():
...     a = await stream_from_items(range(8)).shuffle(4, seed='abc').collect_remaining()
...     b = await stream_from_items(range(8)).shuffle(4, seed='abc').collect_remaining()
...     return a == b, sorted(a)
>>> asyncio.run(main())
(True, [0, 1, 2, 3, 4, 5, 6, 7])

Concatenation fetches the first underlying stream right away,
hence it is a coroutine:

>>> from lazystream.stream import stream_from_concatenated
>>> async def main():
...     streams = stream_from_items([stream_from_items([1, 2]), stream_from_items([3])])
...     s = await stream_from_concatenated(streams)
...     return await s.collect_remaining()
>>> asyncio.run(main())
[1, 2, 3]

A stream is read-once. If an exception is raised by a function passed to
``map`` or ``filter`` (or by the function of :func:`stream_from_function`),
it propagates to whoever awaits the affected request,
and the stream should not be used after that.
"""

from ._stream import (
    END,
    BatchPump,
    ChainedStream,
    EndOfStream,
    FilterPump,
    FunctionCallStream,
    ItemStream,
    MapPump,
    Prefetcher,
    QueueStream,
    Shuffler,
    Skipper,
    Stream,
    Taker,
    stream_from_concatenated,
    stream_from_concatenated_function,
    stream_from_function,
    stream_from_items,
)

__all__ = [
    'END',
    'EndOfStream',
    'Stream',
    'stream_from_items',
    'stream_from_function',
    'stream_from_concatenated',
    'stream_from_concatenated_function',
    'ItemStream',
    'FunctionCallStream',
    'Skipper',
    'Taker',
    'QueueStream',
    'MapPump',
    'FilterPump',
    'BatchPump',
    'ChainedStream',
    'Prefetcher',
    'Shuffler',
]
