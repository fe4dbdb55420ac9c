import asyncio
import random

import pytest

from lazystream import (
    END,
    stream_from_concatenated,
    stream_from_concatenated_function,
    stream_from_function,
    stream_from_items,
)
from lazystream.stream import ChainedStream


@pytest.mark.asyncio
async def test_concatenated():
    streams = stream_from_items([stream_from_items(x) for x in [[1, 2], [3], [4, 5, 6]]])
    s = await stream_from_concatenated(streams)
    assert isinstance(s, ChainedStream)
    assert await s.collect_remaining() == [1, 2, 3, 4, 5, 6]
    assert await s.next() is END


@pytest.mark.asyncio
async def test_concatenated_empty():
    s = await stream_from_concatenated(stream_from_items([]))
    assert await s.next() is END
    assert await s.next() is END

    streams = stream_from_items([stream_from_items(x) for x in [[], [1], [], [], [2, 3], []]])
    s = await stream_from_concatenated(streams)
    assert await s.collect_remaining() == [1, 2, 3]


@pytest.mark.asyncio
async def test_concatenated_delayed(delayed):
    for _ in range(5):
        streams = delayed([delayed(x) for x in [[1, 2], [3], [4, 5, 6]]])
        s = await stream_from_concatenated(streams)
        assert await s.collect_remaining() == [1, 2, 3, 4, 5, 6]


@pytest.mark.asyncio
async def test_concatenated_overlapping(delayed):
    data = [[random.randint(0, 100) for _ in range(random.randint(0, 5))] for _ in range(20)]
    expected = [x for y in data for x in y]

    streams = delayed([delayed(x, 0.02) for x in data])
    s = await stream_from_concatenated(streams)
    futs = [s.next() for _ in range(len(expected) + 3)]
    indices = list(range(len(futs)))
    random.shuffle(indices)
    got = [None] * len(futs)
    for i in indices:
        got[i] = await futs[i]
    assert got == expected + [END, END, END]


@pytest.mark.asyncio
async def test_concatenated_gather(delayed):
    streams = delayed([delayed(x) for x in [[1, 2], [3], [4, 5, 6]]])
    s = await stream_from_concatenated(streams)
    got = await asyncio.gather(*[s.next() for _ in range(8)])
    assert got == [1, 2, 3, 4, 5, 6, END, END]


@pytest.mark.asyncio
async def test_concatenate():
    a = stream_from_items([1, 2, 3])
    b = stream_from_items([4, 5]).map(lambda x: x * 10)
    s = await a.concatenate(b)
    assert await s.collect_remaining() == [1, 2, 3, 40, 50]

    s = await stream_from_items([]).concatenate(stream_from_items([0]))
    assert await s.collect_remaining() == [0]

    s = await (await stream_from_items([1]).concatenate(stream_from_items([2]))).concatenate(
        stream_from_items([3]))
    assert await s.collect_remaining() == [1, 2, 3]


@pytest.mark.asyncio
async def test_concatenated_function():
    s = await stream_from_concatenated_function(lambda: stream_from_items(['a', 'b']), 3)
    assert await s.collect_remaining() == ['a', 'b', 'a', 'b', 'a', 'b']

    s = await stream_from_concatenated_function(lambda: stream_from_items(['a', 'b']), 0)
    assert await s.collect_remaining() == []


@pytest.mark.asyncio
async def test_concatenated_fetches_first_stream():
    calls = []

    def make():
        calls.append(1)
        return stream_from_items([len(calls)])

    s = await stream_from_concatenated(stream_from_function(make).take(3))
    assert calls == [1]
    assert await s.collect_remaining() == [1, 2, 3]


@pytest.mark.asyncio
async def test_concatenated_batch(delayed):
    streams = delayed([delayed(range(i * 4, i * 4 + 4)) for i in range(3)])
    s = (await stream_from_concatenated(streams)).batch(5).prefetch(2)
    assert await s.collect_remaining() == [[0, 1, 2, 3, 4], [5, 6, 7, 8, 9], [10, 11]]


@pytest.mark.asyncio
async def test_concatenated_error():
    def f(x):
        return 1 / (x - 2)

    inner = stream_from_items([1, 2, 3]).map(f)
    s = await stream_from_concatenated(stream_from_items([inner, stream_from_items([7])]))
    assert await s.next() == -1.0
    with pytest.raises(ZeroDivisionError):
        await s.next()
    # The stream is not usable after a failure.
    with pytest.raises(ZeroDivisionError):
        await s.next()


@pytest.mark.asyncio
async def test_concatenated_error_overlapping(delayed):
    def f(x):
        return 1 / (x - 2)

    inner = delayed([0, 1, 2, 3]).map(f)
    s = await stream_from_concatenated(stream_from_items([inner]))
    futs = [s.next() for _ in range(5)]
    got = await asyncio.gather(*futs, return_exceptions=True)
    assert got[:2] == [-0.5, -1.0]
    errors = got[2:]
    assert all(isinstance(e, ZeroDivisionError) for e in errors)
    # The same failure is re-raised, not a new one per request.
    assert errors[0] is errors[1] is errors[2]


@pytest.mark.asyncio
async def test_concatenated_cancel(delayed):
    streams = delayed([delayed(x) for x in [[1, 2], [3], [4, 5]]])
    s = await stream_from_concatenated(streams)
    futs = [s.next() for _ in range(4)]
    futs[1].cancel()
    with pytest.raises(asyncio.CancelledError):
        await futs[1]
    assert await futs[0] == 1
    # A cancelled request does not take an element.
    assert await futs[2] == 2
    assert await futs[3] == 3
    assert await s.collect_remaining() == [4, 5]
