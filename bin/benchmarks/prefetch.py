import asyncio
import time

from lazystream import stream_from_function, stream_from_items

NX = 100


async def inc(x):
    await asyncio.sleep(0.1)
    return x + 1


def data():
    it = iter(range(NX))

    async def fetch():
        await asyncio.sleep(0.1)
        return next(it)

    return stream_from_function(fetch).take(NX)


async def plain():
    result = []
    t0 = time.perf_counter()
    for x in range(NX):
        await asyncio.sleep(0.1)
        result.append(await inc(x))
    t1 = time.perf_counter()

    print('time elapsed:', t1 - t0)
    assert result == list(range(1, NX + 1))


async def prefetched(buffer_size):
    t0 = time.perf_counter()
    s = data().prefetch(buffer_size).map(inc)

    result = await s.collect_remaining()
    t1 = time.perf_counter()

    print('time elapsed:', t1 - t0)
    assert sorted(result) == list(range(1, NX + 1))


async def shuffled(buffer_size):
    t0 = time.perf_counter()
    s = stream_from_items(range(NX * 1000)).shuffle(buffer_size, seed='bench').batch(100)

    n = await s.drain()
    t1 = time.perf_counter()

    print('time elapsed:', t1 - t0)
    assert n == NX * 10


print('prefetched 100')
asyncio.run(prefetched(100))

print('')
print('prefetched 10')
asyncio.run(prefetched(10))

print('')
print('prefetched 1')
asyncio.run(prefetched(1))

print('')
print('shuffled 1000')
asyncio.run(shuffled(1000))

print('')
print('plain')
asyncio.run(plain())
