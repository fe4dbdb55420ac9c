import asyncio
import random

import pytest

from lazystream import END, stream_from_function


def make_delayed_stream(items, max_delay=0.01):
    # The element for a request is fixed when the request is issued,
    # but it is delivered after a random delay, so that outstanding requests
    # resolve out of order.
    it = iter(items)

    def produce():
        x = next(it, END)

        async def deliver():
            await asyncio.sleep(random.random() * max_delay)
            return x

        return deliver()

    return stream_from_function(produce)


@pytest.fixture
def delayed():
    return make_delayed_stream
