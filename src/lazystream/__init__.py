"""
The package `lazystream` provides a lazy, pull-based asynchronous stream for Python ``asyncio``.

A stream is built over a potentially unlimited, expensive-to-produce sequence
(e.g. training examples), transformed by a fixed set of operators
(``map``, ``filter``, ``batch``, ``take``, ``skip``, ``concatenate``, ``prefetch``, ``shuffle``),
and consumed one element at a time without materializing the whole sequence.

See :mod:`lazystream.stream` for details.

To install, do

::

   python3 -m pip install lazystream
"""

__version__ = '0.1.0'


from . import stream
from ._logging import config_logger
from .stream import (
    END,
    EndOfStream,
    Stream,
    stream_from_concatenated,
    stream_from_concatenated_function,
    stream_from_function,
    stream_from_items,
)
