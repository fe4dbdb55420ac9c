"""
Configure logging, mainly the format.

A call to the function ``config_logger`` in a launching script is all that is needed
to set up the logging format. Usually the 'level' argument is the only argument
one needs to customize::

  config_logger(level='debug')

If `level` is not specified, environment variable `LOGLEVEL` is used;
if that is not set, a default level (currently 'info') is used.

Do not call this in library modules.
Library modules should have ::

   logger = logging.getLogger(__name__)

and then just use ``logger`` to write logs without concern about formatting,
destination of the log message, etc.
The stream stages of this package log at the 'debug' level only.
"""
import logging
import os
import time
import warnings
from datetime import datetime, timezone as _timezone
from logging import Formatter

import pytz

DEFAULT_LEVEL = 'info'


def log_level_to_str(level: int) -> str:
    '''
    `level`: `logging.DEBUG`, `logging.INFO`, etc.
    '''
    return logging.getLevelName(level)
    # Return uppercase 'DEBUG', 'INFO', etc.


def log_level_from_str(level: str) -> int:
    '''
    `level`: 'debug', 'info', etc.
    '''
    return getattr(logging, level.upper())


def _make_converter(timezone: str):
    if timezone.upper() == 'UTC':
        return time.gmtime
    if timezone.lower() == 'local':
        return time.localtime
    my_tz = pytz.timezone(timezone)

    def custom_time(*args):
        ts = args[-1] if args else None
        utc_dt = datetime.fromtimestamp(time.time() if ts is None else ts, _timezone.utc)
        return utc_dt.astimezone(my_tz).timetuple()

    return custom_time


def _make_config(
        *,
        level: str | int | None = None,
        with_thread_name: bool = False,
        timezone: str = 'UTC',
        **kwargs) -> dict:
    # 'level' is string form of the logging levels: 'debug', 'info', 'warning', 'error', 'critical'.
    if level is None:
        level = os.environ.get('LOGLEVEL', DEFAULT_LEVEL)
    if level not in (logging.DEBUG, logging.INFO, logging.WARNING,
                     logging.ERROR, logging.CRITICAL):
        level = log_level_from_str(level)

    Formatter.converter = _make_converter(timezone)

    datefmt = '%Y-%m-%d %H:%M:%S'

    msg = '[%(asctime)s.%(msecs)03d ' + timezone + \
        '; %(levelname)s; %(name)s, %(funcName)s, %(lineno)d]'
    msg += '  '

    if with_thread_name:
        fmt = f'{msg}[%(threadName)s]  %(message)s'
    else:
        fmt = f'{msg}%(message)s'

    return dict(format=fmt, datefmt=datefmt, level=level, **kwargs)


def config_logger(**kwargs) -> None:
    kw = _make_config(**kwargs)

    rootlogger = logging.getLogger()
    if rootlogger.hasHandlers():
        rootlogger.handlers = []

    logging.basicConfig(**kw)

    logging.captureWarnings(True)
    warnings.filterwarnings('default', category=ResourceWarning)
    warnings.filterwarnings('default', category=DeprecationWarning)

    # This is how to turn on asyncio debugging.
    # Don't turn it on in this function.
    # asyncio.get_event_loop().set_debug(True)
