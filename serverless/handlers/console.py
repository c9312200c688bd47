"""
Console line reader.

stdin is read by a daemon thread that hands each line to the event loop with
call_soon_threadsafe. The thread never blocks loop shutdown: cancelling the
consumer (Ctrl+C) ends the process even while readline() is still waiting.
"""

import asyncio
import sys
import threading
from typing import AsyncIterator, Optional, TextIO

import structlog

logger = structlog.get_logger(__name__)


def _post(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue, item: Optional[str]) -> bool:
    try:
        loop.call_soon_threadsafe(queue.put_nowait, item)
    except RuntimeError:
        # loop already closed
        return False
    return True


def _pump(stream: TextIO, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> None:
    for line in iter(stream.readline, ""):
        if not _post(loop, queue, line.rstrip("\r\n")):
            return
    logger.debug("console_eof")
    _post(loop, queue, None)


def start_reader(queue: asyncio.Queue, stream: Optional[TextIO] = None) -> threading.Thread:
    """
    Producer: copy console lines into `queue`, then a None sentinel at EOF.

    Must be called from the event loop thread.
    """
    thread = threading.Thread(
        target=_pump,
        args=(stream or sys.stdin, asyncio.get_running_loop(), queue),
        name="console-reader",
        daemon=True,
    )
    thread.start()
    return thread


async def read_lines(stream: Optional[TextIO] = None) -> AsyncIterator[str]:
    """Yield lines (without the trailing newline) until EOF."""
    queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
    start_reader(queue, stream)
    while True:
        line = await queue.get()
        if line is None:
            return
        yield line
