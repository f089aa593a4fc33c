"""Simulated streaming: reveal a finished string in fixed-size chunks on a timer."""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 2
DEFAULT_DELAY_SEC = 0.05


def _validate(chunk_size: int, delay_sec: float) -> None:
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    if delay_sec < 0:
        raise ValueError(f"delay_sec must be >= 0, got {delay_sec}")


async def reveal_chunks(
    content: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    delay_sec: float = DEFAULT_DELAY_SEC,
) -> AsyncIterator[str]:
    """Yield ``content`` ``chunk_size`` characters at a time, one chunk per tick.

    The sequence ends one tick after the last chunk. Closing it (or cancelling
    the consuming task) stops the reveal.
    """
    _validate(chunk_size, delay_sec)
    cursor = 0
    while True:
        await asyncio.sleep(delay_sec)
        if cursor >= len(content):
            return
        yield content[cursor:cursor + chunk_size]
        cursor += chunk_size


class StreamingRevealer:
    """Drives one reveal at a time into callbacks.

    Starting a new reveal stops the running one first. ``stop()`` is
    synchronous and idempotent and never fires ``on_complete``.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, delay_sec: float = DEFAULT_DELAY_SEC) -> None:
        _validate(chunk_size, delay_sec)
        self.chunk_size = chunk_size
        self.delay_sec = delay_sec
        self._task: asyncio.Task | None = None
        self._content = ""
        self._cursor = 0
        self._progress = 0

    @property
    def progress(self) -> int:
        """0-100, computed from the cursor before each advance."""
        return self._progress

    @property
    def is_streaming(self) -> bool:
        return self._task is not None and not self._task.done()

    def stream(
        self,
        content: str,
        chunk_size: int | None = None,
        delay_sec: float | None = None,
    ) -> AsyncIterator[str]:
        """Async sequence of chunks for ``async for`` consumers."""
        return reveal_chunks(
            content,
            self.chunk_size if chunk_size is None else chunk_size,
            self.delay_sec if delay_sec is None else delay_sec,
        )

    def start(
        self,
        content: str,
        *,
        chunk_size: int | None = None,
        delay_sec: float | None = None,
        on_chunk: Callable[[str], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        """Begin revealing ``content``. Must be called with a running event loop."""
        chunk_size = self.chunk_size if chunk_size is None else chunk_size
        delay_sec = self.delay_sec if delay_sec is None else delay_sec
        _validate(chunk_size, delay_sec)

        self.stop()
        self._content = content
        self._task = asyncio.get_running_loop().create_task(
            self._run(content, chunk_size, delay_sec, on_chunk, on_complete)
        )
        logger.debug("Reveal started: %d chars, chunk=%d, delay=%.3fs", len(content), chunk_size, delay_sec)

    async def _run(
        self,
        content: str,
        chunk_size: int,
        delay_sec: float,
        on_chunk: Callable[[str], None] | None,
        on_complete: Callable[[], None] | None,
    ) -> None:
        async for chunk in reveal_chunks(content, chunk_size, delay_sec):
            self._progress = int(self._cursor * 100 / len(content))
            self._cursor += len(chunk)
            if on_chunk is not None:
                on_chunk(chunk)

        self._progress = 100
        self._task = None
        if on_complete is not None:
            on_complete()

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Reveal stopped at %d/%d chars", self._cursor, len(self._content))
        self._content = ""
        self._cursor = 0
        self._progress = 0

    async def wait(self) -> None:
        """Return once the active reveal has completed or been stopped."""
        task = self._task
        if task is None:
            return
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()  # type: ignore[misc]
