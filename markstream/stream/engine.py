import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Callable, Optional, Union

from markstream.config import RevealMode, StreamConfig
from markstream.pipeline.buffer import StreamBuffer
from markstream.pipeline.sanitizer import sanitize_incomplete_markdown
from markstream.reveal.base import RevealTimer
from markstream.reveal.scheduler import RevealScheduler
from markstream.reveal.timers import AsyncioIntervalTimer
from markstream.stream.sources import StreamSource, iterate_source

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamSnapshot:
    content: str
    full_content: str
    sanitized: str
    is_streaming: bool


class _Session:
    """One start-to-end lifetime of stream consumption."""

    def __init__(self, number: int):
        self.number = number
        self.cancelled = False


class MarkdownStream:
    """Streaming Markdown engine.

    Owns an accumulation buffer (everything received), a reveal scheduler
    (what is visible) and at most one live ingestion session. Consumers read
    ``content`` (visible), ``full_content`` (received) and ``sanitized``
    (visible text with unfinished syntax closed) or subscribe to ``on_update``.
    """

    def __init__(
        self,
        source: Optional[StreamSource] = None,
        *,
        config: Optional[StreamConfig] = None,
        timer: Optional[RevealTimer] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
        on_end: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_update: Optional[Callable[[StreamSnapshot], None]] = None,
    ):
        self._config = config or StreamConfig()
        self._source = source
        self._on_chunk = on_chunk
        self._on_end = on_end
        self._on_error = on_error
        self._on_update = on_update

        self._initial_value = self._config.initial_value
        self._buffer = StreamBuffer(self._initial_value)
        self._scheduler = RevealScheduler(
            timer or AsyncioIntervalTimer(),
            mode=self._config.reveal_mode,
            delay=self._config.reveal_delay,
            initial_value=self._initial_value,
            on_reveal=self._handle_reveal,
        )
        self._sanitized = sanitize_incomplete_markdown(self._initial_value)
        self._session: Optional[_Session] = None
        self._session_count = 0
        self._task: Optional[asyncio.Task] = None

    # -- state ---------------------------------------------------------

    @property
    def content(self) -> str:
        return self._scheduler.visible

    @property
    def full_content(self) -> str:
        return self._buffer.value

    @property
    def sanitized(self) -> str:
        return self._sanitized

    @property
    def is_streaming(self) -> bool:
        return self._session is not None

    @property
    def reveal_mode(self) -> RevealMode:
        return self._scheduler.mode

    @property
    def reveal_delay(self) -> float:
        return self._scheduler.delay

    @property
    def scheduler(self) -> RevealScheduler:
        return self._scheduler

    def snapshot(self) -> StreamSnapshot:
        return StreamSnapshot(
            content=self.content,
            full_content=self.full_content,
            sanitized=self._sanitized,
            is_streaming=self.is_streaming,
        )

    # -- control -------------------------------------------------------

    def append_chunk(self, chunk: str) -> None:
        """Push one fragment by hand, outside of (or alongside) a session."""
        if not chunk:
            return
        revealed = len(self._scheduler.visible)
        self._buffer.append(chunk)
        self._scheduler.sync(self._buffer.value)
        if len(self._scheduler.visible) == revealed:
            # Tokens are queued; only the received text moved on.
            self._emit()
        if self._on_chunk is not None:
            self._on_chunk(chunk)

    def set_content(self, value: str) -> None:
        """Jump straight to a fully known document, bypassing streaming."""
        value = value or ""
        self._buffer.reset(value)
        self._scheduler.reset(value)
        self._refresh()

    def reset(self) -> None:
        """Back to the initial value; a live session keeps streaming into it."""
        self._buffer.reset(self._initial_value)
        self._scheduler.reset(self._initial_value)
        self._refresh()

    def set_initial_value(self, value: str) -> None:
        value = value or ""
        if value == self._initial_value:
            return
        self._initial_value = value
        self.reset()

    def set_mode(self, mode: Union[RevealMode, str]) -> None:
        self._scheduler.set_mode(mode)
        if self._scheduler.mode is RevealMode.CHUNK:
            # Tokens dropped by an earlier stop() are shown too.
            self._scheduler.sync(self._buffer.value)

    def set_delay(self, delay) -> None:
        self._scheduler.set_delay(delay)

    def stop(self) -> None:
        """Cancel the live session and drop unrevealed tokens.

        Safe to call at any time, including from inside an event callback.
        """
        session = self._session
        if session is not None:
            logger.debug("Stopping stream session %d", session.number)
            session.cancelled = True
            self._session = None
        self._scheduler.stop()
        if session is not None:
            self._emit()

    async def start(self, source: Optional[StreamSource] = None) -> None:
        """Consume ``source`` (or the configured one) until it ends or ``stop`` is called."""
        active = source if source is not None else self._source
        if active is None:
            return

        self.stop()

        self._session_count += 1
        session = _Session(self._session_count)
        self._session = session
        logger.debug("Starting stream session %d", session.number)
        self._emit()

        try:
            async with aclosing(iterate_source(active)) as chunks:
                async for chunk in chunks:
                    if session.cancelled:
                        break
                    self.append_chunk(chunk)

            if not session.cancelled:
                logger.debug("Stream session %d ended", session.number)
                self._finish(session)
                if self._on_end is not None:
                    self._on_end()
        except Exception as error:
            if session.cancelled:
                logger.debug(
                    "Ignoring error from cancelled session %d: %r",
                    session.number,
                    error,
                )
            else:
                self._finish(session)
                if self._on_error is not None:
                    self._on_error(error)
                else:
                    logger.exception("Stream session %d failed", session.number)
        finally:
            self._finish(session)

    def start_soon(self, source: Optional[StreamSource] = None) -> asyncio.Task:
        """Schedule ``start`` on the running loop and return its task."""
        self._task = asyncio.create_task(self.start(source))
        return self._task

    async def wait(self) -> None:
        """Wait for the session scheduled by ``start_soon`` to finish."""
        if self._task is not None:
            await self._task

    async def __aenter__(self) -> "MarkdownStream":
        if self._config.auto_start and self._source is not None:
            self.start_soon()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.stop()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # -- internals -----------------------------------------------------

    def _finish(self, session: _Session) -> None:
        if self._session is session:
            self._session = None
            self._emit()

    def _handle_reveal(self, visible: str) -> None:
        self._sanitized = sanitize_incomplete_markdown(visible)
        self._emit()

    def _refresh(self) -> None:
        self._sanitized = sanitize_incomplete_markdown(self._scheduler.visible)
        self._emit()

    def _emit(self) -> None:
        if self._on_update is not None:
            self._on_update(self.snapshot())
