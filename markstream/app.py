import asyncio
import logging
import signal
import sys
from typing import Optional

from markstream.config import StreamConfig
from markstream.reveal.base import RevealTimer
from markstream.reveal.scheduler import SchedulerState
from markstream.stream.engine import MarkdownStream
from markstream.stream.sources import StreamSource
from markstream.ui.components import error_panel, status_line
from markstream.ui.markdown_stream import StreamingMarkdown

logger = logging.getLogger(__name__)


class MarkstreamApp:
    """Main application: source -> engine -> live markdown view."""

    def __init__(
        self,
        source: StreamSource,
        view: StreamingMarkdown,
        config: StreamConfig | None = None,
        timer: Optional[RevealTimer] = None,
    ):
        self._view = view
        self._stream = MarkdownStream(
            source,
            config=config,
            timer=timer,
            on_error=self._handle_error,
            on_update=view.update,
        )
        self._error: Optional[BaseException] = None
        self._interrupted = False

    @property
    def stream(self) -> MarkdownStream:
        return self._stream

    async def run(self) -> int:
        loop = asyncio.get_event_loop()
        if sys.platform == "win32":
            signal.signal(signal.SIGINT, lambda *_: self._handle_interrupt())
        else:
            loop.add_signal_handler(signal.SIGINT, self._handle_interrupt)

        self._view.start()
        try:
            await self._stream.start()
            await self._wait_for_reveal()
        finally:
            self._view.finish()
            if sys.platform != "win32":
                loop.remove_signal_handler(signal.SIGINT)

        return self._report()

    async def _wait_for_reveal(self) -> None:
        scheduler = self._stream.scheduler
        while scheduler.state is SchedulerState.DRAINING:
            await asyncio.sleep(max(scheduler.delay, 1) / 1000)

    def _report(self) -> int:
        console = self._view.console
        if self._error is not None:
            console.print(error_panel(self._error))
            return 1
        if self._interrupted:
            console.print(status_line("Stream stopped."))
            return 130
        return 0

    def _handle_error(self, error: BaseException) -> None:
        logger.debug("Stream failed: %r", error)
        self._error = error

    def _handle_interrupt(self) -> None:
        self._interrupted = True
        self._stream.stop()
