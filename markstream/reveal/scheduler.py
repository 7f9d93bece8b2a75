import logging
import re
import unicodedata
from collections import deque
from enum import Enum
from typing import Callable, Deque, Optional, Union

from markstream.config import DEFAULT_REVEAL_DELAY, RevealMode, clamp_delay
from markstream.reveal.base import RevealTimer

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"\s+|\S+")

_ZERO_WIDTH_JOINER = "\u200d"
_REGIONAL_INDICATORS = ("\U0001f1e6", "\U0001f1ff")


class SchedulerState(Enum):
    IDLE = "idle"
    DRAINING = "draining"


def _is_regional_indicator(char: str) -> bool:
    return _REGIONAL_INDICATORS[0] <= char <= _REGIONAL_INDICATORS[1]


def _extends_grapheme(char: str) -> bool:
    if unicodedata.combining(char):
        return True
    # Variation selectors, emoji skin tone modifiers and spacing marks.
    if "\ufe00" <= char <= "\ufe0f" or "\U0001f3fb" <= char <= "\U0001f3ff":
        return True
    return unicodedata.category(char) in ("Mn", "Me", "Mc")


def split_graphemes(text: str) -> list[str]:
    """Split into user-perceived characters.

    Combining marks, variation selectors and zero-width-joiner sequences stay
    attached to their base character. CRLF and regional-indicator flag pairs
    are one unit each.
    """
    units: list[str] = []
    for char in text:
        if units:
            last = units[-1]
            if (
                _extends_grapheme(char)
                or char == _ZERO_WIDTH_JOINER
                or last.endswith(_ZERO_WIDTH_JOINER)
                or (last == "\r" and char == "\n")
                or (
                    len(last) == 1
                    and _is_regional_indicator(last)
                    and _is_regional_indicator(char)
                )
            ):
                units[-1] = last + char
                continue
        units.append(char)
    return units


def tokenize(chunk: str, mode: RevealMode) -> list[str]:
    if not chunk:
        return []
    if mode is RevealMode.CHARACTER:
        return split_graphemes(chunk)
    if mode is RevealMode.WORD:
        return WORD_PATTERN.findall(chunk) or [chunk]
    return [chunk]


class RevealScheduler:
    """Paces how much of the received text is visible.

    In chunk mode every fragment is shown as soon as it is enqueued. In word
    and character mode fragments are split into tokens that a timer releases
    one per tick. The scheduler is ``IDLE`` when nothing is queued and
    ``DRAINING`` while the timer runs; it never leaves the timer running with
    an empty queue.
    """

    def __init__(
        self,
        timer: RevealTimer,
        mode: Union[RevealMode, str] = RevealMode.CHUNK,
        delay: float = DEFAULT_REVEAL_DELAY,
        initial_value: str = "",
        on_reveal: Optional[Callable[[str], None]] = None,
    ):
        self._timer = timer
        self._mode = RevealMode.parse(mode)
        self._delay = clamp_delay(delay)
        self._visible = initial_value or ""
        self._pending: Deque[str] = deque()
        self._on_reveal = on_reveal

    @property
    def mode(self) -> RevealMode:
        return self._mode

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def visible(self) -> str:
        return self._visible

    @property
    def pending(self) -> tuple[str, ...]:
        return tuple(self._pending)

    @property
    def state(self) -> SchedulerState:
        if self._timer.is_running:
            return SchedulerState.DRAINING
        return SchedulerState.IDLE

    def set_mode(self, mode: Union[RevealMode, str]) -> None:
        mode = RevealMode.parse(mode)
        if mode is self._mode:
            return
        logger.debug("Reveal mode %s -> %s", self._mode.value, mode.value)
        self._mode = mode
        if mode is RevealMode.CHUNK:
            self.flush()

    def set_delay(self, delay) -> None:
        delay = clamp_delay(delay)
        if delay == self._delay:
            return
        logger.debug("Reveal delay %sms -> %sms", self._delay, delay)
        self._delay = delay
        if self.state is SchedulerState.DRAINING:
            self._timer.cancel()
            self._drain()

    def enqueue(self, chunk: str) -> None:
        if not chunk:
            return
        if self._mode is RevealMode.CHUNK:
            tokens = "".join(self._pending) + chunk
            self._clear_queue()
            self._reveal(tokens)
            return
        self._pending.extend(tokenize(chunk, self._mode))
        self._drain()

    def sync(self, received: str) -> None:
        """Catch up with the full received text.

        Whatever part of ``received`` is neither visible nor queued (tokens
        dropped by ``stop``, or text appended since) is enqueued, so the
        visible text stays a prefix of ``received``.
        """
        queued = len(self._visible) + sum(len(token) for token in self._pending)
        if len(received) < queued:
            self.reset(received)
            return
        self.enqueue(received[queued:])

    def tick(self) -> None:
        """Reveal exactly one pending token."""
        if not self._pending:
            self._clear_queue()
            return
        token = self._pending.popleft()
        if not self._pending:
            self._clear_queue()
        self._reveal(token)

    def flush(self) -> None:
        """Reveal everything still queued at once."""
        tokens = "".join(self._pending)
        self._clear_queue()
        self._reveal(tokens)

    def stop(self) -> None:
        """Drop queued tokens; what is already visible stays."""
        self._clear_queue()

    def reset(self, value: str = "") -> None:
        self._clear_queue()
        value = value or ""
        if value != self._visible:
            self._visible = value
            self._notify()

    def _drain(self) -> None:
        if not self._pending or self._timer.is_running:
            return
        if self._delay <= 0:
            self.flush()
            return
        self._timer.start(self._delay, self.tick)

    def _clear_queue(self) -> None:
        self._pending.clear()
        self._timer.cancel()

    def _reveal(self, text: str) -> None:
        if not text:
            return
        self._visible += text
        self._notify()

    def _notify(self) -> None:
        if self._on_reveal is not None:
            self._on_reveal(self._visible)
