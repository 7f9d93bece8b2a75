import math
from dataclasses import dataclass
from enum import Enum
from typing import Union

DEFAULT_REVEAL_DELAY = 28


class RevealMode(Enum):
    CHUNK = "chunk"
    WORD = "word"
    CHARACTER = "character"

    @classmethod
    def parse(cls, value: Union["RevealMode", str]) -> "RevealMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            choices = ", ".join(mode.value for mode in cls)
            raise ValueError(
                f"Unknown reveal mode {value!r} (expected one of: {choices})"
            ) from None


def clamp_delay(value) -> float:
    """Reveal delay in milliseconds: missing or invalid -> default, negative -> 0."""
    if value is None or isinstance(value, bool):
        return DEFAULT_REVEAL_DELAY
    try:
        delay = float(value)
    except (TypeError, ValueError):
        return DEFAULT_REVEAL_DELAY
    if not math.isfinite(delay):
        return DEFAULT_REVEAL_DELAY
    return max(0.0, delay)


@dataclass
class StreamConfig:
    # Content
    initial_value: str = ""

    # Reveal pacing
    reveal_mode: RevealMode = RevealMode.CHUNK
    reveal_delay: float = DEFAULT_REVEAL_DELAY

    # Session behaviour
    auto_start: bool = True

    def __post_init__(self):
        self.initial_value = self.initial_value or ""
        self.reveal_mode = RevealMode.parse(self.reveal_mode)
        self.reveal_delay = clamp_delay(self.reveal_delay)
