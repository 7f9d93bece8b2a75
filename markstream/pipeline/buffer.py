from typing import Optional


class StreamBuffer:
    """Append-only store of received text fragments."""

    def __init__(self, initial_value: str = ""):
        self._chunks: list[str] = []
        self._joined: Optional[str] = ""
        if initial_value:
            self._chunks.append(initial_value)
            self._joined = None

    def append(self, chunk: str) -> None:
        if not chunk:
            return
        self._chunks.append(chunk)
        self._joined = None

    @property
    def value(self) -> str:
        """Concatenation of every fragment since the last reset."""
        if self._joined is None:
            self._joined = "".join(self._chunks)
            # Keep one chunk so later appends join against it.
            self._chunks = [self._joined] if self._joined else []
        return self._joined

    def reset(self, seed: str = "") -> None:
        self._chunks = []
        self._joined = ""
        if seed:
            self._chunks.append(seed)
            self._joined = None

    def __len__(self) -> int:
        return len(self.value)
