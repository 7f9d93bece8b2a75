import asyncio
import os
import sys
from pathlib import Path
from typing import AsyncIterator, Optional, Sequence


async def file_source(
    path, chunk_size: int = 16, interval: float = 0.0
) -> AsyncIterator[str]:
    """Replay a file as a token stream of ``chunk_size`` characters."""
    text = Path(path).read_text(encoding="utf-8")
    async for chunk in text_source(text, chunk_size=chunk_size, interval=interval):
        yield chunk


async def text_source(
    text: str, chunk_size: int = 16, interval: float = 0.0
) -> AsyncIterator[str]:
    chunk_size = max(1, chunk_size)
    for start in range(0, len(text), chunk_size):
        yield text[start : start + chunk_size]
        await asyncio.sleep(interval)


async def stdin_source(chunk_size: int = 1024) -> AsyncIterator[bytes]:
    """Read piped standard input without blocking the event loop."""
    loop = asyncio.get_event_loop()
    stream = sys.stdin.buffer
    while True:
        data = await loop.run_in_executor(None, stream.read1, chunk_size)
        if not data:
            break
        yield data


class CommandSource:
    """Streams the stdout of a subprocess as raw byte fragments.

    Exposes the reader-like ``get_reader()`` shape; a non-zero exit status
    is raised from ``read`` once output is exhausted.
    """

    def __init__(self, argv: Sequence[str], chunk_size: int = 256):
        self._argv = list(argv)
        self._chunk_size = chunk_size
        self._process: Optional[asyncio.subprocess.Process] = None

    def get_reader(self) -> "CommandSource":
        return self

    async def read(self) -> dict:
        if self._process is None:
            self._process = await asyncio.create_subprocess_exec(
                *self._argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )

        data = await self._process.stdout.read(self._chunk_size)
        if data:
            return {"done": False, "value": data}

        returncode = await self._process.wait()
        if returncode != 0:
            raise RuntimeError(
                f"{os.path.basename(self._argv[0])} exited with code {returncode}"
            )
        return {"done": True, "value": None}

    @property
    def process(self) -> Optional[asyncio.subprocess.Process]:
        return self._process

    async def release_lock(self) -> None:
        process = self._process
        if process is not None and process.returncode is None:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=3.0)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
