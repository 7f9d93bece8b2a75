import asyncio
import sys
from contextlib import aclosing

import pytest

from markstream.errors import UnsupportedSourceError
from markstream.reveal.timers import ManualTimer
from markstream.stream.engine import MarkdownStream
from markstream.stream.producers import CommandSource, file_source, text_source
from markstream.stream.sources import (
    ChunkDecoder,
    ReadResult,
    iterate_source,
    normalize_chunk,
)


async def collect(source) -> list[str]:
    return [chunk async for chunk in iterate_source(source)]


class FakeReader:
    """Reader-like source handing out scripted read results."""

    def __init__(self, results, awaitable=False):
        self._results = list(results)
        self._awaitable = awaitable
        self.released = False

    def get_reader(self):
        return self

    def read(self):
        result = self._results.pop(0)
        if self._awaitable:
            async def later():
                return result
            return later()
        return result

    def release_lock(self):
        self.released = True


def test_normalize_chunk():
    assert normalize_chunk("text") == "text"
    assert normalize_chunk(b"caf\xc3\xa9") == "caf\u00e9"
    assert normalize_chunk(bytearray(b"hi")) == "hi"
    assert normalize_chunk(None) == ""
    assert normalize_chunk(42) == "42"


def test_decoder_joins_split_multibyte_characters():
    decoder = ChunkDecoder()
    assert decoder.decode(b"caf\xc3") == "caf"
    assert decoder.decode(b"\xa9!") == "\u00e9!"
    assert decoder.flush() == ""


def test_decoder_replaces_invalid_bytes():
    decoder = ChunkDecoder()
    assert decoder.decode(b"ok\xff") == "ok\ufffd"


@pytest.mark.asyncio
async def test_list_source():
    assert await collect(["a", "b"]) == ["a", "b"]


@pytest.mark.asyncio
async def test_generator_source():
    def gen():
        yield "x"
        yield "y"

    assert await collect(gen()) == ["x", "y"]


@pytest.mark.asyncio
async def test_async_generator_source():
    async def gen():
        yield "x"
        yield b"y"

    assert await collect(gen()) == ["x", "y"]


@pytest.mark.asyncio
async def test_factory_source():
    assert await collect(lambda: ["lazy", "list"]) == ["lazy", "list"]


@pytest.mark.asyncio
async def test_async_generator_function_as_factory():
    async def gen():
        yield "from factory"

    assert await collect(gen) == ["from factory"]


@pytest.mark.asyncio
async def test_coroutine_factory_source():
    async def factory():
        return ["resolved"]

    assert await collect(factory) == ["resolved"]


@pytest.mark.asyncio
async def test_reader_source_with_dicts():
    reader = FakeReader([
        {"done": False, "value": "one"},
        {"done": False, "value": b"two"},
        {"done": True, "value": None},
    ])
    assert await collect(reader) == ["one", "two"]
    assert reader.released


@pytest.mark.asyncio
async def test_reader_source_with_awaitable_reads():
    reader = FakeReader([ReadResult(False, "a"), (False, "b"), ReadResult(True)], awaitable=True)
    assert await collect(reader) == ["a", "b"]
    assert reader.released


@pytest.mark.asyncio
async def test_reader_released_on_error():
    class Broken(FakeReader):
        def read(self):
            raise OSError("connection reset")

    reader = Broken([])
    with pytest.raises(OSError):
        await collect(reader)
    assert reader.released


@pytest.mark.asyncio
async def test_string_source_is_one_fragment():
    assert await collect("# whole document") == ["# whole document"]


@pytest.mark.asyncio
async def test_empty_and_none_fragments_dropped():
    assert await collect(["", None, "a", "", 7]) == ["a", "7"]


@pytest.mark.asyncio
async def test_split_utf8_across_fragments():
    assert await collect([b"\xe2\x82", b"\xac5"]) == ["\u20ac5"]


@pytest.mark.asyncio
async def test_unsupported_source():
    with pytest.raises(UnsupportedSourceError) as info:
        await collect(42)
    assert isinstance(info.value, TypeError)
    assert info.value.source == 42


@pytest.mark.asyncio
async def test_breaking_early_closes_source():
    closed = []

    def gen():
        try:
            yield "a"
            yield "b"
        finally:
            closed.append(True)

    async with aclosing(iterate_source(gen())) as chunks:
        async for chunk in chunks:
            break

    assert closed == [True]


# ---------- producers ----------

@pytest.mark.asyncio
async def test_text_source_splits_by_size():
    assert await collect(text_source("abcdef", chunk_size=4)) == ["abcd", "ef"]
    assert await collect(text_source("ab", chunk_size=0)) == ["a", "b"]


@pytest.mark.asyncio
async def test_file_source_replays_file(tmp_path):
    doc = tmp_path / "doc.md"
    doc.write_text("# Title\n\nBody with é\n", encoding="utf-8")
    chunks = await collect(file_source(doc, chunk_size=5))
    assert "".join(chunks) == "# Title\n\nBody with é\n"
    assert all(len(chunk) <= 5 for chunk in chunks)


@pytest.mark.asyncio
async def test_command_source_streams_stdout():
    source = CommandSource([sys.executable, "-c", "print('**from** a process')"])
    chunks = await collect(source)
    assert "".join(chunks).strip() == "**from** a process"


@pytest.mark.asyncio
async def test_command_source_reports_exit_status():
    source = CommandSource([sys.executable, "-c", "import sys; sys.exit(2)"])
    with pytest.raises(RuntimeError, match="exited with code 2"):
        await collect(source)


@pytest.mark.asyncio
async def test_awaitable_release_lock_is_awaited():
    class AsyncReleaseReader(FakeReader):
        async def release_lock(self):
            await asyncio.sleep(0)
            self.released = True

    reader = AsyncReleaseReader([{"done": False, "value": "x"}, {"done": True}])
    assert await collect(reader) == ["x"]
    assert reader.released


LINGERING_SCRIPT = (
    "import time\n"
    "print('first', flush=True)\n"
    "time.sleep(30)\n"
)


@pytest.mark.asyncio
async def test_closing_command_source_early_reaps_process():
    source = CommandSource([sys.executable, "-c", LINGERING_SCRIPT])

    async with aclosing(iterate_source(source)) as chunks:
        async for chunk in chunks:
            assert chunk.strip() == "first"
            break

    assert source.process is not None
    assert source.process.returncode is not None


@pytest.mark.asyncio
async def test_stopped_command_session_reaps_process():
    script = (
        "import time\n"
        "print('first', flush=True)\n"
        "time.sleep(0.2)\n"
        "print('second', flush=True)\n"
        "time.sleep(30)\n"
    )
    source = CommandSource([sys.executable, "-c", script])
    engine_chunks = []

    def on_chunk(chunk):
        engine_chunks.append(chunk)
        engine.stop()

    engine = MarkdownStream(source, timer=ManualTimer(), on_chunk=on_chunk)
    await asyncio.wait_for(engine.start(), timeout=10.0)

    assert engine_chunks == ["first\n"]
    assert engine.content == "first\n"
    assert source.process.returncode is not None
