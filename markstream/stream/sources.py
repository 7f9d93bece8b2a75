"""Turn any supported stream source into one async iterator of text fragments.

Supported sources:

* a synchronous iterable of fragments (list, generator, ...)
* an asynchronous iterable (async generator, ``asyncio.StreamReader``, ...)
* a zero-argument callable returning either of the above, or an awaitable
  that resolves to one (so ``async def`` factories work too)
* a reader-like object with ``get_reader()``; the reader's ``read()`` (plain or
  awaitable) returns a ``done``/``value`` pair and ``release_lock()`` is called
  when iteration ends

A bare ``str`` or bytes object is treated as a single fragment rather than
being iterated character by character.
"""

import codecs
import inspect
from collections.abc import AsyncIterable, Iterable, Mapping
from typing import Any, AsyncIterator, Callable, NamedTuple, Union

from markstream.errors import UnsupportedSourceError

_BINARY_TYPES = (bytes, bytearray, memoryview)


class ReadResult(NamedTuple):
    done: bool
    value: Any = None


StreamSource = Union[Iterable, AsyncIterable, Callable[[], Any]]


class ChunkDecoder:
    """Normalizes raw fragments to text.

    Bytes are decoded as UTF-8 incrementally, so a multi-byte character split
    across two fragments is emitted once both halves have arrived.
    """

    def __init__(self):
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def decode(self, chunk: Any) -> str:
        if isinstance(chunk, str):
            return chunk
        if isinstance(chunk, _BINARY_TYPES):
            return self._utf8.decode(bytes(chunk))
        if chunk is None:
            return ""
        try:
            return str(chunk)
        except Exception:
            return ""

    def flush(self) -> str:
        return self._utf8.decode(b"", final=True)


def normalize_chunk(chunk: Any) -> str:
    """Normalize a single, self-contained fragment to text."""
    decoder = ChunkDecoder()
    return decoder.decode(chunk) + decoder.flush()


def is_reader_like(source: Any) -> bool:
    return callable(getattr(source, "get_reader", None))


def _is_iterable(source: Any) -> bool:
    return isinstance(source, (AsyncIterable, Iterable)) or is_reader_like(source)


async def resolve_source(source: StreamSource) -> Any:
    """Call factories and await their result; leave everything else alone."""
    if callable(source) and not _is_iterable(source):
        source = source()
        if inspect.isawaitable(source):
            source = await source
    return source


def _unpack_read(result: Any) -> ReadResult:
    if isinstance(result, Mapping):
        return ReadResult(bool(result.get("done")), result.get("value"))
    if isinstance(result, tuple) and len(result) == 2 and not hasattr(result, "done"):
        return ReadResult(bool(result[0]), result[1])
    return ReadResult(bool(getattr(result, "done", False)), getattr(result, "value", None))


async def _read_reader(source: Any) -> AsyncIterator[Any]:
    reader = source.get_reader()
    try:
        while True:
            result = reader.read()
            if inspect.isawaitable(result):
                result = await result
            done, value = _unpack_read(result)
            if done:
                break
            yield value
    finally:
        release = getattr(reader, "release_lock", None)
        if callable(release):
            released = release()
            if inspect.isawaitable(released):
                await released


async def _single(value: Any) -> AsyncIterator[Any]:
    yield value


async def _read_sync(source: Iterable) -> AsyncIterator[Any]:
    iterator = iter(source)
    try:
        for chunk in iterator:
            yield chunk
    finally:
        close = getattr(iterator, "close", None)
        if callable(close):
            close()


async def _read_async(source: AsyncIterable) -> AsyncIterator[Any]:
    iterator = source.__aiter__()
    try:
        async for chunk in iterator:
            yield chunk
    finally:
        close = getattr(iterator, "aclose", None)
        if close is not None:
            await close()


async def iterate_source(source: StreamSource) -> AsyncIterator[str]:
    """Yield normalized, non-empty text fragments from ``source``.

    Raises ``UnsupportedSourceError`` before yielding anything when the source
    has none of the supported shapes.
    """
    resolved = await resolve_source(source)
    decoder = ChunkDecoder()

    if isinstance(resolved, (str, *_BINARY_TYPES)):
        raw = _single(resolved)
    elif is_reader_like(resolved):
        raw = _read_reader(resolved)
    elif isinstance(resolved, AsyncIterable):
        raw = _read_async(resolved)
    elif isinstance(resolved, Iterable):
        raw = _read_sync(resolved)
    else:
        raise UnsupportedSourceError(resolved)

    try:
        async for chunk in raw:
            text = decoder.decode(chunk)
            if text:
                yield text
        tail = decoder.flush()
        if tail:
            yield tail
    finally:
        await raw.aclose()

