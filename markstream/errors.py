class MarkstreamError(Exception):
    """Base class for errors raised by markstream."""


class UnsupportedSourceError(MarkstreamError, TypeError):
    """The stream source is not an iterable, a factory or a reader-like object."""

    def __init__(self, source: object):
        self.source = source
        super().__init__(
            f"Unsupported stream source: {type(source).__name__!r} is not "
            "iterable, async iterable, callable or reader-like"
        )
