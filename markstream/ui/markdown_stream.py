import re
from typing import Callable, Optional

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.markdown import Markdown

from markstream.stream.engine import StreamSnapshot

MATH_BLOCK = re.compile(r"\$\$(.+?)\$\$", re.DOTALL)

MathRenderer = Callable[[str], RenderableType]


class StreamingMarkdown:
    """Renders engine snapshots as live-updating markdown.

    ``render_math`` is an optional callable turning the body of a ``$$...$$``
    block into a renderable; without it math stays in the markdown text.
    """

    def __init__(
        self,
        console: Console,
        render_math: Optional[MathRenderer] = None,
        code_theme: str = "monokai",
        refresh_per_second: int = 10,
    ):
        self._console = console
        self._render_math = render_math
        self._code_theme = code_theme
        self._refresh_per_second = refresh_per_second
        self._text = ""
        self._live: Live | None = None

    def start(self) -> None:
        self._text = ""
        self._live = Live(
            self.render(""),
            console=self._console,
            refresh_per_second=self._refresh_per_second,
        )
        self._live.start()

    def update(self, snapshot: StreamSnapshot) -> None:
        if snapshot.sanitized == self._text:
            return
        self._text = snapshot.sanitized
        if self._live is not None:
            self._live.update(self.render(self._text))

    def render(self, text: str) -> RenderableType:
        if self._render_math is None or "$$" not in text:
            return self._markdown(text)

        parts: list[RenderableType] = []
        position = 0
        for match in MATH_BLOCK.finditer(text):
            before = text[position:match.start()]
            if before.strip():
                parts.append(self._markdown(before))
            parts.append(self._render_math(match.group(1).strip()))
            position = match.end()
        rest = text[position:]
        if rest.strip():
            parts.append(self._markdown(rest))
        return Group(*parts)

    def _markdown(self, text: str) -> Markdown:
        return Markdown(text, code_theme=self._code_theme)

    def finish(self) -> None:
        if self._live is not None:
            self._live.update(self.render(self._text))
            self._live.stop()
            self._live = None

    @property
    def console(self) -> Console:
        return self._console

    @property
    def text(self) -> str:
        return self._text

    @property
    def is_active(self) -> bool:
        return self._live is not None
