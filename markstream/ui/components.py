from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text


def math_panel(expression: str) -> Panel:
    """Render a ``$$`` block body as highlighted TeX in a dim panel."""
    return Panel(
        Syntax(expression, "latex", theme="monokai", word_wrap=True),
        title="math",
        border_style="dim",
        expand=False,
    )


def error_panel(error: BaseException | str) -> Panel:
    """Render a stream failure as a red-bordered panel."""
    text = error if isinstance(error, str) else f"{type(error).__name__}: {error}"
    return Panel(
        Text(text, style="error"),
        title="Error",
        border_style="red",
        expand=False,
    )


def status_line(text: str) -> Text:
    return Text(text, style="status")
