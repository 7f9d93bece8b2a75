from typing import Union

from rich.console import Console
from rich.theme import Theme

light_theme = Theme({
    "markdown.text": "#1F2933",
    "markdown.paragraph": "#1F2933",
    "markdown.item.bullet": "#52606D",
    "markdown.item.number": "#52606D",
    "markdown.block_quote": "italic #52606D",
    "markdown.hr": "#D1D5DB",
    "markdown.link": "#2563EB",
    "markdown.link_url": "underline #2563EB",
    "markdown.code": "bold #111827 on #F3F4F6",
    "markdown.code_block": "#111827 on #F3F4F6",
    "status": "dim",
    "error": "red bold",
})

dark_theme = Theme({
    "markdown.text": "#E5E7EB",
    "markdown.paragraph": "#E5E7EB",
    "markdown.item.bullet": "#9CA3AF",
    "markdown.item.number": "#9CA3AF",
    "markdown.block_quote": "italic #9CA3AF",
    "markdown.hr": "#374151",
    "markdown.link": "#60A5FA",
    "markdown.link_url": "underline #60A5FA",
    "markdown.code": "bold #F9FAFB on #1F2937",
    "markdown.code_block": "#F9FAFB on #1F2937",
    "status": "dim",
    "error": "red bold",
})

THEMES = {"light": light_theme, "dark": dark_theme}

ThemePreference = Union[str, Theme, None]


def resolve_theme(theme: ThemePreference) -> Theme:
    """Map ``"light"``/``"dark"``/a custom Theme to a Theme; light by default."""
    if isinstance(theme, Theme):
        return theme
    if not theme:
        return light_theme
    try:
        return THEMES[theme]
    except KeyError:
        raise ValueError(f"Unknown theme {theme!r} (expected light or dark)") from None


def make_console(theme: ThemePreference = None, file=None) -> Console:
    return Console(theme=resolve_theme(theme), file=file)


console = make_console("light")
