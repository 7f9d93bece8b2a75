"""Close Markdown syntax left open at the end of a growing document.

Every rule is a pure ``str -> str`` function that only looks at the trailing,
possibly incomplete part of the text. A rule either appends the characters
needed to close the construct, trims a construct that cannot render yet, or
returns the text unchanged. ``sanitize_incomplete_markdown`` runs them in order.
"""

import logging
import re
from typing import Callable

logger = logging.getLogger(__name__)

INCOMPLETE_LINK_PLACEHOLDER = "markstream:incomplete-link"

_PLACEHOLDER_SUFFIX = f"]({INCOMPLETE_LINK_PLACEHOLDER})"

_LINK_WITH_PARTIAL_URL = re.compile(r"(!?)\[([^\]]+)\]\(([^)]+)\Z")
_OPEN_LINK_OR_IMAGE = re.compile(r"(!?\[)([^\]]*?)\Z")
_BOLD_ITALIC = re.compile(r"(\*\*\*)([^*]*?)\Z")
_BOLD = re.compile(r"(\*\*)([^*]*?)\Z")
_DOUBLE_UNDERSCORE = re.compile(r"(__)([^_]*?)\Z")
_SINGLE_ASTERISK = re.compile(r"(\*)([^*]*?)\Z")
_SINGLE_UNDERSCORE = re.compile(r"(_)([^_]*?)\Z")
_INLINE_CODE = re.compile(r"(`)([^`]*?)\Z")
_STRIKETHROUGH = re.compile(r"(~~)([^~]*?)\Z")

_MARKER_NOISE = re.compile(r"[\s_~*`]*")
_LIST_ITEM_PREFIX = re.compile(r"\s*[-*+]\s+")
_SINGLE_LINE_FENCE = re.compile(r"```[^`\n]*```?")
_TRAILING_NEWLINES = re.compile(r"\n+\Z")
_ASTERISK_RUN = re.compile(r"\*+")

Rule = Callable[[str], str]


def _is_noise(content: str) -> bool:
    """True when nothing meaningful follows a marker yet."""
    return _MARKER_NOISE.fullmatch(content) is not None


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def _char_at(text: str, index: int) -> str:
    if 0 <= index < len(text):
        return text[index]
    return ""


def has_complete_code_block(text: str) -> bool:
    fences = text.count("```")
    return fences > 0 and fences % 2 == 0 and "\n" in text


def _opens_list_item_across_lines(text: str, marker: str, content: str) -> bool:
    """A bold marker right after a list bullet whose span already wrapped."""
    marker_index = text.rfind(marker)
    line_start = text.rfind("\n", 0, marker_index) + 1
    line_before = text[line_start:marker_index]
    return _LIST_ITEM_PREFIX.fullmatch(line_before) is not None and "\n" in content


def close_links_and_images(text: str) -> str:
    match = _LINK_WITH_PARTIAL_URL.search(text)
    if match:
        is_image = match.group(1) == "!"
        before = text[: match.start()]
        link_text = match.group(2)
        if is_image:
            return before + link_text
        return f"{before}[{link_text}]({INCOMPLETE_LINK_PLACEHOLDER})"

    match = _OPEN_LINK_OR_IMAGE.search(text)
    if match:
        if match.group(1).startswith("!"):
            # Half-typed images vanish instead of flashing as text.
            return text[: match.start()]
        return text + _PLACEHOLDER_SUFFIX

    return text


def close_bold_italic(text: str) -> str:
    if has_complete_code_block(text):
        return text
    if re.fullmatch(r"\*{4,}", text):
        return text

    match = _BOLD_ITALIC.search(text)
    if not match or _is_noise(match.group(2)):
        return text

    triples = sum(len(run) // 3 for run in _ASTERISK_RUN.findall(text))
    if triples % 2 == 1:
        return text + "***"
    return text


def close_bold(text: str) -> str:
    if has_complete_code_block(text):
        return text

    match = _BOLD.search(text)
    if not match:
        return text
    content = match.group(2)
    if _is_noise(content) or _opens_list_item_across_lines(text, "**", content):
        return text

    if text.count("**") % 2 == 1:
        return text + "**"
    return text


def close_double_underscore(text: str) -> str:
    if has_complete_code_block(text):
        return text

    match = _DOUBLE_UNDERSCORE.search(text)
    if not match:
        return text
    content = match.group(2)
    if _is_noise(content) or _opens_list_item_across_lines(text, "__", content):
        return text

    if text.count("__") % 2 == 1:
        return text + "__"
    return text


def count_single_asterisks(text: str) -> int:
    """Count ``*`` characters that can open or close an italic span.

    Escaped asterisks, asterisks touching another asterisk and list bullets
    (an asterisk alone at the start of a line followed by a blank) do not
    count.
    """
    count = 0
    for index, char in enumerate(text):
        if char != "*":
            continue
        prev_char = _char_at(text, index - 1)
        next_char = _char_at(text, index + 1)
        if prev_char == "\\":
            continue
        line_start = text.rfind("\n", 0, index) + 1
        if not text[line_start:index].strip() and next_char in (" ", "\t"):
            continue
        if prev_char != "*" and next_char != "*":
            count += 1
    return count


def close_single_asterisk(text: str) -> str:
    if has_complete_code_block(text):
        return text

    match = _SINGLE_ASTERISK.search(text)
    if not match or _is_noise(match.group(2)):
        return text

    if count_single_asterisks(text) % 2 == 1:
        return text + "*"
    return text


def math_positions(text: str) -> list[bool]:
    """For every index, whether it sits inside ``$...$`` or ``$$...$$``."""
    inside = [False] * len(text)
    in_inline = False
    in_block = False
    index = 0
    length = len(text)
    while index < length:
        inside[index] = in_inline or in_block
        char = text[index]
        if char == "\\" and _char_at(text, index + 1) == "$":
            if index + 1 < length:
                inside[index + 1] = in_inline or in_block
            index += 2
            continue
        if char == "$":
            if _char_at(text, index + 1) == "$":
                in_block = not in_block
                in_inline = False
                inside[index + 1] = in_inline or in_block
                index += 2
                continue
            if not in_block:
                in_inline = not in_inline
        index += 1
    return inside


def _is_italic_underscore(text: str, index: int, in_math: list[bool]) -> bool:
    prev_char = _char_at(text, index - 1)
    next_char = _char_at(text, index + 1)
    if prev_char == "\\" or in_math[index]:
        return False
    if prev_char and next_char and _is_word_char(prev_char) and _is_word_char(next_char):
        return False
    return prev_char != "_" and next_char != "_"


def count_single_underscores(text: str) -> int:
    """Count ``_`` characters that can open or close an italic span.

    Intraword underscores (``snake_case``), escaped ones, ``__`` pairs and
    underscores inside math spans do not count.
    """
    if "_" not in text:
        return 0
    in_math = math_positions(text)
    return sum(
        1
        for index, char in enumerate(text)
        if char == "_" and _is_italic_underscore(text, index, in_math)
    )


def close_single_underscore(text: str) -> str:
    if has_complete_code_block(text):
        return text

    match = _SINGLE_UNDERSCORE.search(text)
    if not match or _is_noise(match.group(2)):
        return text

    if count_single_underscores(text) % 2 == 0:
        return text

    newlines = _TRAILING_NEWLINES.search(text)
    if newlines:
        return f"{text[: newlines.start()]}_{newlines.group(0)}"
    return text + "_"


def _is_part_of_triple_backtick(text: str, index: int) -> bool:
    return (
        text[index : index + 3] == "```"
        or (index > 0 and text[index - 1 : index + 2] == "```")
        or (index > 1 and text[index - 2 : index + 1] == "```")
    )


def count_single_backticks(text: str) -> int:
    return sum(
        1
        for index, char in enumerate(text)
        if char == "`" and not _is_part_of_triple_backtick(text, index)
    )


def close_inline_code(text: str) -> str:
    if "\n" not in text and _SINGLE_LINE_FENCE.fullmatch(text):
        if text.endswith("``") and not text.endswith("```"):
            return text + "`"
        return text

    fences = text.count("```")
    if fences > 0 and fences % 2 == 0 and "\n" in text:
        return text
    if text.endswith("```") or text.endswith("```\n"):
        if fences % 2 == 0:
            return text
    if fences % 2 == 1:
        # An open fenced block; its body is literal.
        return text

    match = _INLINE_CODE.search(text)
    if not match or _is_noise(match.group(2)):
        return text

    if count_single_backticks(text) % 2 == 1:
        return text + "`"
    return text


def close_strikethrough(text: str) -> str:
    match = _STRIKETHROUGH.search(text)
    if not match or _is_noise(match.group(2)):
        return text

    if text.count("~~") % 2 == 1:
        return text + "~~"
    return text


def close_block_math(text: str) -> str:
    if text.count("$$") % 2 == 0:
        return text

    first = text.find("$$")
    if "\n" in text[first:] and not text.endswith("\n"):
        return text + "\n$$"
    return text + "$$"


EMPHASIS_RULES: tuple[Rule, ...] = (
    close_bold_italic,
    close_bold,
    close_double_underscore,
    close_single_asterisk,
    close_single_underscore,
)

REPAIR_RULES: tuple[Rule, ...] = (
    *EMPHASIS_RULES,
    close_inline_code,
    close_strikethrough,
    close_block_math,
)


def _apply(rule: Rule, text: str) -> str:
    try:
        return rule(text)
    except Exception:
        logger.exception("Markdown repair rule %s failed", rule.__name__)
        return text


def sanitize_incomplete_markdown(text: str) -> str:
    """Return ``text`` with any construct still being typed closed off.

    Non-string and empty input is returned unchanged. Never raises.
    """
    if not text or not isinstance(text, str):
        return text

    result = _apply(close_links_and_images, text)
    if result.endswith(_PLACEHOLDER_SUFFIX):
        return result

    for rule in REPAIR_RULES:
        result = _apply(rule, result)
    return result
