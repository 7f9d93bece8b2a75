from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

from markstream.pipeline.sanitizer import sanitize_incomplete_markdown

# One parser instance, reused for every render pass.
md = MarkdownIt("commonmark").enable(["table", "strikethrough"])


def parse_markdown(text: str) -> SyntaxTreeNode:
    """Parse Markdown into a syntax tree rooted at a ``root`` node."""
    return SyntaxTreeNode(md.parse(text or ""))


def parse_incomplete_markdown(text: str) -> SyntaxTreeNode:
    """Sanitize a possibly unfinished document, then parse it."""
    return parse_markdown(sanitize_incomplete_markdown(text))
