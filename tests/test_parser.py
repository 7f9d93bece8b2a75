from markstream.pipeline.parser import parse_incomplete_markdown, parse_markdown


def inline_children(root):
    paragraph = root.children[0]
    assert paragraph.type == "paragraph"
    return paragraph.children[0].children


def test_parse_heading():
    root = parse_markdown("# Hi\n")
    assert root.type == "root"
    assert root.children[0].type == "heading"
    assert root.children[0].tag == "h1"


def test_parse_empty():
    assert parse_markdown("").children == []


def test_tables_enabled():
    root = parse_markdown("| a | b |\n|---|---|\n| 1 | 2 |\n")
    assert root.children[0].type == "table"


def test_strikethrough_enabled():
    assert inline_children(parse_markdown("~~gone~~"))[0].type == "s"


def test_unfinished_bold_is_literal_without_sanitizing():
    children = inline_children(parse_markdown("**bo"))
    assert all(child.type == "text" for child in children)


def test_unfinished_bold_parses_as_strong_after_sanitizing():
    children = inline_children(parse_incomplete_markdown("**bo"))
    assert children[0].type == "strong"


def test_incomplete_link_parses_as_link():
    children = inline_children(parse_incomplete_markdown("see [docs](https://exa"))
    link = [child for child in children if child.type == "link"][0]
    assert link.attrs["href"] == "markstream:incomplete-link"
