"""Helpers for working on serialized WordprocessingML as text."""
import re
from html import unescape as _html_unescape
from typing import List

TAG_RE = re.compile(r"<[^>]+>")
_NAME_RE = re.compile(r"</?\s*([^\s/>]+)")


def tag_name(tag: str) -> str:
    m = _NAME_RE.match(tag)
    return m.group(1) if m else ""


def is_closing(tag: str) -> bool:
    return tag.startswith("</")


def is_self_closing(tag: str) -> bool:
    return tag.endswith("/>") or tag.startswith(("<?", "<!"))


def is_balanced(markup: str) -> bool:
    """True when deleting ``markup`` keeps the surrounding XML well-formed.

    The elements the span closes must be re-opened by the span in mirror order,
    e.g. ``</w:t></w:r><w:r><w:t>``.
    """
    closed: List[str] = []
    stack: List[str] = []
    for tag in TAG_RE.findall(markup):
        if is_self_closing(tag):
            continue
        name = tag_name(tag)
        if is_closing(tag):
            if stack:
                if stack.pop() != name:
                    return False
            else:
                closed.append(name)
        else:
            stack.append(name)
    return closed == list(reversed(stack))


def crosses_paragraph(markup: str) -> bool:
    return "</w:p>" in markup


def strip_tags(text: str, repl: str = "") -> str:
    return TAG_RE.sub(repl, text)


def unescape(text: str) -> str:
    return _html_unescape(text)
