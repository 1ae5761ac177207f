import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Set

from lxml import etree

from .markup import strip_tags, unescape
from .package import MAIN_PART, Package

log = logging.getLogger(__name__)

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
NS = {"w": W_NS}

# {{ name }}
DOUBLE_BRACE_RE = re.compile(r"{{\s*([^}]+)\s*}}")
# { name } not touching a second brace on either side
SINGLE_BRACE_RE = re.compile(r"(?<!{){\s*([^{}]+)\s*}(?!})")

MAX_SINGLE_NAME = 50


@dataclass(frozen=True)
class Placeholder:
    key: str
    raw: str
    name: str


def _add(raw: str, name: str, found: List[Placeholder], seen: Set[str]) -> None:
    clean = name.strip()
    if clean and clean not in seen:
        seen.add(clean)
        found.append(Placeholder(key=clean, raw=raw, name=clean))


def find_placeholders(full_text: str, max_single_name: int = MAX_SINGLE_NAME) -> List[Placeholder]:
    """Unique placeholders in ``full_text``, sorted by name.

    Double braces win: single-brace candidates are only considered when the text
    has no ``{{...}}`` at all, and then only short one-line names count.
    """
    found: List[Placeholder] = []
    seen: Set[str] = set()

    has_double = False
    for m in DOUBLE_BRACE_RE.finditer(full_text):
        has_double = True
        _add(m.group(0), m.group(1), found, seen)

    if not has_double:
        for m in SINGLE_BRACE_RE.finditer(full_text):
            name = m.group(1).strip()
            if len(name) < max_single_name and "\n" not in name:
                _add(m.group(0), name, found, seen)

    return sorted(found, key=lambda p: p.name)


def paragraph_text(p) -> str:
    return "".join(t.text or "" for t in p.iter(f"{{{W_NS}}}t"))


def part_text(xml: bytes) -> str:
    """Visible text of one part, one line per paragraph."""
    try:
        root = etree.fromstring(xml)
    except etree.XMLSyntaxError:
        log.debug("part does not parse, falling back to tag stripping")
        text = xml.decode("utf-8", errors="replace").replace("</w:p>", "\n")
        return unescape(strip_tags(text, " "))
    return "\n".join(paragraph_text(p) for p in root.iter(f"{{{W_NS}}}p"))


def document_text(pkg: Package) -> str:
    chunks: List[str] = []
    for name in [MAIN_PART] + pkg.header_footer_parts():
        data: Optional[bytes] = pkg.get(name)
        if data is not None:
            chunks.append(part_text(data))
    return "\n".join(chunks)
