"""Repair placeholder fragmentation in the main text part.

Word splits text into runs whenever formatting, spell checking or revision
tracking changes, so a placeholder typed as ``{{name}}`` can be stored as
``{</w:t></w:r><w:r><w:t>{na</w:t>...<w:t>me}}``. Healing puts every
placeholder back into one uninterrupted token.
"""
import logging
import re
from typing import List

from lxml import etree

from .delimiters import Delimiters
from .markup import TAG_RE, crosses_paragraph, is_balanced, strip_tags
from .package import MAIN_PART, Package

log = logging.getLogger(__name__)

NOISE_ELEMENTS = (
    "proofErr",
    "noProof",
    "lang",
    "bookmarkStart",
    "bookmarkEnd",
    "commentRangeStart",
    "commentRangeEnd",
    "permStart",
    "permEnd",
    "moveFromRangeStart",
    "moveFromRangeEnd",
    "moveToRangeStart",
    "moveToRangeEnd",
    r"rsid\w*",
)

NOISE_RE = re.compile(r"<w:(?:%s)\b[^>]*/>" % "|".join(NOISE_ELEMENTS))
MARKER_RE = re.compile(r"[{}]")
SPLIT_GAP_RE = re.compile(r"\s*(?:<[^>]+>)+\s*")
DOUBLE_TAG_RE = re.compile(r"{{([\s\S]*?)}}")


def remove_noise(xml: str) -> str:
    return NOISE_RE.sub("", xml)


def _removable(markup: str) -> bool:
    return is_balanced(markup) and not crosses_paragraph(markup)


def repair_split_markers(xml: str, marker: str) -> str:
    """Collapse ``marker <markup> marker`` into a doubled marker."""
    positions = [m.start() for m in MARKER_RE.finditer(xml)]
    out: List[str] = []
    pos = 0
    k = 0
    while k < len(positions) - 1:
        first, second = positions[k], positions[k + 1]
        if xml[first] == marker and xml[second] == marker:
            gap = xml[first + 1:second]
            if SPLIT_GAP_RE.fullmatch(gap) and _removable(gap):
                out.append(xml[pos:first])
                out.append(marker * 2)
                pos = second + 1
                k += 2
                continue
        k += 1
    if not out:
        return xml
    out.append(xml[pos:])
    return "".join(out)


def _consolidate(match: "re.Match") -> str:
    content = match.group(1)
    markup = "".join(TAG_RE.findall(content))
    if markup and not _removable(markup):
        return match.group(0)
    name = strip_tags(content).replace("{", "").replace("}", "").strip()
    return "{{%s}}" % name


def consolidate_tags(xml: str) -> str:
    return DOUBLE_TAG_RE.sub(_consolidate, xml)


def _well_formed(xml: str) -> bool:
    try:
        etree.fromstring(xml.encode("utf-8"))
    except etree.XMLSyntaxError:
        return False
    return True


def normalize(xml: str, double_mode: bool = True) -> str:
    cleaned = remove_noise(xml)
    if not double_mode:
        # a lone "{" is too common in prose to repair safely
        return cleaned

    healed = repair_split_markers(cleaned, "{")
    healed = repair_split_markers(healed, "}")
    # stray markers inside a tag are dropped by consolidation; no separate duplicate-open pass
    healed = consolidate_tags(healed)

    if healed != cleaned and not _well_formed(healed) and _well_formed(xml):
        log.warning("healing produced malformed XML, keeping noise removal only")
        return cleaned
    return healed


def heal_package(data: bytes, delimiters: Delimiters) -> bytes:
    """Return ``data`` with a healed main text part.

    Raises ArchiveCorrupt when ``data`` is not an archive; a missing main part
    is passed through untouched.
    """
    pkg = Package.from_bytes(data)
    try:
        xml = pkg.get_text(MAIN_PART)
    except UnicodeDecodeError:
        log.warning("main part is not UTF-8, skipping healing")
        return data
    if xml is None:
        log.info("%s missing, nothing to heal", MAIN_PART)
        return data

    healed = normalize(xml, delimiters.is_double)
    if healed == xml:
        return data
    pkg.set_text(MAIN_PART, healed)
    return pkg.to_bytes()
