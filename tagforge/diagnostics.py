"""Template lint: problems that make filling fail or produce surprising output.

Checks:
1) RUN_SPLIT: placeholders still split across several runs (healing only
   covers the main text part, headers and footers are reported here).
2) MARKER / SYNTAX: unbalanced markers and template syntax errors.
3) FIELD_EXTERNAL: field codes that pull in outside content.
4) EXTERNAL_RELS: relationships with TargetMode="External".
5) EMBEDDED_OBJECT: OLE/ActiveX parts.

``mode`` picks the checks: "template" runs 1-3, "output" runs 4, "all" runs
both; 5 always runs.
"""
import re
from typing import List, Tuple

from lxml import etree

from .delimiters import Delimiters
from .errors import TemplateIssue
from .fill import template_issues
from .package import Package
from .placeholders import NS, W_NS

PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"

EXTERNAL_FIELD_KEYWORDS = ("INCLUDETEXT", "INCLUDEPICTURE", "LINK", "DDEAUTO", "DDE")
# whole words only, HYPERLINK is not external content
EXTERNAL_FIELD_RE = re.compile(r"\b(?:%s)\b" % "|".join(EXTERNAL_FIELD_KEYWORDS), re.IGNORECASE)
MODES = ("template", "output", "all")

RUN_SPECIAL_TEXT = {
    "tab": "\t",
    "br": "\n",
    "cr": "\n",
    "noBreakHyphen": "\u2011",
    "softHyphen": "\u00ad",
}


def run_text_streams(p) -> Tuple[List[str], List[int]]:
    """Return (run_texts, char_to_run_index) for one paragraph."""
    run_texts: List[str] = []
    char_to_run: List[int] = []

    for run_idx, r in enumerate(p.findall(".//w:r", NS)):
        buf: List[str] = []
        for child in r:
            if not isinstance(child.tag, str):
                continue
            local = etree.QName(child).localname
            if local == "t":
                if child.text:
                    buf.append(child.text)
            elif local in RUN_SPECIAL_TEXT:
                buf.append(RUN_SPECIAL_TEXT[local])
        s = "".join(buf)
        run_texts.append(s)
        char_to_run.extend([run_idx] * len(s))

    return run_texts, char_to_run


def placeholder_pattern(delimiters: Delimiters) -> "re.Pattern":
    start, end = re.escape(delimiters.start), re.escape(delimiters.end)
    return re.compile(f"{start}.*?{end}", re.DOTALL)


def check_run_split(root, part: str, delimiters: Delimiters) -> List[TemplateIssue]:
    pattern = placeholder_pattern(delimiters)
    issues: List[TemplateIssue] = []
    for idx, p in enumerate(root.iter(f"{{{W_NS}}}p")):
        run_texts, char_to_run = run_text_streams(p)
        full_text = "".join(run_texts)
        if delimiters.start not in full_text:
            continue
        for m in pattern.finditer(full_text):
            run_start = char_to_run[m.start()]
            run_end = char_to_run[m.end() - 1]
            if run_start != run_end:
                issues.append(TemplateIssue(
                    f"Placeholder split across runs {run_start + 1}-{run_end + 1} of paragraph {idx}",
                    m.group(0).replace("\n", "\\n"), part, kind="RUN_SPLIT"))
    return issues


def check_external_fields(root, part: str) -> List[TemplateIssue]:
    issues: List[TemplateIssue] = []
    for instr in root.iter(f"{{{W_NS}}}instrText"):
        text = instr.text or ""
        if EXTERNAL_FIELD_RE.search(text):
            issues.append(TemplateIssue("External field", text.strip(), part, kind="FIELD_EXTERNAL"))
    return issues


def check_external_rels(pkg: Package) -> List[TemplateIssue]:
    issues: List[TemplateIssue] = []
    for name in pkg.names():
        if not (name.startswith("word/_rels/") and name.endswith(".rels")):
            continue
        try:
            root = etree.fromstring(pkg.get(name))
        except etree.XMLSyntaxError:
            continue
        for rel in root.iter(f"{{{PKG_REL_NS}}}Relationship"):
            if rel.get("TargetMode") == "External":
                issues.append(TemplateIssue("External relationship", rel.get("Target"), name,
                                            kind="EXTERNAL_RELS"))
    return issues


def check_embedded_objects(pkg: Package) -> List[TemplateIssue]:
    return [
        TemplateIssue("Embedded object", None, name, kind="EMBEDDED_OBJECT")
        for name in pkg.names()
        if name.startswith(("word/embeddings/", "word/activeX/"))
    ]


def check_template(data: bytes, delimiters: Delimiters, mode: str = "all") -> List[TemplateIssue]:
    if mode not in MODES:
        raise ValueError(f"unknown check mode {mode!r}, expected one of {', '.join(MODES)}")
    pkg = Package.from_bytes(data)
    issues: List[TemplateIssue] = []
    if mode in ("template", "all"):
        for part in pkg.xml_parts():
            try:
                root = etree.fromstring(pkg.get(part))
            except etree.XMLSyntaxError:
                continue
            issues.extend(check_run_split(root, part, delimiters))
            issues.extend(check_external_fields(root, part))
        issues.extend(template_issues(data, delimiters))
    if mode in ("output", "all"):
        issues.extend(check_external_rels(pkg))
    issues.extend(check_embedded_objects(pkg))
    return issues
