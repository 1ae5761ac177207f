"""Fill placeholders with values.

Rendering goes through docxtpl with a jinja2 environment built for the
delimiters detected at load time. Placeholder names that are not jinja
identifiers (``{{client name}}``) are looked up directly in the values.
"""
import io
import json
import logging
import re
from typing import Dict, List, Mapping, Optional, Tuple

import jinja2
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docxtpl import DocxTemplate, Listing
from lxml import etree

from .delimiters import Delimiters
from .errors import PartMissing, TemplateIssue, TemplateSyntaxErrors
from .markup import unescape
from .package import MAIN_PART, Package
from .placeholders import W_NS, paragraph_text
from .richtext import render_markdown_to_subdoc

log = logging.getLogger(__name__)

VALUES_NAME = "_tagforge_values"
IDENT_PATH_RE = re.compile(r"[^\W\d]\w*(?:\.\w+)*")
PLAIN_NAME_RE = re.compile(r"[^|()\[\]'\"+*/%~<>=!,:]+")


def renderable_parts(pkg: Package) -> List[str]:
    return [n for n in [MAIN_PART] + pkg.header_footer_parts() if n in pkg]


def build_environment(delimiters: Delimiters) -> jinja2.Environment:
    return jinja2.Environment(
        variable_start_string=delimiters.start,
        variable_end_string=delimiters.end,
        block_start_string="{%",
        block_end_string="%}",
        autoescape=True,
        keep_trailing_newline=True,
        undefined=jinja2.ChainableUndefined,
    )


def token_pattern(delimiters: Delimiters) -> "re.Pattern":
    if delimiters.is_double:
        return re.compile(r"{{\s*([^{}]*?)\s*}}")
    return re.compile(r"(?<!{){(?![{%#])\s*([^{}]*?)\s*}(?!})")


def _marker_pattern(delimiters: Delimiters) -> "re.Pattern":
    if delimiters.is_double:
        return re.compile(r"{{|}}")
    return re.compile(r"{(?![%#])|(?<![%#])}")


def paragraph_marker_issues(text: str, delimiters: Delimiters, part: Optional[str] = None) -> List[TemplateIssue]:
    issues: List[TemplateIssue] = []
    open_at = None
    for m in _marker_pattern(delimiters).finditer(text):
        if m.group(0) == delimiters.start:
            if open_at is not None:
                issues.append(TemplateIssue(
                    "Duplicate open tag, expected one open tag",
                    text[open_at:m.end()], part, kind="MARKER"))
            open_at = m.start()
        elif open_at is None:
            issues.append(TemplateIssue(
                f'The tag "{delimiters.end}" is unopened',
                text[max(0, m.start() - 20):m.end()], part, kind="MARKER"))
        else:
            open_at = None
    if open_at is not None:
        issues.append(TemplateIssue(
            f'The tag beginning with "{text[open_at:open_at + 12]}" is unclosed',
            text[open_at:open_at + 30], part, kind="MARKER"))
    return issues


def marker_issues(xml: str, part: str, delimiters: Delimiters) -> List[TemplateIssue]:
    try:
        root = etree.fromstring(xml.encode("utf-8"))
    except etree.XMLSyntaxError as exc:
        return [TemplateIssue(f"Part is not well-formed XML: {exc}", None, part, kind="MARKER")]
    issues: List[TemplateIssue] = []
    for p in root.iter(f"{{{W_NS}}}p"):
        for issue in paragraph_marker_issues(paragraph_text(p), delimiters, part):
            if issue not in issues:
                issues.append(issue)
    return issues


def rewrite_plain_names(xml: str, delimiters: Delimiters, keys) -> str:
    keys = set(keys)

    def _rewrite(m: "re.Match") -> str:
        name = unescape(m.group(1))
        if name in keys or (not IDENT_PATH_RE.fullmatch(name) and PLAIN_NAME_RE.fullmatch(name)):
            return f"{delimiters.start} {VALUES_NAME}[{json.dumps(name)}] {delimiters.end}"
        return m.group(0)

    return token_pattern(delimiters).sub(_rewrite, xml)


def collapse_paragraph_tags(xml: str, delimiters: Delimiters) -> str:
    """Replace a paragraph holding ``{p name}`` with a bare ``{ name }`` tag.

    docxtpl does this itself for ``{{p name}}`` only.
    """
    pattern = re.compile(
        r"<w:p[ >](?:(?!<w:p[ >]).)*%sp ([^{}%%]*?)\s*%s.*?</w:p>"
        % (re.escape(delimiters.start), re.escape(delimiters.end)),
        re.DOTALL,
    )
    return pattern.sub(lambda m: f"{delimiters.start} {m.group(1)} {delimiters.end}", xml)


class TagforgeTemplate(DocxTemplate):
    """DocxTemplate that understands both delimiter conventions and plain names."""

    def __init__(self, template_file, delimiters: Delimiters, keys=()) -> None:
        super().__init__(template_file)
        self.delimiters = delimiters
        self.value_keys = set(keys)

    def patch_xml(self, src_xml: str) -> str:
        # jinja comments are off: "{#" in text stays text
        src_xml = src_xml.replace("{#", "&#123;#")
        src_xml = super().patch_xml(src_xml)
        if not self.delimiters.is_double:
            src_xml = collapse_paragraph_tags(src_xml, self.delimiters)
        return rewrite_plain_names(src_xml, self.delimiters, self.value_keys)


def _offending_token(env: jinja2.Environment, source: str, delimiters: Delimiters) -> Optional[str]:
    for m in token_pattern(delimiters).finditer(source):
        try:
            env.parse(m.group(0))
        except jinja2.TemplateSyntaxError:
            return unescape(m.group(0))
    return None


def syntax_issues(data: bytes, delimiters: Delimiters, keys=()) -> List[TemplateIssue]:
    pkg = Package.from_bytes(data)
    tpl = TagforgeTemplate(io.BytesIO(data), delimiters, keys)
    env = build_environment(delimiters)
    issues: List[TemplateIssue] = []
    for part in renderable_parts(pkg):
        xml = pkg.get_text(part)
        part_issues = marker_issues(xml, part, delimiters)
        if part_issues:
            # jinja would only repeat these
            issues.extend(part_issues)
            continue
        source = tpl.patch_xml(xml)
        try:
            env.parse(source)
        except jinja2.TemplateSyntaxError as exc:
            issues.append(TemplateIssue(exc.message or str(exc), _offending_token(env, source, delimiters), part))
    return issues


def template_issues(data: bytes, delimiters: Delimiters) -> List[TemplateIssue]:
    """Marker and syntax problems that would make ``generate`` fail."""
    return syntax_issues(data, delimiters)


def prepare_values(data: Mapping) -> Dict:
    values = {}
    for key, value in data.items():
        if isinstance(value, str) and ("\n" in value or "\r" in value):
            values[key] = Listing(value.replace("\r\n", "\n").replace("\r", "\n"))
        else:
            values[key] = value
    return values


def _tostring(root) -> str:
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True).decode("utf-8")


def mark_markdown_paragraphs(xml: str, names, delimiters: Delimiters) -> Tuple[str, List[str]]:
    """Rebuild paragraphs holding only a markdown-valued placeholder as ``{{p name}}``.

    The paragraph keeps its properties and gets a single run, so docxtpl swaps
    the whole paragraph for the rendered sub-document.
    """
    root = etree.fromstring(xml.encode("utf-8"))
    pattern = token_pattern(delimiters)
    marked: List[str] = []
    for p in list(root.iter(f"{{{W_NS}}}p")):
        m = pattern.fullmatch(paragraph_text(p).strip())
        if not m or m.group(1) not in names:
            continue
        ppr = p.find(f"{{{W_NS}}}pPr")
        for child in list(p):
            if child is not ppr:
                p.remove(child)
        r = etree.SubElement(p, f"{{{W_NS}}}r")
        t = etree.SubElement(r, f"{{{W_NS}}}t")
        t.text = delimiters.token(f"p {m.group(1)}")
        marked.append(m.group(1))
    if not marked:
        return xml, marked
    return _tostring(root), marked


def update_fields_on_open(doc) -> None:
    settings = doc.settings.element
    update_fields = settings.find(qn("w:updateFields"))
    if update_fields is None:
        update_fields = OxmlElement("w:updateFields")
        update_fields.set(qn("w:val"), "true")
        settings.append(update_fields)


def render_package(data: bytes, delimiters: Delimiters, values: Mapping,
                   markdown_values: Optional[Mapping[str, str]] = None,
                   update_fields: bool = False) -> bytes:
    """Render every text part of ``data`` with ``values``.

    Raises TemplateSyntaxErrors listing every problem found before anything is
    rendered, so no partially filled document is ever returned.
    """
    pkg = Package.from_bytes(data)
    if MAIN_PART not in pkg:
        raise PartMissing(MAIN_PART)
    marked: List[str] = []
    if markdown_values:
        try:
            xml, marked = mark_markdown_paragraphs(pkg.get_text(MAIN_PART), markdown_values, delimiters)
        except etree.XMLSyntaxError:
            log.warning("%s does not parse, markdown values rendered as plain text", MAIN_PART)
        if marked:
            pkg.set_text(MAIN_PART, xml)
            data = pkg.to_bytes()
        # placeholders sharing a paragraph with other text get the raw Markdown
        values = {**markdown_values, **values}

    issues = syntax_issues(data, delimiters, values.keys())
    if issues:
        raise TemplateSyntaxErrors(issues)

    tpl = TagforgeTemplate(io.BytesIO(data), delimiters, values.keys())
    context = prepare_values(values)
    for name in marked:
        subdoc = tpl.new_subdoc()
        render_markdown_to_subdoc(subdoc, markdown_values[name])
        context[name] = subdoc
    log.debug("rendered %d markdown paragraph(s)", len(marked))
    context[VALUES_NAME] = dict(context)

    try:
        tpl.render(context, jinja_env=build_environment(delimiters))
    except jinja2.TemplateError as exc:
        raise TemplateSyntaxErrors([TemplateIssue(exc.message or str(exc), None, kind="RENDER")]) from exc
    if update_fields:
        update_fields_on_open(tpl.docx)

    buf = io.BytesIO()
    tpl.save(buf)
    return buf.getvalue()
