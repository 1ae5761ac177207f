"""Append full-page images to the end of a filled document.

Each image becomes a new media part, a new relationship of the main part and a
page break followed by a page-sized inline drawing, spliced in before the
closing ``</w:body>``.
"""
import logging
import re
from typing import List, Optional, Sequence, Tuple

from lxml import etree

from .config import Settings, get_settings
from .package import CONTENT_TYPES_PART, MAIN_PART, RELS_PART, Package

log = logging.getLogger(__name__)

PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
CT_NS = "http://schemas.openxmlformats.org/package/2006/content-types"
IMAGE_REL_TYPE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/image"
BODY_CLOSE = "</w:body>"

RID_RE = re.compile(r"^rId(\d+)$")
DOCPR_ID_RE = re.compile(r"<wp:docPr\b[^>]*?\bid=\"(\d+)\"")

# (signature, extension, content type)
IMAGE_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "png", "image/png"),
    (b"\xff\xd8\xff", "jpg", "image/jpeg"),
    (b"GIF87a", "gif", "image/gif"),
    (b"GIF89a", "gif", "image/gif"),
    (b"BM", "bmp", "image/bmp"),
    (b"II*\x00", "tiff", "image/tiff"),
    (b"MM\x00*", "tiff", "image/tiff"),
)

PAGE_IMAGE_XML = (
    '<w:p><w:r><w:br w:type="page"/></w:r></w:p>'
    '<w:p><w:r><w:drawing>'
    '<wp:inline xmlns:wp="http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing"'
    ' distT="0" distB="0" distL="0" distR="0">'
    '<wp:extent cx="{cx}" cy="{cy}"/>'
    '<wp:effectExtent l="0" t="0" r="0" b="0"/>'
    '<wp:docPr id="{doc_pr_id}" name="Appendix Image {doc_pr_id}"/>'
    '<wp:cNvGraphicFramePr>'
    '<a:graphicFrameLocks xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main" noChangeAspect="1"/>'
    '</wp:cNvGraphicFramePr>'
    '<a:graphic xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main">'
    '<a:graphicData uri="http://schemas.openxmlformats.org/drawingml/2006/picture">'
    '<pic:pic xmlns:pic="http://schemas.openxmlformats.org/drawingml/2006/picture">'
    '<pic:nvPicPr><pic:cNvPr id="0" name="{media_name}"/><pic:cNvPicPr/></pic:nvPicPr>'
    '<pic:blipFill>'
    '<a:blip xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships" r:embed="{rid}"/>'
    '<a:stretch><a:fillRect/></a:stretch>'
    '</pic:blipFill>'
    '<pic:spPr>'
    '<a:xfrm><a:off x="0" y="0"/><a:ext cx="{cx}" cy="{cy}"/></a:xfrm>'
    '<a:prstGeom prst="rect"><a:avLst/></a:prstGeom>'
    '</pic:spPr>'
    '</pic:pic>'
    '</a:graphicData>'
    '</a:graphic>'
    '</wp:inline>'
    '</w:drawing></w:r></w:p>'
)

EMPTY_RELS = (
    b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    b'<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships"/>'
)


def image_type(data: bytes) -> Tuple[str, str]:
    for signature, ext, content_type in IMAGE_SIGNATURES:
        if data.startswith(signature):
            return ext, content_type
    return "jpg", "image/jpeg"


def last_rid(rels_root) -> int:
    highest = 0
    for rel in rels_root.iter(f"{{{PKG_REL_NS}}}Relationship"):
        m = RID_RE.match(rel.get("Id", ""))
        if m:
            highest = max(highest, int(m.group(1)))
    return highest


def add_relationship(rels_root, rid: str, target: str) -> None:
    rel = etree.SubElement(rels_root, f"{{{PKG_REL_NS}}}Relationship")
    rel.set("Id", rid)
    rel.set("Type", IMAGE_REL_TYPE)
    rel.set("Target", target)


def ensure_default_content_type(ct_root, ext: str, content_type: str) -> None:
    for default in ct_root.iter(f"{{{CT_NS}}}Default"):
        if (default.get("Extension") or "").lower() == ext:
            return
    node = etree.Element(f"{{{CT_NS}}}Default")
    node.set("Extension", ext)
    node.set("ContentType", content_type)
    # Default entries conventionally precede Override entries
    ct_root.insert(0, node)


def page_image_xml(rid: str, doc_pr_id: int, media_name: str, cx: int, cy: int) -> str:
    return PAGE_IMAGE_XML.format(rid=rid, doc_pr_id=doc_pr_id, media_name=media_name, cx=cx, cy=cy)


def _unique_media_name(pkg: Package, prefix: str, counter: int, ext: str) -> Tuple[str, int]:
    while True:
        name = f"media/{prefix}_{counter}.{ext}"
        if f"word/{name}" not in pkg:
            return name, counter
        counter += 1


def _parse(data: Optional[bytes], part: str):
    if data is None:
        return None
    try:
        return etree.fromstring(data)
    except etree.XMLSyntaxError:
        log.warning("%s is not well-formed XML", part)
        return None


def _serialize(root) -> bytes:
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True)


def append_pages(data: bytes, images: Sequence[bytes], settings: Optional[Settings] = None) -> bytes:
    """Return a new package with one page per image appended, in input order.

    Missing structure (main part, ``</w:body>``, readable relationships) makes
    this a passthrough that returns ``data`` unchanged.
    """
    if not images:
        return data
    settings = settings or get_settings()
    pkg = Package.from_bytes(data)

    doc_xml = pkg.get_text(MAIN_PART)
    if doc_xml is None:
        log.warning("%s missing, appendix skipped", MAIN_PART)
        return data
    split_index = doc_xml.rfind(BODY_CLOSE)
    if split_index == -1:
        log.warning("no %s in %s, appendix skipped", BODY_CLOSE, MAIN_PART)
        return data

    rels_data = pkg.get(RELS_PART)
    rels_root = _parse(rels_data if rels_data is not None else EMPTY_RELS, RELS_PART)
    if rels_root is None:
        return data
    ct_root = _parse(pkg.get(CONTENT_TYPES_PART), CONTENT_TYPES_PART)

    rid_counter = last_rid(rels_root)
    doc_pr_id = max([int(i) for i in DOCPR_ID_RE.findall(doc_xml)] or [0])
    media_counter = 1
    fragments: List[str] = []

    for image in images:
        rid_counter += 1
        doc_pr_id += 1
        rid = f"rId{rid_counter}"
        ext, content_type = image_type(image)
        media_name, media_counter = _unique_media_name(pkg, settings.media_prefix, media_counter, ext)
        media_counter += 1

        pkg.set(f"word/{media_name}", image)
        add_relationship(rels_root, rid, media_name)
        if ct_root is not None:
            ensure_default_content_type(ct_root, ext, content_type)
        fragments.append(page_image_xml(rid, doc_pr_id, media_name.split("/")[-1], settings.page_cx, settings.page_cy))

    pkg.set(RELS_PART, _serialize(rels_root))
    if ct_root is not None:
        pkg.set(CONTENT_TYPES_PART, _serialize(ct_root))
    pkg.set_text(MAIN_PART, doc_xml[:split_index] + "".join(fragments) + doc_xml[split_index:])
    log.info("appended %d page(s), last relationship rId%d", len(images), rid_counter)
    return pkg.to_bytes()
