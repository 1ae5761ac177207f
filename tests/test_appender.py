import io
import zipfile

from conftest import W_NS, para, part_names, read_part
from docx import Document
from lxml import etree

from tagforge import append_pages
from tagforge.appender import CT_NS, PKG_REL_NS, image_type
from tagforge.config import Settings


def _relationships(data):
    root = etree.fromstring(read_part(data, "word/_rels/document.xml.rels").encode("utf-8"))
    return {rel.get("Id"): rel for rel in root.iter(f"{{{PKG_REL_NS}}}Relationship")}


def test_two_pages_appended_in_order(docx, png_bytes, jpeg_bytes):
    data = docx(para("filled"))
    out = append_pages(data, [png_bytes, jpeg_bytes])

    rels = _relationships(out)
    assert rels["rId6"].get("Target") == "media/appendix_img_1.png"
    assert rels["rId7"].get("Target") == "media/appendix_img_2.jpg"
    assert rels["rId6"].get("Type").endswith("/relationships/image")
    assert len(rels) == 5

    doc = read_part(out)
    original = read_part(data)
    split = original.rindex("</w:body>")
    assert doc.startswith(original[:split])
    assert doc.endswith(original[split:])
    added = doc[split:len(doc) - len(original[split:])]
    assert added.count('<w:br w:type="page"/>') == 2
    assert added.index('r:embed="rId6"') < added.index('r:embed="rId7"')

    names = part_names(out)
    assert "word/media/appendix_img_1.png" in names
    assert "word/media/appendix_img_2.jpg" in names


def test_media_bytes_stored(docx, png_bytes):
    out = append_pages(docx(para("x")), [png_bytes])
    with zipfile.ZipFile(io.BytesIO(out)) as zin:
        assert zin.read("word/media/appendix_img_1.png") == png_bytes


def test_content_types_registered(docx, png_bytes, jpeg_bytes):
    out = append_pages(docx(para("x")), [png_bytes, jpeg_bytes, png_bytes])
    root = etree.fromstring(read_part(out, "[Content_Types].xml").encode("utf-8"))
    defaults = [d.get("Extension") for d in root.iter(f"{{{CT_NS}}}Default")]
    assert defaults.count("png") == 1
    assert defaults.count("jpg") == 1


def test_existing_media_names_kept(docx, png_bytes):
    data = docx(para("x"), parts={"word/media/appendix_img_1.png": b"old"})
    out = append_pages(data, [png_bytes])
    assert _relationships(out)["rId6"].get("Target") == "media/appendix_img_2.png"


def test_drawing_ids_unique(docx, png_bytes):
    body = para("x") + '<w:p><w:r><w:drawing><wp:docPr id="7" name="Picture 7"/></w:drawing></w:r></w:p>'
    out = append_pages(docx(body), [png_bytes, png_bytes])
    doc = read_part(out)
    assert 'id="8" name="Appendix Image 8"' in doc
    assert 'id="9" name="Appendix Image 9"' in doc


def test_page_size_from_settings(docx, png_bytes):
    out = append_pages(docx(para("x")), [png_bytes], Settings(page_cx=1000, page_cy=2000))
    assert '<wp:extent cx="1000" cy="2000"/>' in read_part(out)


def test_result_opens_in_python_docx(docx, png_bytes, jpeg_bytes):
    out = append_pages(docx(para("x")), [png_bytes, jpeg_bytes])
    document = Document(io.BytesIO(out))
    assert len(document.inline_shapes) == 2


def test_no_images_passthrough(docx):
    data = docx(para("x"))
    assert append_pages(data, []) is data


def test_missing_main_part_passthrough(docx, png_bytes):
    data = docx(para("x"), drop=("word/document.xml",))
    assert append_pages(data, [png_bytes]) == data


def test_missing_body_close_passthrough(docx, png_bytes):
    data = docx(document=f'<w:document xmlns:w="{W_NS}"/>')
    assert append_pages(data, [png_bytes]) == data


def test_missing_relationships_part_created(docx, png_bytes):
    data = docx(para("x"), drop=("word/_rels/document.xml.rels",))
    out = append_pages(data, [png_bytes])
    assert list(_relationships(out)) == ["rId1"]


def test_unreadable_relationships_passthrough(docx, png_bytes):
    data = docx(para("x"), parts={"word/_rels/document.xml.rels": b"<Relationships"})
    assert append_pages(data, [png_bytes]) == data


def test_image_type_sniffing(png_bytes, jpeg_bytes):
    assert image_type(png_bytes) == ("png", "image/png")
    assert image_type(jpeg_bytes) == ("jpg", "image/jpeg")
    assert image_type(b"GIF89a...") == ("gif", "image/gif")
    assert image_type(b"unknown") == ("jpg", "image/jpeg")
