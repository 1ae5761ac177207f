"""Render Markdown placeholder values into a docxtpl sub-document."""
from typing import Tuple

from bs4 import BeautifulSoup, NavigableString, Tag
from docx.shared import Pt
from markdown import markdown

CODE_FONT = "Courier New"
LIST_INDENT = Pt(36)


def set_style(obj, *style_names: str) -> bool:
    """Apply the first style the document defines; False when none exists."""
    for style_name in style_names:
        try:
            obj.style = style_name
            return True
        except KeyError:
            continue
    return False


def add_runs(p, node, bold: bool = False, italic: bool = False, code: bool = False,
             skip: Tuple[str, ...] = ()) -> None:
    for child in node.children:
        if isinstance(child, NavigableString):
            text = str(child)
            if not code:
                text = text.replace("\n", " ")
            if not text or (not text.strip() and node.name in ("li", "td", "th")):
                continue
            run = p.add_run(text)
            if bold:
                run.bold = True
            if italic:
                run.italic = True
            if code:
                run.font.name = CODE_FONT
            continue
        if not isinstance(child, Tag) or child.name in skip:
            continue
        if child.name in ("strong", "b"):
            add_runs(p, child, True, italic, code)
        elif child.name in ("em", "i"):
            add_runs(p, child, bold, True, code)
        elif child.name == "code":
            add_runs(p, child, bold, italic, True)
        elif child.name == "br":
            p.add_run().add_break()
        else:
            add_runs(p, child, bold, italic, code)


def add_heading(subdoc, node: Tag, level: int) -> None:
    p = subdoc.add_paragraph()
    add_runs(p, node)
    set_style(p, f"Heading {level}")


def add_paragraph(subdoc, node: Tag, style_name: str = "Normal") -> None:
    p = subdoc.add_paragraph()
    add_runs(p, node)
    set_style(p, style_name)


def add_list(subdoc, node: Tag, ordered: bool, level: int = 0) -> None:
    """One paragraph per item; without a list style the marker is written out."""
    style_name = "List Number" if ordered else "List Bullet"
    for number, li in enumerate(node.find_all("li", recursive=False), start=1):
        p = subdoc.add_paragraph()
        if set_style(p, style_name):
            indent = level
        else:
            p.add_run(f"{number}. " if ordered else "• ")
            indent = level + 1
        if indent:
            p.paragraph_format.left_indent = LIST_INDENT * indent
        add_runs(p, li, skip=("ul", "ol"))
        for sub in li.find_all(["ul", "ol"], recursive=False):
            add_list(subdoc, sub, ordered=sub.name == "ol", level=level + 1)


def add_quote(subdoc, node: Tag) -> None:
    for child in node.find_all("p"):
        p = subdoc.add_paragraph()
        add_runs(p, child)
        if not set_style(p, "Quote"):
            p.paragraph_format.left_indent = LIST_INDENT


def add_code_block(subdoc, pre_node: Tag) -> None:
    code = pre_node.get_text().replace("\r\n", "\n").replace("\r", "\n").rstrip("\n")
    for line in code.split("\n"):
        p = subdoc.add_paragraph()
        run = p.add_run(line)
        run.font.name = CODE_FONT


def add_table(subdoc, table_node: Tag) -> None:
    rows = []
    for tr in table_node.find_all("tr"):
        cells = tr.find_all(["th", "td"], recursive=False)
        if cells:
            rows.append((tr.find("th") is not None, cells))
    if not rows:
        return
    cols = max(len(cells) for _, cells in rows)

    table = subdoc.add_table(rows=len(rows), cols=cols)
    set_style(table, "Table Grid")
    for r_idx, (is_header, cells) in enumerate(rows):
        for c_idx, cell_node in enumerate(cells):
            p = table.cell(r_idx, c_idx).paragraphs[0]
            add_runs(p, cell_node, bold=is_header)


def render_markdown_to_subdoc(subdoc, md_text: str) -> None:
    html = markdown(md_text, extensions=["extra"])
    soup = BeautifulSoup(html, "html.parser")

    for node in soup.children:
        if not isinstance(node, Tag):
            continue
        name = node.name
        if name in ("h1", "h2", "h3", "h4", "h5", "h6"):
            add_heading(subdoc, node, int(name[1]))
        elif name in ("ul", "ol"):
            add_list(subdoc, node, ordered=name == "ol")
        elif name == "pre":
            add_code_block(subdoc, node)
        elif name == "blockquote":
            add_quote(subdoc, node)
        elif name == "table":
            add_table(subdoc, node)
        elif name == "hr":
            continue
        else:
            add_paragraph(subdoc, node)
