import json

from conftest import para, part_names, read_part

from tagforge.cli import main, parse_assignments


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_bytes(data)
    return str(path)


def test_tags(tmp_path, capsys, docx):
    src = _write(tmp_path, "t.docx", docx(para("{{name}} and {{city}}")))
    assert main(["tags", src]) == 0
    out = capsys.readouterr().out
    assert "city\t{{city}}" in out
    assert "[OK] placeholders: 2" in out


def test_heal(tmp_path, docx):
    src = _write(tmp_path, "t.docx", docx('<w:p><w:r><w:t>{{na</w:t></w:r><w:r><w:t>me}}</w:t></w:r></w:p>'))
    dst = tmp_path / "out" / "healed.docx"
    assert main(["heal", src, str(dst)]) == 0
    assert "{{name}}" in read_part(dst.read_bytes())


def test_scan(tmp_path, capsys, docx):
    src = _write(tmp_path, "t.docx", docx(para("Acme here") + para("and Acme there")))
    assert main(["scan", src, "acme"]) == 0
    out = capsys.readouterr().out
    assert "[0] ..." in out
    assert "[1] ..." in out
    assert "Acme here" in out
    assert "[OK] occurrences: 2" in out


def test_replace_selected_index(tmp_path, docx):
    src = _write(tmp_path, "t.docx", docx(para("Acme 1") + para("Acme 2")))
    dst = tmp_path / "r.docx"
    assert main(["replace", src, str(dst), "--text", "Acme", "--name", "client", "--index", "1"]) == 0
    doc = read_part(dst.read_bytes())
    assert "Acme 1" in doc
    assert "{{client}} 2" in doc


def test_replace_all(tmp_path, docx):
    src = _write(tmp_path, "t.docx", docx(para("Acme 1") + para("Acme 2")))
    dst = tmp_path / "r.docx"
    assert main(["replace", src, str(dst), "--text", "Acme", "--name", "client", "--all"]) == 0
    assert read_part(dst.read_bytes()).count("{{client}}") == 2


def test_replace_needs_selection(tmp_path, capsys, docx):
    src = _write(tmp_path, "t.docx", docx(para("Acme")))
    assert main(["replace", src, str(tmp_path / "r.docx"), "--text", "Acme", "--name", "c"]) == 1
    assert "nothing selected" in capsys.readouterr().out


def test_replace_missing_text(tmp_path, capsys, docx):
    src = _write(tmp_path, "t.docx", docx(para("nothing")))
    dst = tmp_path / "r.docx"
    assert main(["replace", src, str(dst), "--text", "Acme", "--name", "c", "--index", "0"]) == 1
    assert "[ERROR] Text not found" in capsys.readouterr().out
    assert not dst.exists()


def test_fill(tmp_path, docx, png_bytes):
    src = _write(tmp_path, "t.docx", docx(para("{{name}} of {{city}}") + para("{{body}}")))
    data = tmp_path / "values.json"
    data.write_text(json.dumps({"name": "Ann", "city": "Rome"}), encoding="utf-8")
    body = tmp_path / "body.md"
    body.write_text("# Report\n", encoding="utf-8")
    image = _write(tmp_path, "page.png", png_bytes)
    dst = tmp_path / "filled.docx"

    rc = main(["fill", src, str(dst), "--data", str(data), "--set", "city=Paris",
               "--markdown", f"body={body}", "--append", image])
    assert rc == 0
    filled = dst.read_bytes()
    doc = read_part(filled)
    assert "Ann of Paris" in doc
    assert ">Report<" in doc
    assert 'r:embed="rId' in doc
    assert "word/media/appendix_img_1.png" in part_names(filled)


def test_fill_syntax_errors(tmp_path, capsys, docx):
    src = _write(tmp_path, "t.docx", docx(para("{{a") + para("b}}")))
    assert main(["fill", src, str(tmp_path / "f.docx")]) == 2
    out = capsys.readouterr().out
    assert "Template Syntax Errors:" in out
    assert "2. " in out


def test_append(tmp_path, docx, png_bytes, jpeg_bytes):
    src = _write(tmp_path, "t.docx", docx(para("x")))
    images = [_write(tmp_path, "a.png", png_bytes), _write(tmp_path, "b.jpg", jpeg_bytes)]
    dst = tmp_path / "a.docx"
    assert main(["append", src, str(dst)] + images) == 0
    assert read_part(dst.read_bytes()).count('<w:br w:type="page"/>') == 2


def test_check(tmp_path, capsys, docx):
    clean = _write(tmp_path, "clean.docx", docx(para("{{name}}")))
    assert main(["check", clean]) == 0
    assert "[OK] no issues found." in capsys.readouterr().out

    broken = _write(tmp_path, "broken.docx", docx(para("{{a")))
    assert main(["check", broken]) == 2
    out = capsys.readouterr().out
    assert "[WARN] issues found: 1/1" in out
    assert "MARKER word/document.xml" in out


def test_missing_file(tmp_path, capsys):
    assert main(["tags", str(tmp_path / "nope.docx")]) == 1
    assert "file not found" in capsys.readouterr().out


def test_corrupt_file(tmp_path, capsys):
    src = _write(tmp_path, "bad.docx", b"not a zip")
    assert main(["tags", src]) == 1
    assert "[ERROR] Unreadable file" in capsys.readouterr().out


def test_bad_assignment(tmp_path, capsys, docx):
    src = _write(tmp_path, "t.docx", docx(para("{{a}}")))
    assert main(["fill", src, str(tmp_path / "f.docx"), "--set", "novalue"]) == 1
    assert "expected NAME=VALUE" in capsys.readouterr().out


def test_parse_assignments():
    assert parse_assignments(["a=1", " b =x=y"]) == {"a": "1", "b": "x=y"}
    assert parse_assignments(None) == {}
