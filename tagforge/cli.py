"""Command-line front end.

Usage:
  tagforge tags template.docx
  tagforge heal in.docx out.docx
  tagforge scan template.docx "Acme Corp"
  tagforge replace in.docx out.docx --text "Acme Corp" --name client --index 0 --index 2
  tagforge fill template.docx out.docx --data values.json --set city=Paris --markdown body=body.md
  tagforge append filled.docx final.docx page1.png page2.jpg
  tagforge check template.docx --mode template

Exit codes:
  0: ok
  1: fatal error
  2: template issues found
"""
import argparse
import json
from pathlib import Path
from typing import Dict, List, Optional

from .config import get_settings
from .diagnostics import check_template
from .engine import TemplateSession, append_pages
from .errors import TagforgeError, TemplateSyntaxErrors


def read_file(path: str) -> bytes:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)
    return p.read_bytes()


def write_docx(path: str, data: bytes) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(data)
    print(f"[OK] wrote: {out}")


def parse_assignments(items: Optional[List[str]]) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for item in items or []:
        if "=" not in item:
            raise ValueError(f"expected NAME=VALUE, got {item!r}")
        name, value = item.split("=", 1)
        values[name.strip()] = value
    return values


def open_session(path: str) -> TemplateSession:
    session = TemplateSession(get_settings())
    session.load(read_file(path))
    return session


def cmd_tags(args) -> int:
    session = open_session(args.docx)
    tags = session.tags()
    print(f"[OK] delimiters: {session.delimiters.start} {session.delimiters.end}")
    for tag in tags:
        print(f"{tag.name}\t{tag.raw}")
    print(f"[OK] placeholders: {len(tags)}")
    return 0


def cmd_heal(args) -> int:
    session = open_session(args.input)
    write_docx(args.output, session.export())
    return 0


def cmd_scan(args) -> int:
    session = open_session(args.docx)
    occurrences = session.scan(args.text)
    for occ in occurrences:
        print(f"[{occ.index}] {occ.context}")
    print(f"[OK] occurrences: {len(occurrences)}")
    return 0


def cmd_replace(args) -> int:
    session = open_session(args.input)
    if args.all:
        indices = [occ.index for occ in session.scan(args.text)]
    else:
        indices = args.index or []
    if not indices:
        print("[ERROR] nothing selected: pass --index or --all")
        return 1
    session.replace(args.text, args.name, indices)
    print(f"[OK] replaced {len(indices)} occurrence(s) with {{{{{args.name}}}}}")
    write_docx(args.output, session.export())
    return 0


def cmd_fill(args) -> int:
    session = open_session(args.input)
    values: Dict = {}
    if args.data:
        values.update(json.loads(Path(args.data).read_text(encoding="utf-8")))
    values.update(parse_assignments(args.set))
    markdown_values = {
        name: Path(path).read_text(encoding="utf-8")
        for name, path in parse_assignments(args.markdown).items()
    }
    data = session.generate(values, markdown_values or None, update_fields=args.update_fields)
    if args.append:
        data = append_pages(data, [read_file(p) for p in args.append], session.settings)
    write_docx(args.output, data)
    return 0


def cmd_append(args) -> int:
    images = [read_file(p) for p in args.images]
    data = append_pages(read_file(args.input), images, get_settings())
    write_docx(args.output, data)
    return 0


def cmd_check(args) -> int:
    session = open_session(args.docx)
    issues = check_template(session.export(), session.delimiters, args.mode)
    if not issues:
        print("[OK] no issues found.")
        return 0
    print(f"[WARN] issues found: {min(len(issues), args.max)}/{len(issues)}")
    for issue in issues[:args.max]:
        print(f"{issue.kind} {issue.part or '-'}: {issue.describe()}")
    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tagforge", description="Docx placeholder tooling.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("tags", help="list placeholders")
    p.add_argument("docx")
    p.set_defaults(func=cmd_tags)

    p = sub.add_parser("heal", help="write a copy with healed placeholders")
    p.add_argument("input")
    p.add_argument("output")
    p.set_defaults(func=cmd_heal)

    p = sub.add_parser("scan", help="list occurrences of a text")
    p.add_argument("docx")
    p.add_argument("text")
    p.set_defaults(func=cmd_scan)

    p = sub.add_parser("replace", help="turn occurrences of a text into a placeholder")
    p.add_argument("input")
    p.add_argument("output")
    p.add_argument("--text", required=True)
    p.add_argument("--name", required=True, help="placeholder name")
    p.add_argument("--index", type=int, action="append", help="occurrence index from scan (repeatable)")
    p.add_argument("--all", action="store_true", help="replace every occurrence")
    p.set_defaults(func=cmd_replace)

    p = sub.add_parser("fill", help="fill placeholders with values")
    p.add_argument("input")
    p.add_argument("output")
    p.add_argument("--data", help="JSON file with placeholder values")
    p.add_argument("--set", action="append", metavar="NAME=VALUE")
    p.add_argument("--markdown", action="append", metavar="NAME=FILE.md",
                   help="render a Markdown file in place of a placeholder paragraph")
    p.add_argument("--append", action="append", metavar="IMAGE", help="append an image as a full page")
    p.add_argument("--update-fields", action="store_true", help="ask Word to refresh fields on open")
    p.set_defaults(func=cmd_fill)

    p = sub.add_parser("append", help="append images as full pages")
    p.add_argument("input")
    p.add_argument("output")
    p.add_argument("images", nargs="+")
    p.set_defaults(func=cmd_append)

    p = sub.add_parser("check", help="template self-check")
    p.add_argument("docx")
    p.add_argument(
        "--mode",
        choices=["template", "output", "all"],
        default="all",
        help="template: placeholders and fields; output: external links; all: everything",
    )
    p.add_argument("--max", type=int, default=200, help="max issues to print (default 200)")
    p.set_defaults(func=cmd_check)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    get_settings().configure_logging()
    try:
        return args.func(args)
    except TemplateSyntaxErrors as exc:
        print(f"[ERROR] {exc.message}")
        return 2
    except TagforgeError as exc:
        print(f"[ERROR] {exc.title}: {exc.message}")
        return 1
    except FileNotFoundError as exc:
        print(f"[ERROR] file not found: {exc.filename or exc}")
        return 1
    except ValueError as exc:
        print(f"[ERROR] {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
