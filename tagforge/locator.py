"""Find and replace visible text that Word has split across runs.

The main part is tokenised into markup, character references and literal
characters. Only characters inside ``<w:t>`` can be matched; markup (and
whitespace between elements) may sit between any two matched characters. The
matcher walks the token list directly, so there is no regex backtracking on
large documents.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

from .markup import TAG_RE, crosses_paragraph, is_balanced, is_closing, is_self_closing, tag_name, unescape

_TOKEN_RE = re.compile(r"<[^>]*>|&#?\w+;|[^<&]+|[<&]")
_WS_RE = re.compile(r"\s+")

LITERAL = 0
SKIP = 1
BLOCK = 2


class Token(NamedTuple):
    kind: int
    start: int
    end: int
    char: str


@dataclass
class Occurrence:
    index: int
    context: str
    selected: bool = False


def tokenize(xml: str) -> List[Token]:
    tokens: List[Token] = []
    in_text = False
    for m in _TOKEN_RE.finditer(xml):
        tok = m.group(0)
        start = m.start()
        if tok.startswith("<") and len(tok) > 1:
            if tag_name(tok) == "w:t" and not is_self_closing(tok):
                in_text = not is_closing(tok)
            tokens.append(Token(SKIP, start, m.end(), ""))
        elif tok.startswith("&") and tok.endswith(";") and len(tok) > 2:
            tokens.append(_text_token(unescape(tok), start, m.end(), in_text))
        else:
            for offset, ch in enumerate(tok):
                tokens.append(_text_token(ch, start + offset, start + offset + 1, in_text))
    return tokens


def _text_token(ch: str, start: int, end: int, in_text: bool) -> Token:
    if in_text:
        return Token(LITERAL, start, end, ch)
    if ch.isspace():
        return Token(SKIP, start, end, ch)
    return Token(BLOCK, start, end, ch)


def find_matches(tokens: Sequence[Token], search_text: str, ignore_case: bool = False) -> List[Tuple[int, int]]:
    """Non-overlapping matches as (first token, last token) index pairs."""
    if not search_text:
        return []
    fold = str.lower if ignore_case else (lambda s: s)
    needle = [fold(ch) for ch in search_text]
    matches: List[Tuple[int, int]] = []
    n = len(tokens)
    i = 0
    while i < n:
        tok = tokens[i]
        if tok.kind != LITERAL or fold(tok.char) != needle[0]:
            i += 1
            continue
        last = _match_from(tokens, i, needle, fold)
        if last is None:
            i += 1
            continue
        matches.append((i, last))
        i = last + 1
    return matches


def _match_from(tokens: Sequence[Token], i: int, needle: List[str], fold) -> Optional[int]:
    j = i
    for expected in needle[1:]:
        j += 1
        while j < len(tokens) and tokens[j].kind == SKIP:
            j += 1
        if j >= len(tokens):
            return None
        tok = tokens[j]
        if tok.kind != LITERAL or fold(tok.char) != expected:
            return None
    return j


def clean_text(raw: str) -> str:
    # a space per element keeps words in adjacent paragraphs apart
    text = unescape(TAG_RE.sub(" ", raw))
    return _WS_RE.sub(" ", text).strip()


def context_snippet(xml: str, start: int, end: int, search_text: str,
                    window: int = 200, chars: int = 30) -> str:
    chunk = clean_text(xml[max(0, start - window):min(len(xml), end + window)])
    pos = chunk.lower().find(search_text.lower())
    if pos == -1:
        # the match spans element boundaries
        return "..." + chunk[:min(60, len(chunk))] + "..."
    ctx_start = max(0, pos - chars)
    ctx_end = min(len(chunk), pos + len(search_text) + chars)
    return "..." + chunk[ctx_start:ctx_end] + "..."


def scan_xml(xml: str, search_text: str, window: int = 200, chars: int = 30) -> List[Occurrence]:
    tokens = tokenize(xml)
    occurrences = []
    for index, (first, last) in enumerate(find_matches(tokens, search_text, ignore_case=True)):
        ctx = context_snippet(xml, tokens[first].start, tokens[last].end, search_text, window, chars)
        occurrences.append(Occurrence(index=index, context=ctx))
    return occurrences


def replace_xml(xml: str, search_text: str, replacement: str, selected: Iterable[int]) -> Tuple[str, int]:
    """Replace the selected matches (case-sensitive) with ``replacement`` markup.

    Returns the new text and the total number of matches seen. Unselected
    matches are left byte-for-byte as they were.
    """
    tokens = tokenize(xml)
    matches = find_matches(tokens, search_text)
    wanted = set(selected)
    out: List[str] = []
    pos = 0
    for index, (first, last) in enumerate(matches):
        if index not in wanted:
            continue
        start, end = tokens[first].start, tokens[last].end
        out.append(xml[pos:start])
        out.append(replacement)
        markup = "".join(TAG_RE.findall(xml[start:end]))
        if markup and not (is_balanced(markup) and not crosses_paragraph(markup)):
            # keep the structure, drop only the matched characters
            for tok in tokens[first + 1:last + 1]:
                if tok.kind != LITERAL:
                    out.append(xml[tok.start:tok.end])
        pos = end
    out.append(xml[pos:])
    return "".join(out), len(matches)


def placeholder_markup(name: str, start: str = "{{", end: str = "}}") -> str:
    return escape(f"{start}{name}{end}")
