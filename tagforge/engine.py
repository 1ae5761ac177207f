"""Load pipeline and public operations.

Every operation takes the LoadedState returned by ``load``; the delimiter
convention travels inside it instead of living on a shared object. Operations
that change the document return new package bytes and never touch the state
they were given.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from . import appender
from .config import Settings, get_settings
from .delimiters import Delimiters, detect_delimiters
from .errors import NoDocumentLoaded, TemplateIssue, TextNotFound
from .fill import render_package, template_issues
from .healer import heal_package
from .locator import Occurrence, placeholder_markup, replace_xml, scan_xml
from .package import MAIN_PART, Package
from .placeholders import Placeholder, document_text, find_placeholders

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedState:
    package: bytes
    delimiters: Delimiters
    issues: Tuple[TemplateIssue, ...] = ()
    settings: Settings = field(default_factory=Settings)


def _require(state: Optional[LoadedState]) -> LoadedState:
    if state is None:
        raise NoDocumentLoaded()
    return state


def load(data: bytes, settings: Optional[Settings] = None) -> LoadedState:
    """Detect the delimiter convention and heal the main text part.

    Raises ArchiveCorrupt when ``data`` is not an archive. Template problems do
    not fail the load; they are kept in ``LoadedState.issues``.
    """
    settings = settings or get_settings()
    delimiters = detect_delimiters(data)
    healed = heal_package(data, delimiters)
    issues = template_issues(healed, delimiters)
    if issues:
        log.warning("template has %d issue(s), filling will fail until they are fixed", len(issues))
    return LoadedState(package=healed, delimiters=delimiters, issues=tuple(issues), settings=settings)


def extract_placeholders(state: Optional[LoadedState]) -> List[Placeholder]:
    state = _require(state)
    pkg = Package.from_bytes(state.package)
    return find_placeholders(document_text(pkg), state.settings.max_single_name)


def scan(state: Optional[LoadedState], search_text: str) -> List[Occurrence]:
    """Case-insensitive occurrences of ``search_text`` in the main text part."""
    state = _require(state)
    if not search_text:
        return []
    xml = Package.from_bytes(state.package).get_text(MAIN_PART)
    if xml is None:
        return []
    return scan_xml(xml, search_text, state.settings.context_window, state.settings.context_chars)


def replace_selected(state: Optional[LoadedState], search_text: str, placeholder_name: str,
                     selected_indices: Iterable[int]) -> bytes:
    """Turn the selected (case-sensitive) occurrences into ``{{placeholder_name}}``.

    Indices refer to document order as returned by ``scan`` on the same state.
    Raises TextNotFound when the text no longer occurs. The returned bytes should
    be passed through ``load`` again before further use.
    """
    state = _require(state)
    pkg = Package.from_bytes(state.package)
    xml = pkg.get_text(MAIN_PART)
    if xml is None or not search_text:
        raise TextNotFound(search_text)

    new_xml, count = replace_xml(xml, search_text, placeholder_markup(placeholder_name), selected_indices)
    if count == 0:
        raise TextNotFound(search_text)
    pkg.set_text(MAIN_PART, new_xml)
    return pkg.to_bytes()


def export_raw(state: Optional[LoadedState]) -> bytes:
    return _require(state).package


def append_pages(data: bytes, images: Sequence[bytes], settings: Optional[Settings] = None) -> bytes:
    return appender.append_pages(data, images, settings)


def generate(state: Optional[LoadedState], values: Mapping, markdown_values: Optional[Mapping[str, str]] = None,
             update_fields: bool = False) -> bytes:
    """Fill the template with ``values``; raises TemplateSyntaxErrors."""
    state = _require(state)
    return render_package(state.package, state.delimiters, values, markdown_values, update_fields)


class TemplateSession:
    """One document being edited; mirrors the operations above on held state."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.state: Optional[LoadedState] = None

    def load(self, data: bytes) -> LoadedState:
        self.state = None
        self.state = load(data, self.settings)
        return self.state

    @property
    def loaded(self) -> bool:
        return self.state is not None

    @property
    def delimiters(self) -> Delimiters:
        return _require(self.state).delimiters

    @property
    def issues(self) -> List[TemplateIssue]:
        return list(_require(self.state).issues)

    def tags(self) -> List[Placeholder]:
        return extract_placeholders(self.state)

    def scan(self, search_text: str) -> List[Occurrence]:
        return scan(self.state, search_text)

    def replace(self, search_text: str, placeholder_name: str, selected_indices: Iterable[int]) -> LoadedState:
        data = replace_selected(self.state, search_text, placeholder_name, selected_indices)
        return self.load(data)

    def export(self) -> bytes:
        return export_raw(self.state)

    def generate(self, values: Mapping, markdown_values: Optional[Mapping[str, str]] = None,
                 update_fields: bool = False) -> bytes:
        return generate(self.state, values, markdown_values, update_fields)

    def close(self) -> None:
        self.state = None
