"""Placeholder healing, text-to-placeholder conversion and page appending for .docx templates."""
from .config import Settings
from .delimiters import DOUBLE, SINGLE, Delimiters, detect_delimiters
from .engine import (
    LoadedState,
    TemplateSession,
    append_pages,
    export_raw,
    extract_placeholders,
    generate,
    load,
    replace_selected,
    scan,
)
from .errors import (
    ArchiveCorrupt,
    HealFailure,
    NoDocumentLoaded,
    PartMissing,
    TagforgeError,
    TemplateIssue,
    TemplateSyntaxErrors,
    TextNotFound,
)
from .locator import Occurrence
from .placeholders import Placeholder

__version__ = "0.1.0"

__all__ = [
    "ArchiveCorrupt",
    "DOUBLE",
    "Delimiters",
    "HealFailure",
    "LoadedState",
    "NoDocumentLoaded",
    "Occurrence",
    "PartMissing",
    "Placeholder",
    "SINGLE",
    "Settings",
    "TagforgeError",
    "TemplateIssue",
    "TemplateSession",
    "TemplateSyntaxErrors",
    "TextNotFound",
    "append_pages",
    "detect_delimiters",
    "export_raw",
    "extract_placeholders",
    "generate",
    "load",
    "replace_selected",
    "scan",
]
