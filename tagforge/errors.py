from typing import List, Optional, Sequence


class TagforgeError(Exception):
    """Base error. ``title`` is a short heading, ``message`` the full text for display."""

    title = "Error"

    def __init__(self, message: str, title: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if title is not None:
            self.title = title


class HealFailure(TagforgeError):
    title = "Load failed"


class ArchiveCorrupt(HealFailure):
    title = "Unreadable file"

    def __init__(self, message: str = "Failed to read file. It may not be a valid DOCX/Zip file.") -> None:
        super().__init__(message)


class PartMissing(TagforgeError):
    title = "Missing document part"

    def __init__(self, part: str) -> None:
        super().__init__(f"Part {part!r} not found in the package.")
        self.part = part


class TextNotFound(TagforgeError):
    title = "Text not found"

    def __init__(self, search_text: str) -> None:
        super().__init__(
            f'Text "{search_text}" not found in the document structure. '
            "The document may have changed since it was scanned."
        )
        self.search_text = search_text


class NoDocumentLoaded(TagforgeError):
    title = "No document"

    def __init__(self) -> None:
        super().__init__("No document loaded")


class TemplateIssue:
    def __init__(self, explanation: str, context: Optional[str] = None, part: Optional[str] = None,
                 kind: str = "SYNTAX") -> None:
        self.explanation = explanation
        self.context = context
        self.part = part
        self.kind = kind

    def describe(self) -> str:
        ctx = f" (Context: {self.context})" if self.context else ""
        return f"{self.explanation}{ctx}"

    def __repr__(self) -> str:
        return f"TemplateIssue({self.kind}, {self.describe()!r}, part={self.part!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, TemplateIssue):
            return NotImplemented
        return (self.kind, self.explanation, self.context, self.part) == (
            other.kind, other.explanation, other.context, other.part)


class TemplateSyntaxErrors(TagforgeError):
    title = "Template Syntax Errors"

    def __init__(self, issues: Sequence[TemplateIssue]) -> None:
        self.issues: List[TemplateIssue] = list(issues)
        lines = "\n".join(f"{i}. {issue.describe()}" for i, issue in enumerate(self.issues, start=1))
        super().__init__(f"Template Syntax Errors:\n{lines}")
