import logging
from dataclasses import dataclass

from .package import read_main_part

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Delimiters:
    start: str
    end: str

    @property
    def is_double(self) -> bool:
        return len(self.start) == 2

    def token(self, name: str) -> str:
        return f"{self.start}{name}{self.end}"


DOUBLE = Delimiters("{{", "}}")
SINGLE = Delimiters("{", "}")


def detect_delimiters(data: bytes) -> Delimiters:
    """Pick the placeholder convention from marker density in the main text part.

    Falls back to DOUBLE whenever the package or its main part cannot be read.
    """
    xml = read_main_part(data)
    if xml is None:
        log.debug("main part unavailable, assuming double delimiters")
        return DOUBLE
    double_open = xml.count("{{")
    single_open = xml.count("{")
    if double_open == 0 and single_open > 0:
        return SINGLE
    return DOUBLE
