"""In-memory view of an OOXML package (a ZIP of named parts)."""
import io
import zipfile
from typing import Dict, Iterator, List, Optional

from .errors import ArchiveCorrupt

MAIN_PART = "word/document.xml"
RELS_PART = "word/_rels/document.xml.rels"
CONTENT_TYPES_PART = "[Content_Types].xml"


class Package:
    """Ordered map of part name -> bytes.

    Entry metadata (timestamp, compression, attributes) is kept per part so that
    writing an unchanged part map twice gives identical archives.
    """

    def __init__(self) -> None:
        self._parts: Dict[str, bytes] = {}
        self._infos: Dict[str, zipfile.ZipInfo] = {}

    @classmethod
    def from_bytes(cls, data: bytes) -> "Package":
        pkg = cls()
        try:
            with zipfile.ZipFile(io.BytesIO(data), "r") as zin:
                for info in zin.infolist():
                    if info.is_dir():
                        continue
                    pkg._parts[info.filename] = zin.read(info)
                    pkg._infos[info.filename] = info
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, EOFError, KeyError,
                RuntimeError, NotImplementedError) as exc:
            raise ArchiveCorrupt() from exc
        return pkg

    def names(self) -> List[str]:
        return list(self._parts)

    def __contains__(self, name: str) -> bool:
        return name in self._parts

    def get(self, name: str) -> Optional[bytes]:
        return self._parts.get(name)

    def get_text(self, name: str) -> Optional[str]:
        data = self._parts.get(name)
        if data is None:
            return None
        return data.decode("utf-8")

    def set(self, name: str, data: bytes) -> None:
        self._parts[name] = data

    def set_text(self, name: str, text: str) -> None:
        self._parts[name] = text.encode("utf-8")

    def header_footer_parts(self) -> List[str]:
        return sorted(
            n for n in self._parts
            if n.startswith(("word/header", "word/footer")) and n.endswith(".xml")
        )

    def xml_parts(self) -> Iterator[str]:
        for name in self._parts:
            if name.startswith("word/") and name.endswith(".xml"):
                yield name

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zout:
            for name, data in self._parts.items():
                zout.writestr(self._entry_info(name), data)
        return buf.getvalue()

    def _entry_info(self, name: str) -> zipfile.ZipInfo:
        src = self._infos.get(name)
        if src is None:
            info = zipfile.ZipInfo(name, date_time=(1980, 1, 1, 0, 0, 0))
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o600 << 16
            return info
        info = zipfile.ZipInfo(name, date_time=src.date_time)
        info.compress_type = src.compress_type
        info.external_attr = src.external_attr
        info.create_system = src.create_system
        return info


def read_main_part(data: bytes) -> Optional[str]:
    """Main text part of ``data`` or None when the archive or the part is unusable."""
    try:
        pkg = Package.from_bytes(data)
    except ArchiveCorrupt:
        return None
    try:
        return pkg.get_text(MAIN_PART)
    except UnicodeDecodeError:
        return None
