import logging
import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning("ignoring %s=%r: not an integer", name, raw)
        return default


@dataclass(frozen=True)
class Settings:
    # raw characters taken each side of a match before stripping markup
    context_window: int = 200
    # visible characters shown each side of the search text
    context_chars: int = 30
    max_single_name: int = 50
    # full A4-ish page in EMU
    page_cx: int = 5953500
    page_cy: int = 8419500
    media_prefix: str = "appendix_img"
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            context_window=_env_int("TAGFORGE_CONTEXT_WINDOW", cls.context_window),
            context_chars=_env_int("TAGFORGE_CONTEXT_CHARS", cls.context_chars),
            max_single_name=_env_int("TAGFORGE_MAX_SINGLE_NAME", cls.max_single_name),
            page_cx=_env_int("TAGFORGE_PAGE_CX", cls.page_cx),
            page_cy=_env_int("TAGFORGE_PAGE_CY", cls.page_cy),
            media_prefix=os.getenv("TAGFORGE_MEDIA_PREFIX") or cls.media_prefix,
            log_level=(os.getenv("TAGFORGE_LOG_LEVEL") or cls.log_level).upper(),
        )

    def configure_logging(self) -> None:
        logging.basicConfig(level=self.log_level, format="%(levelname)s %(name)s: %(message)s")


def get_settings() -> Settings:
    return Settings.from_env()
