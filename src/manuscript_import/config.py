"""Import pipeline settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ImportSettings(BaseSettings):
    """Settings loaded from ``MANUSCRIPT_IMPORT_*`` environment variables."""

    # Preview
    low_word_threshold: int = 50  # chapters below this are flagged, never removed

    # Titles
    untitled_title: str = "Untitled Chapter"  # blank titles at commit time
    preamble_title: str = "Untitled"  # DOCX content before the first boundary
    fallback_title_pattern: str = "Chapter {n}"

    # Structure
    epub_split_levels: list[int] = [1, 2]
    max_heading_level: int = 3

    # Paste: opt-in "Chapter N" line detection when no marker is present
    detect_chapter_headings: bool = False

    # Commit
    conflict_retries: int = 1

    # Developer CLI
    store_dir: Path = Path(".manuscript_import")
    log_level: str = "WARNING"

    model_config = SettingsConfigDict(
        env_prefix="MANUSCRIPT_IMPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def fallback_title(self, n: int) -> str:
        return self.fallback_title_pattern.format(n=n)


@lru_cache(maxsize=1)
def get_settings() -> ImportSettings:
    return ImportSettings()
