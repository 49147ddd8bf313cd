"""Data models for parsed chapters."""

from enum import Enum

from pydantic import BaseModel, Field

from manuscript_import.models.document import Document, count_words


class WarningKind(str, Enum):
    """Non-fatal anomalies attached to a single chapter."""

    UNSUPPORTED_PART = "unsupported_part"
    LOW_WORD_COUNT = "low_word_count"


class ChapterWarning(BaseModel):
    """Warning shown next to a chapter in the preview."""

    kind: WarningKind
    message: str


class ParsedChapter(BaseModel):
    """A chapter produced by a decoder, ready for preview and commit."""

    title: str
    content: Document = Field(default_factory=Document)
    warnings: list[ChapterWarning] = Field(default_factory=list)
    source: str | None = None  # spine href, paste block or docx block

    @property
    def word_count(self) -> int:
        """Computed on demand; never stored on the chapter."""
        return count_words(self.content)
