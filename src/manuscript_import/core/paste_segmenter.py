"""Split pasted text into chapters on explicit marker lines."""

import logging
import re
import unicodedata
from typing import Callable

from manuscript_import.config import ImportSettings, get_settings
from manuscript_import.core.decoder_factory import ChapterDecoder
from manuscript_import.errors import DecodeCancelled, EmptyInput
from manuscript_import.models.chapter import ParsedChapter
from manuscript_import.models.document import Document, HardBreak, Paragraph, Text

log = logging.getLogger(__name__)

# Shown to authors as the chapter separator for pasted text and DOCX files.
CHAPTER_MARKER = "---CHAPTER---"

MARKER_LINE_RE = re.compile(
    r"^[ \t]*" + re.escape(CHAPTER_MARKER) + r"[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_CHAPTER_LINE_RE = re.compile(r"^[ \t]*chapter[ \t]+\d+.*$", re.IGNORECASE | re.MULTILINE)
_BLANK_LINE_RE = re.compile(r"\n[ \t]*\n")
_SPACES_RE = re.compile(r"\s+")


def is_marker_line(text: str) -> bool:
    """True when ``text`` is the chapter marker, ignoring surrounding whitespace."""
    return text.strip().upper() == CHAPTER_MARKER


class PasteSegmenter(ChapterDecoder):
    """Turn raw pasted text into titled chapters.

    The first non-blank line of every block is its title. Remaining lines are
    grouped into paragraphs at blank lines; single newlines inside a paragraph
    become hard breaks.
    """

    def __init__(self, settings: ImportSettings | None = None):
        self.settings = settings or get_settings()

    def decode(
        self,
        data: bytes | str,
        check_interrupt: Callable[[], bool] | None = None,
    ) -> list[ParsedChapter]:
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        return self.segment(data, check_interrupt=check_interrupt)

    def segment(
        self,
        raw_text: str,
        check_interrupt: Callable[[], bool] | None = None,
    ) -> list[ParsedChapter]:
        """Split ``raw_text`` into chapters.

        Raises:
            EmptyInput: If the text is blank or no block has any content
        """
        if not raw_text or not raw_text.strip():
            raise EmptyInput("Please paste some text first.")

        text = raw_text.replace("\r\n", "\n").replace("\r", "\n").lstrip("\ufeff")
        blocks = self._split(text)

        chapters: list[ParsedChapter] = []
        for index, block in enumerate(blocks, start=1):
            if check_interrupt and check_interrupt():
                raise DecodeCancelled()
            chapter = self._block_to_chapter(block, source=f"paste:block-{index}")
            if chapter is None:
                log.debug("Dropping blank paste block %d", index)
                continue
            chapters.append(chapter)

        if not chapters:
            raise EmptyInput("The pasted text contains only chapter markers.")
        return chapters

    def _split(self, text: str) -> list[str]:
        if MARKER_LINE_RE.search(text):
            return MARKER_LINE_RE.split(text)

        if self.settings.detect_chapter_headings:
            starts = [m.start() for m in _CHAPTER_LINE_RE.finditer(text)]
            if len(starts) >= 2:
                log.debug("Splitting paste on %d 'Chapter N' lines", len(starts))
                # Text before the first match is kept as its own block
                bounds = [0, *starts] if starts[0] > 0 else starts
                return [
                    text[start:end]
                    for start, end in zip(bounds, [*bounds[1:], len(text)])
                ]

        return [text]

    def _block_to_chapter(self, block: str, source: str) -> ParsedChapter | None:
        lines = block.split("\n")
        title_index = next((i for i, line in enumerate(lines) if line.strip()), None)
        if title_index is None:
            return None

        title = _clean(lines[title_index])
        body = "\n".join(lines[title_index + 1 :])
        paragraphs = []
        for chunk in _BLANK_LINE_RE.split(body):
            paragraph = _paragraph(chunk)
            if paragraph is not None:
                paragraphs.append(paragraph)
        return ParsedChapter(
            title=title,
            content=Document(content=paragraphs),
            source=source,
        )


def _clean(line: str) -> str:
    return _SPACES_RE.sub(" ", unicodedata.normalize("NFC", line)).strip()


def _paragraph(chunk: str) -> Paragraph | None:
    content: list = []
    for line in chunk.split("\n"):
        text = _clean(line)
        if not text:
            continue
        if content:
            content.append(HardBreak())
        content.append(Text(text=text))
    if not content:
        return None
    return Paragraph(content=content)
