"""DOCX decoding using python-docx.

The body is walked in document order. A paragraph opens a new chapter when
its style is a level 1/2 heading or its text is the chapter marker. Runs are
converted straight into document nodes; there is no HTML step.
"""

import io
import logging
import re
import unicodedata
import zipfile
from typing import Callable

import docx
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn
from docx.table import Table as DocxTable
from docx.text.hyperlink import Hyperlink
from docx.text.paragraph import Paragraph as DocxParagraph
from docx.text.run import Run
from lxml import etree

from manuscript_import.config import ImportSettings, get_settings
from manuscript_import.core.content_normalizer import split_paragraphs
from manuscript_import.core.decoder_factory import ChapterDecoder
from manuscript_import.core.paste_segmenter import is_marker_line
from manuscript_import.errors import CorruptArchive, DecodeCancelled, EmptyInput, UnsupportedPart
from manuscript_import.models.chapter import ChapterWarning, ParsedChapter, WarningKind
from manuscript_import.models.document import (
    Block,
    Document,
    HardBreak,
    Image,
    Mark,
    Paragraph,
    Table,
    TableCell,
    TableRow,
    Text,
    canonical_marks,
)

# Suppress noisy logging from python-docx
logging.getLogger("docx").setLevel(logging.ERROR)

log = logging.getLogger(__name__)

DOCUMENT_PART = "word/document.xml"

# Lowercased, space-free style names and ids that denote chapter headings.
# Localized names fall back to the English built-ins at the end.
HEADING_STYLE_LEVELS = {
    "überschrift1": 1,
    "überschrift2": 2,
    "berschrift1": 1,  # German style ids drop the umlaut
    "berschrift2": 2,
    "titre1": 1,
    "titre2": 2,
    "título1": 1,
    "título2": 2,
    "titulo1": 1,
    "titulo2": 2,
    "titolo1": 1,
    "titolo2": 2,
    "kop1": 1,
    "kop2": 2,
    "заголовок1": 1,
    "заголовок2": 2,
    "标题1": 1,
    "标题2": 2,
    "heading1": 1,
    "heading2": 2,
}

_WHITESPACE_RE = re.compile(r"\s+")
_TABLE_PLACEHOLDER = "[table]"


def _style_key(name: str | None) -> str:
    return re.sub(r"[\s_\-]+", "", (name or "").lower())


def heading_level(paragraph: DocxParagraph) -> int | None:
    """Return 1 or 2 for chapter heading styles, following ``based_on`` links."""
    style = paragraph.style
    seen: set[str] = set()
    while style is not None:
        for key in (style.name, style.style_id):
            level = HEADING_STYLE_LEVELS.get(_style_key(key))
            if level is not None:
                return level
        if style.style_id in seen:
            break
        seen.add(style.style_id)
        style = style.base_style
    return None


class _ChapterAccumulator:
    """Collect blocks into chapters as boundaries are met."""

    def __init__(self, settings: ImportSettings):
        self.settings = settings
        self.chapters: list[ParsedChapter] = []
        self.title: str | None = None
        self.source: str | None = None
        self.blocks: list[Block] = []
        self.warnings: list[ChapterWarning] = []
        self.preamble = True  # no boundary seen yet
        self.awaiting_title = False  # opened by a marker, no heading yet

    def heading(self, title: str, source: str) -> None:
        if self.awaiting_title and not self.blocks:
            self.title = title
            self.awaiting_title = False
            return
        self._close()
        self.title = title
        self.source = source
        self.preamble = False
        self.awaiting_title = False

    def marker(self, source: str) -> None:
        self._close()
        self.title = None
        self.source = source
        self.preamble = False
        self.awaiting_title = True

    def add(self, blocks: list[Block], warnings: list[ChapterWarning]) -> None:
        self.blocks.extend(blocks)
        self.warnings.extend(warnings)

    def finish(self) -> list[ParsedChapter]:
        self._close()
        return self.chapters

    def _close(self) -> None:
        blocks, warnings = self.blocks, self.warnings
        self.blocks, self.warnings = [], []

        if self.preamble:
            # Content before the first boundary is kept only if there is any
            if not blocks:
                return
            title = self.settings.preamble_title
        elif self.title is None:
            if not blocks:
                return
            title = self.settings.fallback_title(len(self.chapters) + 1)
        else:
            title = self.title

        self.chapters.append(
            ParsedChapter(
                title=title,
                content=Document(content=blocks),
                warnings=warnings,
                source=self.source,
            )
        )


class DocxDecoder(ChapterDecoder):
    """Decode DOCX bytes into chapters."""

    def __init__(self, settings: ImportSettings | None = None):
        self.settings = settings or get_settings()

    def decode(
        self,
        data: bytes,
        check_interrupt: Callable[[], bool] | None = None,
    ) -> list[ParsedChapter]:
        """Decode a Word document.

        Raises:
            CorruptArchive: If the bytes are not a readable Word package
            EmptyInput: If the document has no content at all
            DecodeCancelled: If ``check_interrupt`` reports cancellation
        """
        document = open_document(data)
        chapters = _ChapterAccumulator(self.settings)

        for index, block in enumerate(document.iter_inner_content()):
            if check_interrupt and check_interrupt():
                raise DecodeCancelled()
            source = f"docx:block-{index}"

            if isinstance(block, DocxTable):
                chapters.add(*self._table_blocks(block))
                continue

            if is_marker_line(block.text):
                chapters.marker(source)
                continue

            if heading_level(block) is not None:
                title = " ".join(block.text.split())
                if title:
                    chapters.heading(title, source)
                else:
                    log.debug("Ignoring empty heading paragraph at %s", source)
                continue

            chapters.add(*self._paragraph_blocks(block))

        result = chapters.finish()
        if not result:
            raise EmptyInput("The Word document contains no text.")
        return result

    # ------------------------------------------------------------------
    # Paragraphs and runs
    # ------------------------------------------------------------------

    def _paragraph_blocks(
        self, paragraph: DocxParagraph
    ) -> tuple[list[Block], list[ChapterWarning]]:
        pending: list = []
        for item in paragraph.iter_inner_content():
            if isinstance(item, Hyperlink):
                link = Mark(type="link", href=item.address) if item.address else None
                for run in item.runs:
                    pending.extend(self._run_nodes(run, link))
            else:
                pending.extend(self._run_nodes(item, None))

        images = sum(1 for item in pending if isinstance(item, Image))
        return split_paragraphs(pending), _image_warnings(images)

    def _run_nodes(self, run: Run, link: Mark | None) -> list:
        marks: list[Mark] = []
        if run.bold:
            marks.append(Mark(type="bold"))
        if run.italic:
            marks.append(Mark(type="italic"))
        if run.underline:
            marks.append(Mark(type="underline"))
        if run.font.strike:
            marks.append(Mark(type="strike"))
        if link is not None:
            marks.append(link)
        marks = canonical_marks(marks)

        nodes: list = []
        for i, line in enumerate(run.text.split("\n")):
            if i:
                nodes.append(HardBreak())
            text = _WHITESPACE_RE.sub(" ", unicodedata.normalize("NFC", line))
            if text:
                nodes.append(Text(text=text, marks=marks))
        nodes.extend(_run_images(run))
        return nodes

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def _table_blocks(self, table: DocxTable) -> tuple[list[Block], list[ChapterWarning]]:
        try:
            converted = self._table(table)
        except (UnsupportedPart, ValueError, IndexError, KeyError) as exc:
            log.warning("Could not convert a table, keeping a placeholder: %s", exc)
            placeholder = Paragraph(content=[Text(text=_TABLE_PLACEHOLDER)])
            warning = ChapterWarning(
                kind=WarningKind.UNSUPPORTED_PART,
                message=f"A table could not be imported: {exc}",
            )
            return [placeholder], [warning]

        # Images inside cells are only counted here
        images = sum(1 for node in converted.walk() if isinstance(node, Image))
        return [converted], _image_warnings(images)

    def _table(self, table: DocxTable) -> Table:
        rows: list[TableRow] = []
        for row in table.rows:
            cells: list[TableCell] = []
            seen: list = []
            for cell in row.cells:
                # Merged cells are reported once per grid column
                if any(tc is cell._tc for tc in seen):
                    continue
                seen.append(cell._tc)
                cells.append(TableCell(content=self._cell_blocks(cell) or [Paragraph()]))
            if cells:
                rows.append(TableRow(content=cells))
        if not rows:
            raise UnsupportedPart("the table has no rows")
        return Table(content=rows)

    def _cell_blocks(self, cell) -> list[Block]:
        blocks: list[Block] = []
        for item in cell.iter_inner_content():
            if isinstance(item, DocxTable):
                blocks.append(self._table(item))
            else:
                blocks.extend(self._paragraph_blocks(item)[0])
        return blocks


def _image_warnings(count: int) -> list[ChapterWarning]:
    if not count:
        return []
    return [
        ChapterWarning(
            kind=WarningKind.UNSUPPORTED_PART,
            message=f"{count} embedded image(s) are kept as references only.",
        )
    ]


def _run_images(run: Run) -> list[Image]:
    images: list[Image] = []
    for blip in run._element.xpath(".//a:blip"):
        rel_id = blip.get(qn("r:embed"))
        if not rel_id:
            continue
        part = run.part.related_parts.get(rel_id)
        src = str(part.partname).lstrip("/") if part is not None else f"docx:{rel_id}"
        alt = ""
        for prop in run._element.xpath(".//wp:docPr"):
            alt = prop.get("descr") or prop.get("title") or ""
            break
        images.append(Image(src=src, alt=alt))
    return images


def open_document(data: bytes):
    """Open DOCX bytes with python-docx, mapping failures to ``CorruptArchive``."""
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = set(archive.namelist())
    except (zipfile.BadZipFile, OSError) as exc:
        raise CorruptArchive("The file could not be opened as a DOCX (zip) archive.") from exc

    if DOCUMENT_PART not in names:
        raise CorruptArchive(f"Not a Word document: {DOCUMENT_PART} is missing.")

    try:
        return docx.Document(io.BytesIO(data))
    except (PackageNotFoundError, KeyError, ValueError, etree.XMLSyntaxError) as exc:
        raise CorruptArchive(f"The Word document could not be read: {exc}") from exc
