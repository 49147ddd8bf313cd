"""EPUB decoding using ebooklib: walk the spine and split each document on its headings."""

import logging
import os
import tempfile
import zipfile
from posixpath import dirname as posix_dirname
from posixpath import join as posix_join
from posixpath import normpath as posix_normpath
from typing import Callable
from urllib.parse import unquote

from bs4 import BeautifulSoup
from ebooklib import epub
from lxml import etree

from manuscript_import.config import ImportSettings, get_settings
from manuscript_import.core.content_normalizer import ContentNormalizer
from manuscript_import.core.decoder_factory import ChapterDecoder
from manuscript_import.errors import CorruptArchive, DecodeCancelled, EmptyInput, MissingManifest
from manuscript_import.models.chapter import ChapterWarning, ParsedChapter, WarningKind
from manuscript_import.models.document import Block, Document, Heading, Image

logging.getLogger("bs4").setLevel(logging.ERROR)

log = logging.getLogger(__name__)

HTML_MEDIA_TYPES = {"application/xhtml+xml", "text/html"}
HTML_EXTENSIONS = (".xhtml", ".html", ".htm")

# EpubException codes for archives zipfile could not open
_ZIP_ERROR_CODES = (0, 1)


class ArchiveReader(epub.EpubReader):
    """ebooklib reader that also finds root-relative and differently cased member names."""

    def read_file(self, name):
        path = archive_path(name)
        try:
            return self.zf.read(path)
        except KeyError:
            lowered = {member.lower(): member for member in self.zf.namelist()}
            if path.lower() not in lowered:
                raise
            return self.zf.read(lowered[path.lower()])


class EpubDecoder(ChapterDecoder):
    """Decode EPUB bytes into chapters in reading order."""

    def __init__(
        self,
        normalizer: ContentNormalizer | None = None,
        settings: ImportSettings | None = None,
    ):
        self.settings = settings or get_settings()
        self.normalizer = normalizer or ContentNormalizer(
            max_heading_level=self.settings.max_heading_level
        )

    def decode(
        self,
        data: bytes,
        check_interrupt: Callable[[], bool] | None = None,
    ) -> list[ParsedChapter]:
        """Decode an EPUB container.

        Raises:
            CorruptArchive: If the bytes are not a readable zip archive
            MissingManifest: If no OPF package or spine can be found
            EmptyInput: If no spine document yields any chapter
            DecodeCancelled: If ``check_interrupt`` reports cancellation
        """
        book, opf_dir = read_book(data)
        if not book.spine:
            raise MissingManifest("Invalid EPUB: the spine lists no documents")
        log.debug("EPUB package: %d items, %d spine entries", len(book.items), len(book.spine))

        chapters: list[ParsedChapter] = []
        for idref, _linear in book.spine:
            if check_interrupt and check_interrupt():
                raise DecodeCancelled()
            item = book.get_item_with_id(idref)
            if item is None:
                log.debug("Spine idref %r has no manifest entry", idref)
                continue
            if isinstance(item, epub.EpubNav):
                log.debug("Skipping navigation document %s", item.get_name())
                continue
            if not is_html_item(item):
                log.debug("Skipping non-HTML spine item %s (%s)", item.get_name(), item.media_type)
                continue

            # Raw member bytes; EpubHtml.get_content() rebuilds the page without its <title>
            href = archive_path(posix_join(opf_dir, item.get_name()))
            chapters.extend(
                self.segment_document(item.content, href, next_number=len(chapters) + 1)
            )

        if not chapters:
            raise EmptyInput("No chapters found in EPUB file.")
        return chapters

    def segment_document(
        self,
        content: bytes | str,
        href: str,
        next_number: int = 1,
    ) -> list[ParsedChapter]:
        """Split one content document into chapters at level 1/2 headings."""
        soup = self.normalizer.parse(content)
        doc_title = _document_title(soup)
        tree = self.normalizer.normalize_soup(soup)
        if tree.is_empty:
            log.debug("Spine item %s has no content", href)
            return []

        _resolve_images(tree, posix_dirname(href))
        chapters: list[ParsedChapter] = []
        for title, blocks in split_on_headings(tree, self.settings.epub_split_levels):
            number = next_number + len(chapters)
            body = Document(content=blocks)
            warnings: list[ChapterWarning] = []
            images = sum(1 for node in body.walk() if isinstance(node, Image))
            if images:
                warnings.append(
                    ChapterWarning(
                        kind=WarningKind.UNSUPPORTED_PART,
                        message=f"{images} image(s) point into the EPUB and will not be uploaded.",
                    )
                )
            chapters.append(
                ParsedChapter(
                    title=title or doc_title or self.settings.fallback_title(number),
                    content=body,
                    warnings=warnings,
                    source=href,
                )
            )
        return chapters


def split_on_headings(
    tree: Document, levels: list[int] | tuple[int, ...]
) -> list[tuple[str | None, list[Block]]]:
    """Group top-level blocks into ``(heading title, body)`` sections.

    Content before the first qualifying heading forms a section with no
    title. The heading node itself is not part of its section's body.
    """
    sections: list[tuple[str | None, list[Block]]] = []
    title: str | None = None
    body: list[Block] = []
    for block in tree.content:
        if isinstance(block, Heading) and block.level in levels:
            if title is not None or body:
                sections.append((title, body))
            title, body = block.title, []
        else:
            body.append(block)
    if title is not None or body:
        sections.append((title, body))
    return sections


def read_book(data: bytes) -> tuple[epub.EpubBook, str]:
    """Load an EPUB with ebooklib.

    Returns the book and the OPF directory that manifest hrefs are relative to.
    """
    fd, path = tempfile.mkstemp(suffix=".epub")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        reader = ArchiveReader(path, {"ignore_ncx": True})
        book = reader.load()
        reader.process()
        return book, reader.opf_dir
    except epub.EpubException as exc:
        if exc.code in _ZIP_ERROR_CODES:
            raise CorruptArchive("The file could not be opened as an EPUB (zip) archive.") from exc
        raise MissingManifest(f"Invalid EPUB: {exc.msg}") from exc
    except zipfile.BadZipFile as exc:
        raise CorruptArchive(f"The EPUB archive is damaged: {exc}") from exc
    except KeyError as exc:
        raise MissingManifest(f"Invalid EPUB: {exc.args[0]} is missing from the archive") from exc
    except (etree.XMLSyntaxError, AttributeError, IndexError, TypeError) as exc:
        # ebooklib walks the OPF without checking that manifest, metadata or spine exist
        raise MissingManifest("Invalid EPUB: the package document is incomplete") from exc
    finally:
        os.unlink(path)


def is_html_item(item: epub.EpubItem) -> bool:
    if item.media_type:
        return item.media_type.lower() in HTML_MEDIA_TYPES
    return item.get_name().lower().endswith(HTML_EXTENSIONS)


def archive_path(name: str) -> str:
    """Normalize a joined member name to a path inside the archive."""
    path = posix_normpath((name or "").lstrip("/"))
    while path.startswith("../"):
        path = path[3:]
    return "" if path == "." else path


def resolve_href(base_dir: str, href: str) -> str:
    """Resolve an image or link href to a path inside the archive."""
    href = unquote((href or "").split("#", 1)[0].strip())
    if not href:
        return ""
    if href.startswith("/"):
        return archive_path(href)
    return archive_path(posix_join(base_dir, href))


def _document_title(soup: BeautifulSoup) -> str | None:
    tag = soup.find("title")
    if tag is None:
        return None
    title = " ".join(tag.get_text().split())
    return title or None


def _resolve_images(tree: Document, base_dir: str) -> None:
    """Rewrite relative image sources to archive paths."""
    for node in tree.walk():
        if not isinstance(node, Image):
            continue
        if "://" in node.src or node.src.startswith("data:"):
            continue
        node.src = resolve_href(base_dir, node.src) or node.src
