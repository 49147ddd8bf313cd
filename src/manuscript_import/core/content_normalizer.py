"""Normalize HTML fragments into the canonical document tree."""

import re
import unicodedata
import warnings

from bs4 import BeautifulSoup, NavigableString, Tag, XMLParsedAsHTMLWarning
from bs4.element import CData, Comment, Declaration, Doctype, ProcessingInstruction

from manuscript_import.models.document import (
    Block,
    Blockquote,
    BulletList,
    Document,
    HardBreak,
    Heading,
    HorizontalRule,
    Image,
    ListItem,
    Mark,
    OrderedList,
    Paragraph,
    Table,
    TableCell,
    TableRow,
    Text,
    canonical_marks,
)

# EPUB content documents are XHTML; the HTML parser handles them fine
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

_WHITESPACE_RE = re.compile(r"\s+")

DROP_TAGS = {
    "script",
    "style",
    "head",
    "title",
    "noscript",
    "template",
    "meta",
    "link",
}

MARK_TAGS = {
    "b": "bold",
    "strong": "bold",
    "i": "italic",
    "em": "italic",
    "u": "underline",
    "ins": "underline",
    "s": "strike",
    "strike": "strike",
    "del": "strike",
}

HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
IMAGE_TAGS = {"img", "image"}

# Elements whose children are laid out as blocks. Unknown elements holding
# block content are treated the same way, so their content is unwrapped.
CONTAINER_TAGS = {
    "html",
    "body",
    "p",
    "div",
    "section",
    "article",
    "main",
    "header",
    "footer",
    "aside",
    "nav",
    "figure",
    "figcaption",
    "center",
    "address",
    "details",
    "summary",
    "dl",
    "dt",
    "dd",
    "pre",
    "fieldset",
    "form",
    "hgroup",
    "li",
    "thead",
    "tbody",
    "tfoot",
    "tr",
    "td",
    "th",
    "caption",
}

BLOCK_TAGS = CONTAINER_TAGS | HEADING_TAGS | {"ul", "ol", "blockquote", "table", "hr"}

_SKIPPED_STRINGS = (Comment, CData, Declaration, Doctype, ProcessingInstruction)


class ContentNormalizer:
    """Convert rich HTML fragments into ``Document`` trees."""

    def __init__(self, max_heading_level: int = 3):
        self.max_heading_level = max_heading_level

    def parse(self, html: bytes | str) -> BeautifulSoup:
        """Parse with lxml's error-recovering HTML tree builder."""
        return BeautifulSoup(html, "lxml")

    def normalize(self, html: bytes | str) -> Document:
        """Convert an HTML fragment to a document tree."""
        return self.normalize_soup(self.parse(html))

    def normalize_soup(self, soup: BeautifulSoup) -> Document:
        for tag in soup(list(DROP_TAGS)):
            tag.decompose()
        root = soup.body or soup
        return Document(content=self._blocks(root.children, ()))

    # ------------------------------------------------------------------
    # Block context
    # ------------------------------------------------------------------

    def _blocks(self, nodes, marks: tuple[Mark, ...]) -> list[Block]:
        blocks: list[Block] = []
        pending: list = []

        for node in list(nodes):
            if isinstance(node, NavigableString):
                if isinstance(node, _SKIPPED_STRINGS):
                    continue
                pending.extend(self._text(str(node), marks))
                continue
            if not isinstance(node, Tag):
                continue

            name = (node.name or "").lower()
            if name in DROP_TAGS:
                continue
            if name not in BLOCK_TAGS and not self._contains_block(node):
                pending.extend(self._inlines(node, marks))
                continue

            blocks.extend(split_paragraphs(pending))
            pending = []
            blocks.extend(self._block(node, name, self._marks_for(node, marks)))

        blocks.extend(split_paragraphs(pending))
        return blocks

    def _block(self, node: Tag, name: str, marks: tuple[Mark, ...]) -> list[Block]:
        if name in HEADING_TAGS:
            return self._heading(node, name, marks)
        if name in ("ul", "ol"):
            return self._list(node, name, marks)
        if name == "blockquote":
            inner = self._blocks(node.children, marks)
            return [Blockquote(content=inner)] if inner else []
        if name == "table":
            return self._table(node, marks)
        if name == "hr":
            return [HorizontalRule()]
        # Containers and unknown elements with block content are unwrapped
        return self._blocks(node.children, marks)

    def _heading(self, node: Tag, name: str, marks: tuple[Mark, ...]) -> list[Block]:
        level = min(int(name[1]), self.max_heading_level)
        inline: list = []
        images: list[Image] = []
        for item in self._inlines(node, marks):
            if isinstance(item, Image):
                images.append(item)
            else:
                inline.append(item)

        blocks: list[Block] = []
        content = clean_inlines(inline)
        if any(isinstance(item, Text) for item in content):
            blocks.append(Heading(level=level, content=content))
        blocks.extend(images)
        return blocks

    def _list(self, node: Tag, name: str, marks: tuple[Mark, ...]) -> list[Block]:
        items: list[ListItem] = []
        for child in node.children:
            if isinstance(child, Tag) and (child.name or "").lower() == "li":
                inner = self._blocks(child.children, marks)
            else:
                inner = self._blocks([child], marks)
            if inner:
                items.append(ListItem(content=inner))
        if not items:
            return []
        if name == "ol":
            try:
                start = int(node.get("start", 1))
            except (TypeError, ValueError):
                start = 1
            return [OrderedList(start=start, content=items)]
        return [BulletList(content=items)]

    def _table(self, node: Tag, marks: tuple[Mark, ...]) -> list[Block]:
        blocks: list[Block] = []
        rows: list[TableRow] = []
        for child in node.children:
            if not isinstance(child, Tag):
                continue
            name = (child.name or "").lower()
            if name == "caption":
                blocks.extend(self._blocks(child.children, marks))
            elif name == "tr":
                self._append_row(rows, child, marks)
            elif name in ("thead", "tbody", "tfoot"):
                for row in child.find_all("tr", recursive=False):
                    self._append_row(rows, row, marks)
        if rows:
            blocks.append(Table(content=rows))
        return blocks

    def _append_row(self, rows: list[TableRow], tr: Tag, marks: tuple[Mark, ...]) -> None:
        cells: list[TableCell] = []
        for cell in tr.find_all(["td", "th"], recursive=False):
            inner = self._blocks(cell.children, marks) or [Paragraph()]
            cell_type = "tableHeader" if cell.name == "th" else "tableCell"
            cells.append(TableCell(type=cell_type, content=inner))
        if cells:
            rows.append(TableRow(content=cells))

    # ------------------------------------------------------------------
    # Inline context
    # ------------------------------------------------------------------

    def _inlines(self, tag: Tag, marks: tuple[Mark, ...]) -> list:
        name = (tag.name or "").lower()
        if name == "br":
            return [HardBreak()]
        if name in IMAGE_TAGS:
            image = self._image(tag)
            return [image] if image else []

        marks = self._marks_for(tag, marks)
        out: list = []
        for child in tag.children:
            if isinstance(child, NavigableString):
                if not isinstance(child, _SKIPPED_STRINGS):
                    out.extend(self._text(str(child), marks))
            elif isinstance(child, Tag) and (child.name or "").lower() not in DROP_TAGS:
                out.extend(self._inlines(child, marks))
        return out

    def _text(self, raw: str, marks: tuple[Mark, ...]) -> list[Text]:
        text = _WHITESPACE_RE.sub(" ", unicodedata.normalize("NFC", raw))
        if not text:
            return []
        return [Text(text=text, marks=canonical_marks(marks))]

    def _image(self, tag: Tag) -> Image | None:
        src = tag.get("src") or tag.get("xlink:href") or tag.get("href") or ""
        if not src:
            return None
        return Image(src=str(src), alt=str(tag.get("alt") or ""))

    def _marks_for(self, tag: Tag, marks: tuple[Mark, ...]) -> tuple[Mark, ...]:
        name = (tag.name or "").lower()
        if name in MARK_TAGS:
            return marks + (Mark(type=MARK_TAGS[name]),)
        if name == "a" and tag.get("href"):
            return marks + (Mark(type="link", href=str(tag["href"])),)
        return marks

    def _contains_block(self, tag: Tag) -> bool:
        return any((d.name or "").lower() in BLOCK_TAGS for d in tag.find_all(True))


def split_paragraphs(pending: list) -> list[Block]:
    """Turn loose inline content into paragraphs, splitting at images."""
    blocks: list[Block] = []
    run: list = []
    for item in pending:
        if isinstance(item, Image):
            blocks.extend(_paragraph(run))
            run = []
            blocks.append(item)
        else:
            run.append(item)
    blocks.extend(_paragraph(run))
    return blocks


def _paragraph(inlines: list) -> list[Block]:
    content = clean_inlines(inlines)
    if not any(isinstance(item, Text) for item in content):
        return []
    return [Paragraph(content=content)]


def clean_inlines(items: list) -> list:
    """Trim block edges, drop empty runs and merge neighbours with equal marks.

    Whitespace inside a run is assumed to be collapsed already.
    """
    result: list = []
    for item in items:
        if isinstance(item, HardBreak):
            _rstrip_last(result)
            if result:
                result.append(item)
            continue

        text = item.text
        prev = result[-1] if result else None
        if prev is None or isinstance(prev, HardBreak) or prev.text.endswith(" "):
            text = text.lstrip()
        if not text:
            continue
        if isinstance(prev, Text) and prev.marks == item.marks:
            result[-1] = Text(text=prev.text + text, marks=prev.marks)
        else:
            result.append(Text(text=text, marks=item.marks))

    _rstrip_last(result)
    return result


def _rstrip_last(result: list) -> None:
    while result:
        last = result[-1]
        if isinstance(last, HardBreak):
            result.pop()
            continue
        stripped = last.text.rstrip()
        if stripped:
            result[-1] = Text(text=stripped, marks=last.marks)
            return
        result.pop()


def normalize_html(html: bytes | str) -> Document:
    """Normalize with default settings."""
    return ContentNormalizer().normalize(html)
