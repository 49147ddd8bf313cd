"""Canonical rich-text document tree shared by every decoder.

The node shapes follow the JSON layout used by the chapter editor: each node
has a ``type`` tag and block nodes keep their children under ``content``.
"""

from __future__ import annotations

from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

MarkType = Literal["bold", "italic", "underline", "strike", "link"]

# Canonical order used when a text run carries several marks
MARK_ORDER: tuple[str, ...] = ("bold", "italic", "underline", "strike", "link")


class Mark(BaseModel):
    """Inline formatting applied to a text run."""

    model_config = ConfigDict(frozen=True)

    type: MarkType
    href: str | None = None


def canonical_marks(marks: list[Mark] | tuple[Mark, ...]) -> list[Mark]:
    """De-duplicate marks and sort them into canonical order."""
    unique: dict[tuple[str, str | None], Mark] = {}
    for mark in marks:
        if mark.type == "link":
            # A run carries at most one link; the innermost wins
            unique = {k: v for k, v in unique.items() if k[0] != "link"}
        unique[(mark.type, mark.href)] = mark
    return sorted(unique.values(), key=lambda m: MARK_ORDER.index(m.type))


class Node(BaseModel):
    """Base for all document nodes."""

    def children(self) -> list["Node"]:
        return list(getattr(self, "content", None) or [])

    def walk(self) -> Iterator["Node"]:
        """Yield this node and all descendants in document order."""
        yield self
        for child in self.children():
            yield from child.walk()

    def text_nodes(self) -> Iterator["Text"]:
        for node in self.walk():
            if isinstance(node, Text):
                yield node

    @property
    def plain_text(self) -> str:
        parts: list[str] = []
        for node in self.walk():
            if isinstance(node, Text):
                parts.append(node.text)
            elif isinstance(node, HardBreak):
                parts.append("\n")
        return "".join(parts)


class Text(Node):
    type: Literal["text"] = "text"
    text: str
    marks: list[Mark] = Field(default_factory=list)

    def has_mark(self, mark_type: str) -> bool:
        return any(m.type == mark_type for m in self.marks)


class HardBreak(Node):
    type: Literal["hardBreak"] = "hardBreak"


Inline = Annotated[Union[Text, HardBreak], Field(discriminator="type")]


class Paragraph(Node):
    type: Literal["paragraph"] = "paragraph"
    content: list[Inline] = Field(default_factory=list)


class Heading(Node):
    type: Literal["heading"] = "heading"
    level: int = Field(default=1, ge=1, le=3)
    content: list[Inline] = Field(default_factory=list)

    @property
    def title(self) -> str:
        return " ".join(self.plain_text.split())


class Image(Node):
    type: Literal["image"] = "image"
    src: str
    alt: str = ""


class HorizontalRule(Node):
    type: Literal["horizontalRule"] = "horizontalRule"


class ListItem(Node):
    type: Literal["listItem"] = "listItem"
    content: list["Block"] = Field(default_factory=list)


class BulletList(Node):
    type: Literal["bulletList"] = "bulletList"
    content: list[ListItem] = Field(default_factory=list)


class OrderedList(Node):
    type: Literal["orderedList"] = "orderedList"
    start: int = 1
    content: list[ListItem] = Field(default_factory=list)


class Blockquote(Node):
    type: Literal["blockquote"] = "blockquote"
    content: list["Block"] = Field(default_factory=list)


class TableCell(Node):
    type: Literal["tableCell", "tableHeader"] = "tableCell"
    content: list["Block"] = Field(default_factory=list)

    @property
    def is_header(self) -> bool:
        return self.type == "tableHeader"


class TableRow(Node):
    type: Literal["tableRow"] = "tableRow"
    content: list[TableCell] = Field(default_factory=list)


class Table(Node):
    type: Literal["table"] = "table"
    content: list[TableRow] = Field(default_factory=list)


Block = Annotated[
    Union[
        Paragraph,
        Heading,
        BulletList,
        OrderedList,
        Blockquote,
        Table,
        HorizontalRule,
        Image,
    ],
    Field(discriminator="type"),
]


class Document(Node):
    """Root node; its children are always block-level."""

    type: Literal["doc"] = "doc"
    content: list[Block] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.content


for _model in (ListItem, Blockquote, TableCell, TableRow, Table, Document):
    _model.model_rebuild()


def count_words(node: Node) -> int:
    """Count whitespace-separated tokens in each paragraph and heading.

    Inline text is joined before splitting, so a word with formatting in
    the middle counts once.

    This is the only word counter in the package. Decoders, the preview
    session and the stores all call it so displayed and stored counts agree.
    """
    if isinstance(node, (Paragraph, Heading)):
        return len(node.plain_text.split())
    if isinstance(node, Text):
        return len(node.text.split())
    return sum(count_words(child) for child in node.children())
