"""Data models."""

from manuscript_import.models.chapter import (
    ChapterWarning,
    ParsedChapter,
    WarningKind,
)
from manuscript_import.models.commit import (
    ChapterRecord,
    CommitPlan,
    CommitResult,
    PlannedChapter,
    StoryAggregate,
)
from manuscript_import.models.document import (
    Block,
    Blockquote,
    BulletList,
    Document,
    HardBreak,
    Heading,
    HorizontalRule,
    Image,
    Inline,
    ListItem,
    Mark,
    OrderedList,
    Paragraph,
    Table,
    TableCell,
    TableRow,
    Text,
    count_words,
)

__all__ = [
    # Document tree
    "Block",
    "Blockquote",
    "BulletList",
    "Document",
    "HardBreak",
    "Heading",
    "HorizontalRule",
    "Image",
    "Inline",
    "ListItem",
    "Mark",
    "OrderedList",
    "Paragraph",
    "Table",
    "TableCell",
    "TableRow",
    "Text",
    "count_words",
    # Chapter models
    "ChapterWarning",
    "ParsedChapter",
    "WarningKind",
    # Commit models
    "ChapterRecord",
    "CommitPlan",
    "CommitResult",
    "PlannedChapter",
    "StoryAggregate",
]
