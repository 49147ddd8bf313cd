"""Data models for committing imported chapters."""

from datetime import datetime

from pydantic import BaseModel, Field

from manuscript_import.models.document import Document


class PlannedChapter(BaseModel):
    """A chapter with its assigned number, packaged as a draft."""

    chapter_number: int
    title: str
    content: Document
    word_count: int
    is_published: bool = False
    published_at: datetime | None = None


class CommitPlan(BaseModel):
    """Numbering decided for one commit attempt."""

    story_id: str
    starting_number: int
    chapters: list[PlannedChapter] = Field(default_factory=list)

    @property
    def chapter_numbers(self) -> list[int]:
        return [c.chapter_number for c in self.chapters]

    @property
    def total_word_count(self) -> int:
        return sum(c.word_count for c in self.chapters)


class ChapterRecord(BaseModel):
    """A chapter row as held by a store."""

    story_id: str
    chapter_number: int
    title: str
    content: Document = Field(default_factory=Document)
    word_count: int = 0
    is_published: bool = False
    published_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class StoryAggregate(BaseModel):
    """Public counters of a story, computed from published chapters only."""

    story_id: str
    chapter_count: int = 0
    total_word_count: int = 0


class CommitResult(BaseModel):
    """Outcome of a successful commit."""

    plan: CommitPlan
    attempts: int = 1
    aggregate: StoryAggregate | None = None
    aggregate_refreshed: bool = True
