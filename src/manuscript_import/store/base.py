"""Persistence collaborator used by the committer."""

from abc import ABC, abstractmethod

from manuscript_import.models.commit import ChapterRecord, PlannedChapter, StoryAggregate


class ChapterStore(ABC):
    """Numbering oracle, bulk insert and aggregate recompute for stories.

    Implementations enforce uniqueness of ``(story_id, chapter_number)`` by
    raising ``PersistConflict`` and apply each ``insert_chapters`` call
    completely or not at all.
    """

    @abstractmethod
    def get_max_chapter_number(self, story_id: str) -> int:
        """Highest chapter number stored for the story, or 0."""
        pass

    @abstractmethod
    def insert_chapters(self, story_id: str, chapters: list[PlannedChapter]) -> None:
        """Store all chapters atomically."""
        pass

    @abstractmethod
    def recompute_story_aggregates(self, story_id: str) -> StoryAggregate:
        """Recompute and store the story's counters from published chapters."""
        pass

    @abstractmethod
    def get_story_aggregate(self, story_id: str) -> StoryAggregate:
        """Last stored counters (zeros for an unknown story)."""
        pass

    @abstractmethod
    def list_chapters(self, story_id: str) -> list[ChapterRecord]:
        """Stored chapters ordered by chapter number."""
        pass

    def add_record(self, record: ChapterRecord) -> None:
        """Store a single existing chapter, e.g. one written outside an import."""
        planned = PlannedChapter(
            chapter_number=record.chapter_number,
            title=record.title,
            content=record.content,
            word_count=record.word_count,
            is_published=record.is_published,
            published_at=record.published_at,
        )
        self.insert_chapters(record.story_id, [planned])


def compute_aggregate(story_id: str, records: list[ChapterRecord]) -> StoryAggregate:
    """Counters over the published subset; drafts never contribute."""
    published = [r for r in records if r.is_published]
    return StoryAggregate(
        story_id=story_id,
        chapter_count=len(published),
        total_word_count=sum(r.word_count for r in published),
    )


def to_records(story_id: str, chapters: list[PlannedChapter]) -> list[ChapterRecord]:
    return [
        ChapterRecord(
            story_id=story_id,
            chapter_number=c.chapter_number,
            title=c.title,
            content=c.content,
            word_count=c.word_count,
            is_published=c.is_published,
            published_at=c.published_at,
        )
        for c in chapters
    ]


def find_conflicts(existing: set[int], chapters: list[PlannedChapter]) -> list[int]:
    """Chapter numbers that collide with stored ones or repeat within the batch."""
    seen = set(existing)
    conflicts: list[int] = []
    for chapter in chapters:
        if chapter.chapter_number in seen:
            conflicts.append(chapter.chapter_number)
        seen.add(chapter.chapter_number)
    return conflicts
