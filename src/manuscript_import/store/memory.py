"""In-process chapter store."""

import logging

from manuscript_import.errors import PersistConflict
from manuscript_import.models.commit import ChapterRecord, PlannedChapter, StoryAggregate
from manuscript_import.store.base import ChapterStore, compute_aggregate, find_conflicts, to_records

log = logging.getLogger(__name__)


class InMemoryChapterStore(ChapterStore):
    """Dictionary-backed store for tests and embedding."""

    def __init__(self):
        self._chapters: dict[str, dict[int, ChapterRecord]] = {}
        self._aggregates: dict[str, StoryAggregate] = {}

    def get_max_chapter_number(self, story_id: str) -> int:
        return max(self._chapters.get(story_id, {}), default=0)

    def insert_chapters(self, story_id: str, chapters: list[PlannedChapter]) -> None:
        stored = self._chapters.setdefault(story_id, {})
        conflicts = find_conflicts(set(stored), chapters)
        if conflicts:
            raise PersistConflict(
                f"Chapter number(s) {conflicts} already exist for story {story_id}",
                chapter_numbers=conflicts,
            )
        for record in to_records(story_id, chapters):
            stored[record.chapter_number] = record
        log.debug("Stored %d chapter(s) for story %s", len(chapters), story_id)

    def recompute_story_aggregates(self, story_id: str) -> StoryAggregate:
        aggregate = compute_aggregate(story_id, self.list_chapters(story_id))
        self._aggregates[story_id] = aggregate
        return aggregate

    def get_story_aggregate(self, story_id: str) -> StoryAggregate:
        return self._aggregates.get(story_id) or StoryAggregate(story_id=story_id)

    def list_chapters(self, story_id: str) -> list[ChapterRecord]:
        stored = self._chapters.get(story_id, {})
        return [stored[n] for n in sorted(stored)]
