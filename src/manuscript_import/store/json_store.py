"""Chapter store persisted as JSON files."""

import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from manuscript_import.errors import PersistConflict, PersistUnavailable
from manuscript_import.models.commit import ChapterRecord, PlannedChapter, StoryAggregate
from manuscript_import.store.base import ChapterStore, compute_aggregate, find_conflicts, to_records

log = logging.getLogger(__name__)


class StoredStory(BaseModel):
    """One story's chapters and last computed counters."""

    story_id: str
    chapters: list[ChapterRecord] = Field(default_factory=list)
    aggregate: StoryAggregate | None = None
    store_version: str = "1"


class StoreIndex(BaseModel):
    """Index mapping story ids to their file names."""

    entries: dict[str, str] = Field(default_factory=dict)  # story id -> file name


class JsonChapterStore(ChapterStore):
    """Stores each story as one JSON document under ``root/stories``.

    Files are replaced atomically, so an insert either lands completely or
    leaves the previous document in place.
    """

    INDEX_FILE = "index.json"
    STORE_VERSION = "1"

    def __init__(self, root: Path):
        self.root = root
        self.stories_dir = root / "stories"
        self.index_path = root / self.INDEX_FILE
        self._index: StoreIndex | None = None

    # ------------------------------------------------------------------
    # ChapterStore
    # ------------------------------------------------------------------

    def get_max_chapter_number(self, story_id: str) -> int:
        story = self._load_story(story_id)
        return max((c.chapter_number for c in story.chapters), default=0)

    def insert_chapters(self, story_id: str, chapters: list[PlannedChapter]) -> None:
        story = self._load_story(story_id)
        conflicts = find_conflicts({c.chapter_number for c in story.chapters}, chapters)
        if conflicts:
            raise PersistConflict(
                f"Chapter number(s) {conflicts} already exist for story {story_id}",
                chapter_numbers=conflicts,
            )
        story.chapters.extend(to_records(story_id, chapters))
        story.chapters.sort(key=lambda c: c.chapter_number)
        self._save_story(story)
        log.debug("Stored %d chapter(s) for story %s in %s", len(chapters), story_id, self.root)

    def recompute_story_aggregates(self, story_id: str) -> StoryAggregate:
        story = self._load_story(story_id)
        story.aggregate = compute_aggregate(story_id, story.chapters)
        self._save_story(story)
        return story.aggregate

    def get_story_aggregate(self, story_id: str) -> StoryAggregate:
        return self._load_story(story_id).aggregate or StoryAggregate(story_id=story_id)

    def list_chapters(self, story_id: str) -> list[ChapterRecord]:
        return sorted(self._load_story(story_id).chapters, key=lambda c: c.chapter_number)

    def list_stories(self) -> list[str]:
        return sorted(self._load_index().entries)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def story_file(self, story_id: str) -> Path:
        digest = hashlib.sha256(story_id.encode("utf-8")).hexdigest()[:16]
        return self.stories_dir / f"{digest}.json"

    def _load_index(self) -> StoreIndex:
        if self._index is not None:
            return self._index

        if self.index_path.exists():
            try:
                self._index = StoreIndex.model_validate_json(self.index_path.read_text())
            except OSError as exc:
                raise PersistUnavailable(f"Cannot read store index {self.index_path}: {exc}") from exc
            except ValidationError:
                log.warning("Store index %s is unreadable, rebuilding it", self.index_path)
                self._index = StoreIndex()
        else:
            self._index = StoreIndex()

        return self._index

    def _load_story(self, story_id: str) -> StoredStory:
        path = self.story_file(story_id)
        if not path.exists():
            return StoredStory(story_id=story_id)
        try:
            return StoredStory.model_validate_json(path.read_text())
        except OSError as exc:
            raise PersistUnavailable(f"Cannot read {path}: {exc}") from exc
        except ValidationError as exc:
            raise PersistUnavailable(f"Stored story {story_id} is corrupt: {exc}") from exc

    def _save_story(self, story: StoredStory) -> None:
        path = self.story_file(story.story_id)

        # Index first: an entry without a story file reads as an empty story
        index = self._load_index()
        if index.entries.get(story.story_id) != path.name:
            index.entries[story.story_id] = path.name
            self._write_atomic(self.index_path, index.model_dump_json(indent=2))

        story.store_version = self.STORE_VERSION
        self._write_atomic(path, story.model_dump_json(indent=2))

    def _write_atomic(self, path: Path, text: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistUnavailable(f"Cannot write {path}: {exc}") from exc

    def export_story(self, story_id: str) -> dict:
        """Plain JSON-compatible dump of a story, for inspection."""
        return json.loads(self._load_story(story_id).model_dump_json())
