from pathlib import Path

import pytest

from manuscript_import.core.content_normalizer import normalize_html
from manuscript_import.errors import PersistConflict, PersistUnavailable
from manuscript_import.models.commit import ChapterRecord, PlannedChapter
from manuscript_import.store.json_store import JsonChapterStore


def _planned(number: int, html: str = "<p>one two three</p>") -> PlannedChapter:
    content = normalize_html(html)
    return PlannedChapter(
        chapter_number=number,
        title=f"Chapter {number}",
        content=content,
        word_count=3,
    )


def test_chapters_survive_reopening(tmp_path: Path) -> None:
    store = JsonChapterStore(tmp_path)
    store.insert_chapters("s1", [_planned(1, "<h2>Hi</h2><p><b>one</b> two three</p>"), _planned(2)])

    reopened = JsonChapterStore(tmp_path)
    chapters = reopened.list_chapters("s1")
    assert [c.chapter_number for c in chapters] == [1, 2]
    assert chapters[0].content == normalize_html("<h2>Hi</h2><p><b>one</b> two three</p>")
    assert reopened.get_max_chapter_number("s1") == 2
    assert reopened.list_stories() == ["s1"]


def test_unknown_story_is_empty(tmp_path: Path) -> None:
    store = JsonChapterStore(tmp_path)
    assert store.get_max_chapter_number("nope") == 0
    assert store.list_chapters("nope") == []
    assert store.get_story_aggregate("nope").chapter_count == 0


def test_conflicting_insert_changes_nothing(tmp_path: Path) -> None:
    store = JsonChapterStore(tmp_path)
    store.insert_chapters("s1", [_planned(1)])

    with pytest.raises(PersistConflict) as excinfo:
        store.insert_chapters("s1", [_planned(2), _planned(1)])
    assert excinfo.value.chapter_numbers == [1]
    assert [c.chapter_number for c in store.list_chapters("s1")] == [1]


def test_duplicate_numbers_within_batch_conflict(tmp_path: Path) -> None:
    store = JsonChapterStore(tmp_path)
    with pytest.raises(PersistConflict):
        store.insert_chapters("s1", [_planned(1), _planned(1)])
    assert store.list_chapters("s1") == []


def test_aggregates_count_published_chapters_only(tmp_path: Path) -> None:
    store = JsonChapterStore(tmp_path)
    store.add_record(
        ChapterRecord(story_id="s1", chapter_number=1, title="Live", word_count=40, is_published=True)
    )
    store.insert_chapters("s1", [_planned(2), _planned(3)])

    aggregate = store.recompute_story_aggregates("s1")
    assert (aggregate.chapter_count, aggregate.total_word_count) == (1, 40)
    assert JsonChapterStore(tmp_path).get_story_aggregate("s1") == aggregate


def test_writes_leave_no_temp_files(tmp_path: Path) -> None:
    store = JsonChapterStore(tmp_path)
    store.insert_chapters("s1", [_planned(1)])
    store.recompute_story_aggregates("s1")
    leftovers = [p for p in tmp_path.rglob("*") if p.suffix == ".tmp"]
    assert leftovers == []
    assert store.story_file("s1").exists()


def test_unwritable_root_is_persist_unavailable(tmp_path: Path) -> None:
    root = tmp_path / "not-a-dir"
    root.write_text("occupied")
    store = JsonChapterStore(root)
    with pytest.raises(PersistUnavailable):
        store.insert_chapters("s1", [_planned(1)])


def test_corrupt_story_file_is_persist_unavailable(tmp_path: Path) -> None:
    store = JsonChapterStore(tmp_path)
    store.insert_chapters("s1", [_planned(1)])
    store.story_file("s1").write_text("{not json")
    with pytest.raises(PersistUnavailable):
        store.list_chapters("s1")
