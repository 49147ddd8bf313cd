import pytest

from manuscript_import.config import ImportSettings
from manuscript_import.core.paste_segmenter import CHAPTER_MARKER, PasteSegmenter, is_marker_line
from manuscript_import.errors import EmptyInput
from manuscript_import.models.document import Paragraph


def _segment(text: str, **settings) -> list:
    return PasteSegmenter(ImportSettings(**settings)).segment(text)


def test_marker_splits_into_titled_chapters() -> None:
    chapters = _segment("Ch1\nhello\n\n---CHAPTER---\n\nCh2\nworld")
    assert [c.title for c in chapters] == ["Ch1", "Ch2"]
    for chapter, body in zip(chapters, ("hello", "world")):
        assert len(chapter.content.content) == 1
        assert isinstance(chapter.content.content[0], Paragraph)
        assert chapter.content.plain_text == body


def test_no_marker_gives_single_chapter_titled_by_first_line() -> None:
    chapters = _segment("\n   \nMy Title\nSome body text.\n\nSecond paragraph.")
    assert len(chapters) == 1
    assert chapters[0].title == "My Title"
    assert len(chapters[0].content.content) == 2


def test_marker_is_case_insensitive_and_whitespace_tolerant() -> None:
    chapters = _segment("A\nx\n   ---chapter---  \nB\ny")
    assert [c.title for c in chapters] == ["A", "B"]


def test_marker_inside_a_line_does_not_split() -> None:
    chapters = _segment("A\nsee ---CHAPTER--- here")
    assert len(chapters) == 1


def test_blank_blocks_are_dropped_but_zero_word_blocks_kept() -> None:
    chapters = _segment("---CHAPTER---\n\n---CHAPTER---\nJust a title\n---CHAPTER---\n")
    assert [c.title for c in chapters] == ["Just a title"]
    assert chapters[0].word_count == 0


def test_single_newlines_become_hard_breaks() -> None:
    (chapter,) = _segment("T\nline one\nline two")
    (paragraph,) = chapter.content.content
    assert [n.type for n in paragraph.content] == ["text", "hardBreak", "text"]


def test_windows_newlines_and_bom() -> None:
    chapters = _segment("\ufeffOne\r\nbody\r\n---CHAPTER---\r\nTwo\r\nmore")
    assert [c.title for c in chapters] == ["One", "Two"]


@pytest.mark.parametrize("text", ["", "   \n\t\n"])
def test_blank_input_is_rejected(text: str) -> None:
    with pytest.raises(EmptyInput):
        _segment(text)


def test_only_markers_is_rejected() -> None:
    with pytest.raises(EmptyInput):
        _segment("---CHAPTER---\n---CHAPTER---")


def test_chapter_heading_detection_is_opt_in() -> None:
    text = "Chapter 1\nfoo\nChapter 2\nbar"
    assert len(_segment(text)) == 1
    chapters = _segment(text, detect_chapter_headings=True)
    assert [c.title for c in chapters] == ["Chapter 1", "Chapter 2"]


def test_decode_accepts_bytes() -> None:
    chapters = PasteSegmenter(ImportSettings()).decode("Title\nbody".encode("utf-8"))
    assert chapters[0].source == "paste:block-1"


def test_is_marker_line() -> None:
    assert is_marker_line(f"  {CHAPTER_MARKER}\t")
    assert is_marker_line(CHAPTER_MARKER.lower())
    assert not is_marker_line(f"x {CHAPTER_MARKER}")
