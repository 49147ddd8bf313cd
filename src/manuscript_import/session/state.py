"""Editable preview state for one import."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from manuscript_import.config import ImportSettings, get_settings
from manuscript_import.errors import SessionStateError
from manuscript_import.models.chapter import ChapterWarning, ParsedChapter, WarningKind


class SessionState(str, Enum):
    EMPTY = "empty"
    PARSED = "parsed"
    EDITED = "edited"
    COMMITTING = "committing"
    COMMITTED = "committed"
    ABANDONED = "abandoned"


EDITABLE_STATES = (SessionState.PARSED, SessionState.EDITED)
LOADABLE_STATES = (SessionState.EMPTY, SessionState.PARSED, SessionState.EDITED)


@dataclass
class ChapterPreview:
    """One row of the preview table."""

    index: int
    title: str
    word_count: int
    low_content: bool
    warnings: list[ChapterWarning] = field(default_factory=list)


@dataclass
class _Entry:
    chapter: ParsedChapter
    word_count: int | None = None  # memoized, travels with the chapter


@dataclass
class ImportSession:
    """Ordered chapters awaiting commit to one story.

    List order is the only ordering signal; chapter numbers are assigned at
    commit time. Word counts are computed once per chapter and move with it
    when chapters are reordered.
    """

    story_id: str
    story_title: str = ""
    settings: ImportSettings = field(default_factory=get_settings)
    state: SessionState = SessionState.EMPTY
    _entries: list[_Entry] = field(default_factory=list, init=False, repr=False)
    _resume_state: SessionState | None = field(default=None, init=False, repr=False)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, chapters: list[ParsedChapter]) -> None:
        """Replace the chapter list with a fresh decode result."""
        self._require(LOADABLE_STATES, "load chapters")
        self._entries = [_Entry(chapter=c) for c in chapters]
        self.state = SessionState.PARSED

    def abandon(self) -> None:
        if self.state in (SessionState.COMMITTING, SessionState.COMMITTED):
            raise SessionStateError(f"Cannot abandon a session that is {self.state.value}.")
        self._entries = []
        self.state = SessionState.ABANDONED

    def begin_commit(self) -> None:
        self._require(EDITABLE_STATES, "start a commit")
        self._resume_state = self.state
        self.state = SessionState.COMMITTING

    def finish_commit(self) -> None:
        self._require((SessionState.COMMITTING,), "finish a commit")
        self._resume_state = None
        self.state = SessionState.COMMITTED

    def fail_commit(self) -> None:
        """Return to the state held before ``begin_commit`` so the commit can be retried."""
        self._require((SessionState.COMMITTING,), "fail a commit")
        self.state = self._resume_state or SessionState.PARSED
        self._resume_state = None

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def rename_at(self, index: int, title: str) -> None:
        """Set a chapter title. Blank titles are allowed until commit."""
        self._require(EDITABLE_STATES, "rename a chapter")
        entry = self._entry(index)
        entry.chapter = entry.chapter.model_copy(update={"title": title})
        self.state = SessionState.EDITED

    def remove_at(self, index: int) -> ParsedChapter:
        self._require(EDITABLE_STATES, "remove a chapter")
        entry = self._entry(index)
        del self._entries[index]
        self.state = SessionState.EDITED
        return entry.chapter

    def move_by(self, index: int, delta: int) -> None:
        """Swap the chapter at ``index`` with its neighbour.

        Moving the first chapter up or the last one down does nothing.
        """
        self._require(EDITABLE_STATES, "reorder chapters")
        if delta not in (-1, 1):
            raise ValueError("Chapters move one position at a time (delta must be -1 or 1)")
        self._entry(index)
        target = index + delta
        if 0 <= target < len(self._entries):
            self._entries[index], self._entries[target] = (
                self._entries[target],
                self._entries[index],
            )
        self.state = SessionState.EDITED

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def chapters(self) -> list[ParsedChapter]:
        return [e.chapter for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def word_count_at(self, index: int) -> int:
        entry = self._entry(index)
        if entry.word_count is None:
            entry.word_count = entry.chapter.word_count
        return entry.word_count

    def word_counts(self) -> list[int]:
        return [self.word_count_at(i) for i in range(len(self._entries))]

    @property
    def total_word_count(self) -> int:
        return sum(self.word_counts())

    def low_content_indices(self) -> list[int]:
        """Chapters flagged as likely not real content. They are never removed here."""
        threshold = self.settings.low_word_threshold
        return [i for i, count in enumerate(self.word_counts()) if count < threshold]

    def preview(self) -> list[ChapterPreview]:
        threshold = self.settings.low_word_threshold
        rows: list[ChapterPreview] = []
        for index, entry in enumerate(self._entries):
            count = self.word_count_at(index)
            warnings = list(entry.chapter.warnings)
            low = count < threshold
            if low:
                warnings.append(
                    ChapterWarning(
                        kind=WarningKind.LOW_WORD_COUNT,
                        message=(
                            f"Only {count} word(s); this may be front matter "
                            "rather than a real chapter."
                        ),
                    )
                )
            rows.append(
                ChapterPreview(
                    index=index,
                    title=entry.chapter.title,
                    word_count=count,
                    low_content=low,
                    warnings=warnings,
                )
            )
        return rows

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _entry(self, index: int) -> _Entry:
        if not 0 <= index < len(self._entries):
            raise IndexError(f"No chapter at index {index} (session has {len(self._entries)})")
        return self._entries[index]

    def _require(self, allowed: tuple[SessionState, ...], action: str) -> None:
        if self.state not in allowed:
            raise SessionStateError(f"Cannot {action} while the session is {self.state.value}.")
