"""Number imported chapters and store them as drafts."""

import logging

from manuscript_import.config import ImportSettings, get_settings
from manuscript_import.errors import EmptyInput, PersistConflict
from manuscript_import.models.commit import CommitPlan, CommitResult, PlannedChapter
from manuscript_import.session.state import ImportSession
from manuscript_import.store.base import ChapterStore

log = logging.getLogger(__name__)


class BatchCommitter:
    """Commit a finished import session to a story.

    Chapters keep their session order and receive contiguous numbers after
    the story's current maximum. They are stored unpublished, so the story's
    public counters do not change.
    """

    def __init__(self, store: ChapterStore, settings: ImportSettings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    def commit(self, session: ImportSession, current_max: int) -> CommitPlan:
        """Plan numbering for ``session`` without touching the store.

        Raises:
            ValueError: If ``current_max`` is negative
            EmptyInput: If the session holds no chapters
        """
        if current_max < 0:
            raise ValueError(f"current_max must be >= 0, got {current_max}")
        chapters = session.chapters
        if not chapters:
            raise EmptyInput("There are no chapters to import.")

        starting_number = current_max + 1
        planned = [
            PlannedChapter(
                chapter_number=starting_number + offset,
                title=chapter.title.strip() or self.settings.untitled_title,
                content=chapter.content,
                word_count=session.word_count_at(offset),
            )
            for offset, chapter in enumerate(chapters)
        ]
        return CommitPlan(
            story_id=session.story_id,
            starting_number=starting_number,
            chapters=planned,
        )

    def persist(self, plan: CommitPlan) -> None:
        self.store.insert_chapters(plan.story_id, plan.chapters)

    def run(self, session: ImportSession) -> CommitResult:
        """Plan, store and refresh aggregates for ``session``.

        A ``PersistConflict`` is retried with fresh numbering up to
        ``conflict_retries`` times. On any failure the session returns to its
        previous editable state and the error propagates.
        """
        session.begin_commit()
        try:
            plan, attempts = self._insert_with_retry(session)
        except Exception:
            session.fail_commit()
            raise

        result = CommitResult(plan=plan, attempts=attempts)
        try:
            result.aggregate = self.store.recompute_story_aggregates(plan.story_id)
        except Exception as exc:
            # Inserted chapters are kept
            log.error("Chapters stored but aggregate refresh failed for %s: %s", plan.story_id, exc)
            result.aggregate_refreshed = False

        session.finish_commit()
        log.info(
            "Committed %d chapter(s) to story %s as numbers %d-%d",
            len(plan.chapters),
            plan.story_id,
            plan.chapter_numbers[0],
            plan.chapter_numbers[-1],
        )
        return result

    def _insert_with_retry(self, session: ImportSession) -> tuple[CommitPlan, int]:
        attempts = 0
        while True:
            attempts += 1
            current_max = self.store.get_max_chapter_number(session.story_id)
            plan = self.commit(session, current_max)
            try:
                self.persist(plan)
                return plan, attempts
            except PersistConflict as exc:
                if attempts > self.settings.conflict_retries:
                    raise PersistConflict(
                        "Another change to this story claimed the same chapter numbers. "
                        "Please retry the import.",
                        chapter_numbers=exc.chapter_numbers,
                    ) from exc
                log.warning(
                    "Chapter number conflict on %s (attempt %d), renumbering: %s",
                    session.story_id,
                    attempts,
                    exc.message,
                )
