"""Run a decode off the event loop so it can be cancelled."""

import asyncio
import logging
import threading

from manuscript_import.config import ImportSettings, get_settings
from manuscript_import.core.decoder_factory import InputSource, decode
from manuscript_import.errors import DecodeCancelled
from manuscript_import.models.chapter import ParsedChapter
from manuscript_import.session.state import ImportSession

log = logging.getLogger(__name__)


class DecodeJob:
    """One background decode of one input source.

    The decoder polls the job's interrupt flag between spine items and
    paragraphs. A cancelled job never returns chapters, even when the worker
    thread had already finished.
    """

    def __init__(self, source: InputSource, settings: ImportSettings | None = None):
        self.source = source
        self.settings = settings or get_settings()
        self._interrupt = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._interrupt.is_set()

    def cancel(self) -> None:
        self._interrupt.set()

    async def run(self) -> list[ParsedChapter]:
        """Decode in a worker thread.

        Raises:
            DecodeCancelled: If the job was cancelled before the result was used
        """
        loop = asyncio.get_running_loop()
        try:
            chapters = await loop.run_in_executor(
                None,
                lambda: decode(self.source, self.settings, check_interrupt=self._interrupt.is_set),
            )
        except asyncio.CancelledError:
            # The awaiting task was cancelled; stop the worker at its next poll
            self.cancel()
            raise

        if self.cancelled:
            log.debug("Discarding result of cancelled decode of %s", getattr(self.source, "name", "input"))
            raise DecodeCancelled()
        return chapters


async def open_session(
    source: InputSource,
    story_id: str,
    story_title: str = "",
    settings: ImportSettings | None = None,
) -> ImportSession:
    """Decode ``source`` and return a session holding the parsed chapters.

    Decode errors propagate and no session is created.
    """
    settings = settings or get_settings()
    chapters = await DecodeJob(source, settings).run()
    session = ImportSession(story_id=story_id, story_title=story_title, settings=settings)
    session.load(chapters)
    return session
