import asyncio
import io
from pathlib import Path

import docx
import pytest

from manuscript_import.config import ImportSettings
from manuscript_import.core.decode_job import DecodeJob, open_session
from manuscript_import.core.decoder_factory import (
    DecoderFactory,
    DocxSource,
    EpubSource,
    PasteSource,
    decode,
)
from manuscript_import.core.docx_decoder import DocxDecoder
from manuscript_import.core.epub_decoder import EpubDecoder
from manuscript_import.core.paste_segmenter import PasteSegmenter
from manuscript_import.errors import CorruptArchive, DecodeCancelled
from manuscript_import.session.state import SessionState


def _docx_bytes() -> bytes:
    document = docx.Document()
    document.add_heading("One", level=1)
    document.add_paragraph("text")
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def test_factory_picks_decoder_by_source() -> None:
    settings = ImportSettings()
    assert isinstance(DecoderFactory.create(EpubSource(b""), settings), EpubDecoder)
    assert isinstance(DecoderFactory.create(DocxSource(b""), settings), DocxDecoder)
    assert isinstance(DecoderFactory.create(PasteSource(""), settings), PasteSegmenter)
    with pytest.raises(TypeError):
        DecoderFactory.create("not a source", settings)


def test_source_from_path(tmp_path: Path) -> None:
    text_file = tmp_path / "draft.txt"
    text_file.write_text("Title\nbody")
    assert DecoderFactory.source_from_path(text_file) == PasteSource(text="Title\nbody", name="draft.txt")

    docx_file = tmp_path / "book.DOCX"
    docx_file.write_bytes(b"data")
    assert isinstance(DecoderFactory.source_from_path(docx_file), DocxSource)
    assert isinstance(DecoderFactory.source_from_path(docx_file, as_paste=True), PasteSource)

    pdf_file = tmp_path / "book.pdf"
    pdf_file.write_bytes(b"%PDF")
    with pytest.raises(ValueError):
        DecoderFactory.source_from_path(pdf_file)
    with pytest.raises(FileNotFoundError):
        DecoderFactory.source_from_path(tmp_path / "missing.epub")


def test_detect_format() -> None:
    assert DecoderFactory.detect_format(Path("a.epub")) == "epub"
    assert DecoderFactory.detect_format(Path("a.md")) == "paste"
    assert DecoderFactory.detect_format(Path("a.pdf")) == "unknown"
    assert not DecoderFactory.is_supported(Path("a.mobi"))


def test_decode_dispatches_every_format() -> None:
    settings = ImportSettings()
    assert [c.title for c in decode(PasteSource("P\nbody"), settings)] == ["P"]
    assert [c.title for c in decode(DocxSource(_docx_bytes()), settings)] == ["One"]
    with pytest.raises(CorruptArchive):
        decode(EpubSource(b"junk"), settings)


def test_open_session_returns_parsed_session() -> None:
    source = PasteSource("A\nx\n---CHAPTER---\nB\ny")
    session = asyncio.run(open_session(source, "story-1", "My Story", settings=ImportSettings()))
    assert session.state == SessionState.PARSED
    assert session.story_title == "My Story"
    assert [c.title for c in session.chapters] == ["A", "B"]


def test_decode_errors_create_no_session() -> None:
    with pytest.raises(CorruptArchive):
        asyncio.run(open_session(DocxSource(b"junk"), "story-1", settings=ImportSettings()))


def test_cancelled_job_never_returns_chapters() -> None:
    job = DecodeJob(DocxSource(_docx_bytes()), ImportSettings())
    job.cancel()
    assert job.cancelled
    with pytest.raises(DecodeCancelled):
        asyncio.run(job.run())


def test_cancelling_the_task_sets_the_interrupt() -> None:
    job = DecodeJob(PasteSource("A\nbody"), ImportSettings())

    async def scenario() -> None:
        task = asyncio.create_task(job.run())
        await asyncio.sleep(0)  # let the job reach the worker thread
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert job.cancelled
