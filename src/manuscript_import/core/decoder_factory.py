"""Single decode entry point and file-format dispatch."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

from manuscript_import.config import ImportSettings, get_settings
from manuscript_import.models.chapter import ParsedChapter


class ChapterDecoder(ABC):
    """Abstract base class for chapter decoders."""

    @abstractmethod
    def decode(
        self,
        data: bytes,
        check_interrupt: Callable[[], bool] | None = None,
    ) -> list[ParsedChapter]:
        """Decode the input and return chapters in reading order."""
        pass


@dataclass(frozen=True)
class EpubSource:
    data: bytes
    name: str = "upload.epub"


@dataclass(frozen=True)
class DocxSource:
    data: bytes
    name: str = "upload.docx"


@dataclass(frozen=True)
class PasteSource:
    text: str
    name: str = "paste"


InputSource = Union[EpubSource, DocxSource, PasteSource]


class DecoderFactory:
    """Factory for creating the decoder that matches an input source."""

    SUPPORTED_FORMATS = {
        ".epub": "epub",
        ".docx": "docx",
        ".txt": "paste",
        ".md": "paste",
    }

    @classmethod
    def create(cls, source: InputSource, settings: ImportSettings | None = None):
        """Create the decoder for ``source``.

        Raises:
            TypeError: If ``source`` is not an input source
        """
        settings = settings or get_settings()

        if isinstance(source, EpubSource):
            from manuscript_import.core.epub_decoder import EpubDecoder

            return EpubDecoder(settings=settings)
        elif isinstance(source, DocxSource):
            from manuscript_import.core.docx_decoder import DocxDecoder

            return DocxDecoder(settings=settings)
        elif isinstance(source, PasteSource):
            from manuscript_import.core.paste_segmenter import PasteSegmenter

            return PasteSegmenter(settings=settings)

        raise TypeError(f"Not an input source: {type(source).__name__}")

    @classmethod
    def source_from_path(cls, path: Path, as_paste: bool = False) -> InputSource:
        """Read a file into the matching input source.

        Args:
            path: File to read
            as_paste: Treat the file as pasted text regardless of suffix

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file format is not supported
        """
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        if as_paste:
            return PasteSource(text=path.read_text(encoding="utf-8", errors="replace"), name=path.name)

        fmt = cls.detect_format(path)
        if fmt == "epub":
            return EpubSource(data=path.read_bytes(), name=path.name)
        elif fmt == "docx":
            return DocxSource(data=path.read_bytes(), name=path.name)
        elif fmt == "paste":
            return PasteSource(text=path.read_text(encoding="utf-8", errors="replace"), name=path.name)

        supported = ", ".join(cls.SUPPORTED_FORMATS.keys())
        raise ValueError(f"Unsupported format: {path.suffix.lower()}. Supported formats: {supported}")

    @classmethod
    def detect_format(cls, path: Path) -> str:
        """Detect file format from extension ("epub", "docx", "paste" or "unknown")."""
        return cls.SUPPORTED_FORMATS.get(path.suffix.lower(), "unknown")

    @classmethod
    def is_supported(cls, path: Path) -> bool:
        return path.suffix.lower() in cls.SUPPORTED_FORMATS


def decode(
    source: InputSource,
    settings: ImportSettings | None = None,
    check_interrupt: Callable[[], bool] | None = None,
) -> list[ParsedChapter]:
    """Decode any input source into chapters.

    Raises:
        CorruptArchive, MissingManifest, EmptyInput: On fatal input problems
        DecodeCancelled: If ``check_interrupt`` reports cancellation
    """
    decoder = DecoderFactory.create(source, settings)
    payload = source.text if isinstance(source, PasteSource) else source.data
    return decoder.decode(payload, check_interrupt=check_interrupt)
