"""Errors raised by the import pipeline."""


class ManuscriptImportError(Exception):
    """Base error carrying a machine-readable type and a user-facing message."""

    error_type = "IMPORT_ERROR"

    def __init__(self, message: str, error_type: str | None = None):
        if error_type is not None:
            self.error_type = error_type
        self.message = message
        super().__init__(f"{self.error_type}: {message}")


class CorruptArchive(ManuscriptImportError):
    """The uploaded file cannot be opened as the expected zip container."""

    error_type = "CORRUPT_ARCHIVE"


class MissingManifest(ManuscriptImportError):
    """The EPUB has no discoverable OPF package or spine."""

    error_type = "MISSING_MANIFEST"


class UnsupportedPart(ManuscriptImportError):
    """A recognised but unhandled part. Decoders turn this into a warning."""

    error_type = "UNSUPPORTED_PART"


class EmptyInput(ManuscriptImportError):
    """Nothing to import."""

    error_type = "EMPTY_INPUT"


class PersistConflict(ManuscriptImportError):
    """A chapter number collided with an existing chapter of the story."""

    error_type = "PERSIST_CONFLICT"

    def __init__(self, message: str, chapter_numbers: list[int] | None = None):
        self.chapter_numbers = list(chapter_numbers or [])
        super().__init__(message)


class PersistUnavailable(ManuscriptImportError):
    """The persistence collaborator failed for infrastructural reasons."""

    error_type = "PERSIST_UNAVAILABLE"


class DecodeCancelled(ManuscriptImportError):
    """A background decode was cancelled before it finished."""

    error_type = "DECODE_CANCELLED"

    def __init__(self, message: str = "Decoding was cancelled"):
        super().__init__(message)


class SessionStateError(ManuscriptImportError):
    """The import session does not accept this operation in its current state."""

    error_type = "SESSION_STATE"
