"""Custom exceptions for census ingestion and conversation workflow."""


class CensusIntakeError(Exception):
    """Base exception for census intake errors."""
    pass


class IngestionError(CensusIntakeError):
    """Error that aborts the pipeline for a single file."""
    pass


class EmptyGridError(IngestionError):
    """Extracted grid is absent or has no non-empty rows."""
    pass


class UnsupportedFileError(IngestionError):
    """File kind could not be recognized and no grid can be extracted."""
    pass


class ExtractionError(IngestionError):
    """Grid extraction failed for a recognized file kind."""
    pass


class CatalogueError(CensusIntakeError):
    """Standard field catalogue or scoring file is malformed."""
    pass


class ConversationError(CensusIntakeError):
    """Base exception for conversation session errors."""
    pass


class SessionNotFoundError(ConversationError):
    """Session does not exist or has expired."""
    pass


class SessionFinalizedError(ConversationError):
    """Session was already finalized."""
    pass


class InvalidStateTransitionError(ConversationError):
    """Invalid conversation step transition attempted."""
    pass
