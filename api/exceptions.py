"""Custom exceptions for API."""


class ProcessedFileNotFoundError(Exception):
    """Raised when a processed file id is unknown or was evicted from the cache."""

    pass


class UploadTooLargeError(Exception):
    """Raised when an uploaded file exceeds the configured size limit."""

    pass
