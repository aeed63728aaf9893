"""Exception taxonomy for the upload pipeline.

Each class carries the HTTP status it maps to; the API layer renders any
``MediaServiceError`` in the response envelope without further lookup.
"""


class MediaServiceError(Exception):
    """Base exception for the media service."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(MediaServiceError):
    """Missing or malformed field, bad id format, unsupported file type."""

    status_code = 400


class ArchiveOpenError(MediaServiceError):
    """The uploaded archive could not be opened at all."""

    status_code = 400


class NotFoundError(MediaServiceError):
    """A referenced record or owner entity does not exist."""

    status_code = 404


class ConflictError(MediaServiceError):
    """A uniqueness rule would be violated."""

    status_code = 409


class PayloadTooLarge(MediaServiceError):
    """A file part exceeded its byte limit or too many file parts were sent."""

    status_code = 413


class StorageWriteError(MediaServiceError):
    """Object store rejected or failed a write."""

    pass


class StorageReadError(MediaServiceError):
    """Object store failed a read."""

    pass


class SigningError(MediaServiceError):
    """A presigned read URL could not be produced."""

    pass
