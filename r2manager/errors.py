"""Error taxonomy for r2manager.

Every error raised by the library derives from ``R2ManagerError`` so callers
can catch the whole family at once, while the subclasses keep "try again"
(transport) apart from "something is wrong with the data path" (verification).
"""
from typing import Optional, Union


class R2ManagerError(RuntimeError):
    """Base class for all r2manager errors."""


class FileValidationError(R2ManagerError):
    """File rejected by the type/size policy before any network call."""


class TransportError(R2ManagerError):
    """Raised by a transport when a request fails or the server rejects it."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_conflict(self) -> bool:
        # 409: bucket not empty, key already exists, ...
        return self.status_code == 409


class ChunkUploadError(R2ManagerError):
    """A chunk failed on every attempt allowed by the retry policy."""

    def __init__(self, chunk_index: int, attempts: int, cause: BaseException):
        super().__init__(
            f"Failed to upload chunk {chunk_index} after {attempts} attempts: {cause}"
        )
        self.chunk_index = chunk_index
        self.attempts = attempts
        self.cause = cause


class VerificationError(R2ManagerError):
    """Uploaded data could not be verified against the local digests."""

    def __init__(self, reason: str):
        super().__init__(f"Verification failed: {reason}")
        self.reason = reason


class ListingError(R2ManagerError):
    """A listing page request failed."""


class TransferError(R2ManagerError):
    """A move/copy batch halted on its first failing entry."""

    def __init__(
        self,
        failed_key: str,
        completed_count: int,
        total_count: int,
        cause: Union[BaseException, str],
    ):
        super().__init__(
            f"Transfer halted at {failed_key!r} after {completed_count}/{total_count} "
            f"entries: {cause}"
        )
        self.failed_key = failed_key
        self.completed_count = completed_count
        self.total_count = total_count
        self.cause = cause


class InvalidTransitionError(R2ManagerError):
    """An upload task was asked to move to a state its lifecycle does not allow."""
