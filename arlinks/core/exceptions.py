"""
Custom exceptions for arlinks upload operations.

This module defines the exception classes raised by the bundle-and-chunk
upload pipeline and its collaborators.
"""
from typing import Optional, Any


class ArLinksException(Exception):
    """Base exception for all arlinks errors."""

    def __init__(self, message: str, error_code: Optional[int] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            error_code: Numeric error code (if available)
        """
        self.error_code = error_code
        super().__init__(message)

    @property
    def kind(self) -> str:
        """Short name of the failure kind, for reporting."""
        return type(self).__name__


class ReadError(ArLinksException):
    """Exception raised when a local file cannot be loaded."""

    def __init__(self, name: str, cause: Optional[BaseException] = None) -> None:
        """
        Initialize the exception.

        Args:
            name: Name (or path) of the file that failed to load
            cause: Underlying I/O error
        """
        self.name = name
        self.cause = cause
        message = f"Could not read file {name!r}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class FileTooLargeError(ArLinksException):
    """Exception raised when a single file cannot fit in any bundle."""

    def __init__(self, name: str, size: int, max_size: int) -> None:
        """
        Initialize the exception.

        Args:
            name: Name of the offending file
            size: Size of the file in bytes
            max_size: Maximum serialized bundle size in bytes
        """
        self.name = name
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"File {name!r} ({size} bytes) does not fit in a bundle "
            f"of at most {max_size} bytes"
        )


class SigningError(ArLinksException):
    """Exception raised when a bundle cannot be signed into a transaction."""

    def __init__(self, message: str, bundle_index: Optional[int] = None) -> None:
        self.bundle_index = bundle_index
        super().__init__(message)


class ChunkUploadError(ArLinksException):
    """Exception raised when a chunk cannot be delivered after retries."""

    def __init__(
        self,
        transaction_id: str,
        chunk_index: int,
        state: Any = None,
        cause: Optional[BaseException] = None,
        bundle_index: Optional[int] = None
    ) -> None:
        """
        Initialize the exception.

        Args:
            transaction_id: Id of the transaction being uploaded
            chunk_index: Index of the chunk that failed
            state: ChunkUploadState at the time of failure (for resuming)
            cause: Last underlying error
            bundle_index: Bundle the transaction belongs to (set by the sequencer)
        """
        self.transaction_id = transaction_id
        self.bundle_index = bundle_index
        self.chunk_index = chunk_index
        self.state = state
        self.cause = cause
        message = f"Chunk {chunk_index} of transaction {transaction_id} could not be uploaded"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class SessionCancelledError(ArLinksException):
    """Exception reported when an upload session is cancelled."""
    pass


class WalletError(ArLinksException):
    """Exception raised for malformed or unusable wallet key material."""
    pass


class GatewayError(ArLinksException):
    """Exception raised for unexpected gateway HTTP responses."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        url: Optional[str] = None,
        retryable: bool = False
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            status: HTTP status code (if a response was received)
            url: Requested URL
            retryable: True if the failure is transient
        """
        self.status = status
        self.url = url
        self.retryable = retryable
        super().__init__(message, error_code=status)
