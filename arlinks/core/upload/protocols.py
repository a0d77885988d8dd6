"""
Protocol definitions for upload module.

Defines the interfaces the pipeline depends on, so that signing and the
network can be swapped for fakes in tests.
"""
from typing import Protocol, Any, List, Tuple, Optional, runtime_checkable

from .models import Transaction


class ChunkingStrategy(Protocol):
    """
    Protocol for payload chunking strategies.

    Allows different chunking algorithms to be plugged in.
    """

    def calculate_chunks(self, data_size: int) -> List[Tuple[int, int]]:
        """
        Calculate chunk boundaries for a payload.

        Args:
            data_size: Total payload size in bytes

        Returns:
            List of (start, end) tuples representing chunk boundaries
        """
        ...


@runtime_checkable
class Signer(Protocol):
    """Signs serialized bundle payloads into transactions."""

    def sign(
        self,
        payload: bytes,
        credential: Any,
        tags: Optional[List[Tuple[str, str]]] = None
    ) -> Transaction:
        """
        Sign a payload with the caller's credential.

        Args:
            payload: Serialized bundle
            credential: Signing key material (read-only)
            tags: Transaction tags

        Returns:
            Signed transaction with its content-derived id

        Raises:
            SigningError: If the credential or payload is unusable
        """
        ...


@runtime_checkable
class ChunkedUploadHandle(Protocol):
    """Network handle that uploads one transaction chunk per call."""

    @property
    def is_complete(self) -> bool:
        ...

    @property
    def uploaded_chunks(self) -> int:
        ...

    @property
    def total_chunks(self) -> int:
        ...

    async def upload_next_chunk(self) -> None:
        """
        Transmit exactly one chunk.

        Advances uploaded_chunks by one on success; raises on failure
        without advancing, so the same chunk is sent on the next call.
        """
        ...


class ChunkedUploadInitiator(Protocol):
    """Creates upload handles for signed transactions."""

    async def initiate_chunked_upload(
        self,
        transaction: Transaction,
        uploaded_chunks: int = 0
    ) -> ChunkedUploadHandle:
        """
        Start (or resume) the chunked upload of a transaction.

        Args:
            transaction: Signed transaction
            uploaded_chunks: Chunks already acknowledged in an earlier attempt

        Returns:
            Handle positioned at chunk `uploaded_chunks`
        """
        ...
