"""
Chunked transaction upload service.

Drives one signed transaction through a chunked upload handle until
every chunk is acknowledged, retrying failed chunks in place.
"""
import asyncio
import logging
from typing import Callable, Optional

from ..models import Transaction, ChunkUploadState
from ..protocols import ChunkedUploadHandle, ChunkedUploadInitiator
from ...api.retry import RetryStrategy, ExponentialBackoffStrategy
from ...exceptions import ChunkUploadError

logger = logging.getLogger('arlinks.upload.transaction')


class ChunkedTransactionUploader:
    """
    Uploads a transaction chunk by chunk.

    Chunks go out strictly in increasing index order. A failed chunk is
    retried with the same index according to the retry strategy (at least
    once); when the budget is spent a ChunkUploadError carrying the current
    state is raised. The uploader never skips a chunk.

    Progress is keyed by transaction id: constructing a new uploader for
    the same transaction with uploaded_chunks=j resumes at chunk j.

    Example:
        >>> uploader = ChunkedTransactionUploader(gateway, transaction)
        >>> state = await uploader.run()
        >>> state.is_complete
        True
    """

    def __init__(
        self,
        initiator: ChunkedUploadInitiator,
        transaction: Transaction,
        retry_strategy: Optional[RetryStrategy] = None,
        uploaded_chunks: int = 0,
        progress_callback: Optional[Callable[[ChunkUploadState], None]] = None
    ):
        """
        Initialize transaction uploader.

        Args:
            initiator: Creates the network upload handle
            transaction: Signed transaction to upload
            retry_strategy: Retry policy for failed chunks
            uploaded_chunks: Chunks acknowledged by an earlier attempt
            progress_callback: Called with the state after every chunk
        """
        if uploaded_chunks < 0:
            raise ValueError("uploaded_chunks must not be negative")
        self._initiator = initiator
        self._transaction = transaction
        self._retry = retry_strategy or ExponentialBackoffStrategy()
        self._resume_from = uploaded_chunks
        self._progress_callback = progress_callback
        self._handle: Optional[ChunkedUploadHandle] = None
        self._state: Optional[ChunkUploadState] = None

    @property
    def transaction_id(self) -> str:
        return self._transaction.id

    @property
    def state(self) -> Optional[ChunkUploadState]:
        """Current upload state (None until the upload has started)."""
        return self._state

    @property
    def percentage(self) -> float:
        """Progress in percent; safe to read at any time."""
        if self._state is None:
            return 0.0
        return self._state.percentage

    async def start(self) -> ChunkUploadState:
        """
        Obtain the upload handle, posting the transaction if needed.

        Returns:
            Initial state, positioned at the resume point

        Raises:
            ChunkUploadError: If the upload cannot be initiated after retries
        """
        if self._state is not None:
            return self._state

        retry_count = 0
        while True:
            try:
                handle = await self._initiator.initiate_chunked_upload(
                    self._transaction, self._resume_from
                )
                break
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self._retry.should_retry(e, retry_count):
                    logger.error(f"Could not initiate upload of {self.transaction_id}: {e}")
                    raise ChunkUploadError(
                        self.transaction_id, self._resume_from, cause=e
                    ) from e
                logger.warning(
                    f"Initiating {self.transaction_id} failed ({e}), retry {retry_count + 1}"
                )
                await self._retry.wait_async(retry_count)
                retry_count += 1

        if handle.uploaded_chunks != self._resume_from:
            raise ValueError(
                f"Upload handle for {self.transaction_id} starts at chunk "
                f"{handle.uploaded_chunks}, expected {self._resume_from}"
            )

        self._handle = handle
        self._state = ChunkUploadState(
            transaction_id=self.transaction_id,
            total_chunks=handle.total_chunks,
            uploaded_chunks=handle.uploaded_chunks
        )
        if handle.is_complete:
            self._state.mark_complete()

        logger.info(
            f"Uploading {self.transaction_id}: {self._state.total_chunks} chunks"
            + (f", resuming at chunk {self._resume_from}" if self._resume_from else "")
        )
        return self._state

    async def upload_next(self) -> ChunkUploadState:
        """
        Upload exactly one chunk, retrying it in place on failure.

        Returns:
            Updated state

        Raises:
            ChunkUploadError: If the chunk cannot be delivered
        """
        state = await self.start()
        if state.is_complete:
            return state

        handle = self._handle
        chunk_index = handle.uploaded_chunks
        retry_count = 0

        while True:
            try:
                await handle.upload_next_chunk()
                break
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self._retry.should_retry(e, retry_count):
                    logger.error(
                        f"Chunk {chunk_index} of {self.transaction_id} failed after "
                        f"{retry_count + 1} attempts: {e}"
                    )
                    raise ChunkUploadError(
                        self.transaction_id, chunk_index, state=state.snapshot(), cause=e
                    ) from e
                logger.warning(
                    f"Chunk {chunk_index} of {self.transaction_id} failed ({e}), "
                    f"retry {retry_count + 1}"
                )
                await self._retry.wait_async(retry_count)
                retry_count += 1

        if handle.uploaded_chunks <= chunk_index:
            raise ValueError(
                f"Upload handle for {self.transaction_id} did not advance past chunk {chunk_index}"
            )
        state.advance(handle.uploaded_chunks)
        if handle.is_complete:
            state.mark_complete()

        if self._progress_callback:
            self._progress_callback(state)

        return state

    async def run(self) -> ChunkUploadState:
        """
        Upload every remaining chunk.

        Returns:
            Final state with is_complete set

        Raises:
            ChunkUploadError: If a chunk cannot be delivered
        """
        state = await self.start()
        while not state.is_complete:
            await self.upload_next()

        logger.info(f"Transaction {self.transaction_id} uploaded ({state.total_chunks} chunks)")
        return state
