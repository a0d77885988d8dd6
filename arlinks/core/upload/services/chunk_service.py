"""
Chunk upload service.

Handles uploading individual transaction chunks to a gateway.
"""
from typing import Optional, Dict, Any, List, Tuple, Iterable
import logging
import time
import asyncio
import aiohttp

from ..models import Transaction
from ..strategies.chunking import BaseChunkingStrategy, GatewayChunkingStrategy
from ...api.errors import GatewayStatus
from ...crypto import Base64Encoder, sha256
from ...exceptions import GatewayError


class GatewayChunkUploader:
    """
    Uploads one transaction's payload to a gateway, one chunk per call.

    Reuses the caller's HTTP session for all chunks (critical for performance).

    Responsibilities:
    - Cut the payload into chunks
    - POST the next chunk to the gateway's /chunk endpoint
    - Advance only when the gateway accepts the chunk
    """

    DEFAULT_RETRY_ON_STATUS = (408, 429, 500, 502, 503, 504)

    def __init__(
        self,
        transaction: Transaction,
        session: aiohttp.ClientSession,
        base_url: str,
        chunking_strategy: Optional[BaseChunkingStrategy] = None,
        uploaded_chunks: int = 0,
        retry_on_status: Iterable[int] = DEFAULT_RETRY_ON_STATUS,
        proxy: Optional[str] = None
    ):
        """
        Initialize chunk uploader.

        Args:
            transaction: Signed transaction whose payload is uploaded
            session: Shared aiohttp session
            base_url: Gateway base URL
            chunking_strategy: Strategy used to cut the payload
            uploaded_chunks: Chunks already accepted in an earlier attempt
            retry_on_status: HTTP statuses reported as transient
            proxy: Optional proxy URL
        """
        self._transaction = transaction
        self._session = session
        self._base_url = base_url.rstrip('/')
        self._chunking = chunking_strategy or GatewayChunkingStrategy()
        self._chunks: List[Tuple[int, int]] = self._chunking.calculate_chunks(
            transaction.data_size
        )
        if not 0 <= uploaded_chunks <= len(self._chunks):
            raise ValueError(
                f"uploaded_chunks must be between 0 and {len(self._chunks)}"
            )
        self._uploaded_chunks = uploaded_chunks
        self._retry_on_status = tuple(retry_on_status)
        self._proxy = proxy
        self._encoder = Base64Encoder()
        self._last_status: Optional[int] = None
        self._logger = logging.getLogger('arlinks.upload.chunk')

    @property
    def transaction_id(self) -> str:
        return self._transaction.id

    @property
    def total_chunks(self) -> int:
        return len(self._chunks)

    @property
    def uploaded_chunks(self) -> int:
        return self._uploaded_chunks

    @property
    def is_complete(self) -> bool:
        return self._uploaded_chunks >= len(self._chunks)

    @property
    def pct_complete(self) -> float:
        """Returns upload progress as percentage."""
        if not self._chunks:
            return 100.0
        return round(self._uploaded_chunks / len(self._chunks) * 100, 2)

    @property
    def last_response_status(self) -> Optional[int]:
        return self._last_status

    def chunk_body(self, chunk_index: int) -> Dict[str, Any]:
        """JSON body for one chunk, as expected by the /chunk endpoint."""
        start, end = self._chunks[chunk_index]
        data = self._transaction.payload[start:end]
        return {
            'data_root': self._transaction.data_root,
            'data_size': str(self._transaction.data_size),
            'data_path': self._encoder.encode(sha256(data)),
            'offset': str(end - 1),
            'chunk': self._encoder.encode(data),
        }

    async def upload_next_chunk(self) -> None:
        """
        Upload the next pending chunk.

        Raises:
            GatewayError: If the gateway rejects the chunk
            aiohttp.ClientError: If a network error occurs
        """
        if self.is_complete:
            raise ValueError(f"Transaction {self.transaction_id} is already fully uploaded")

        chunk_index = self._uploaded_chunks
        body = self.chunk_body(chunk_index)
        url = f"{self._base_url}/chunk"
        chunk_size_kb = (self._chunks[chunk_index][1] - self._chunks[chunk_index][0]) / 1024

        upload_start = time.time()
        self._logger.debug(
            f"Uploading chunk {chunk_index}/{self.total_chunks} of {self.transaction_id} ({chunk_size_kb:.1f} KB)"
        )

        try:
            async with self._session.post(url, json=body, proxy=self._proxy) as response:
                self._last_status = response.status
                response_text = await response.text()
                self._process_response(response.status, response_text, chunk_index, url)
        except asyncio.TimeoutError:
            upload_time = time.time() - upload_start
            self._logger.warning(f"Chunk {chunk_index} upload timeout after {upload_time:.2f}s")
            raise

        self._uploaded_chunks += 1
        upload_time = time.time() - upload_start
        speed_kbps = (chunk_size_kb / upload_time) if upload_time > 0 else 0
        self._logger.debug(
            f"Chunk {chunk_index} uploaded in {upload_time:.2f}s ({speed_kbps:.1f} KB/s), {self.pct_complete}% complete"
        )

    def _process_response(self, status: int, response_text: str, chunk_index: int, url: str) -> None:
        """
        Check the gateway's answer to a chunk upload.

        Raises:
            GatewayError: If the chunk was not accepted
        """
        if GatewayStatus.is_accepted(status):
            return

        retryable = GatewayStatus.is_transient(status, self._retry_on_status)
        detail = response_text.strip()[:200]
        self._logger.warning(
            f"Gateway returned {status} for chunk {chunk_index}: {GatewayStatus.get_message(status)}"
        )
        raise GatewayError(
            f"Chunk {chunk_index} rejected with status {status}: {detail or GatewayStatus.get_message(status)}",
            status=status,
            url=url,
            retryable=retryable
        )
