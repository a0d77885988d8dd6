"""
Async gateway client.

Asynchronous HTTP client for an Arweave-style storage gateway.
"""
import json
from typing import Dict, Optional, Any, Tuple
import aiohttp

from .config import GatewayConfig, RetryConfig
from .errors import GatewayStatus
from ..exceptions import GatewayError
from ..logging import get_logger
from ..upload.models import Transaction
from ..upload.services.chunk_service import GatewayChunkUploader
from ..upload.strategies.chunking import BaseChunkingStrategy, GatewayChunkingStrategy


class GatewayClient:
    """
    Asynchronous gateway client.

    Features:
    - Full async/await support
    - Configurable proxy, SSL, timeouts
    - Connection pooling
    - Chunked transaction uploads (initiate_chunked_upload)
    - Wallet balance queries

    Example:
        >>> async with GatewayClient() as gateway:
        ...     balance = await gateway.get_balance(wallet.address)
    """

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        retry: Optional[RetryConfig] = None,
        chunking_strategy: Optional[BaseChunkingStrategy] = None
    ):
        """
        Initialize gateway client.

        Args:
            config: Gateway configuration (uses defaults if not provided)
            retry: Retry configuration; only its transient status list is used here
            chunking_strategy: Strategy used to cut transaction payloads
        """
        self._config = config or GatewayConfig()
        self._retry = retry or RetryConfig()
        self._chunking = chunking_strategy or GatewayChunkingStrategy()
        self._session: Optional[aiohttp.ClientSession] = None
        self._connector: Optional[aiohttp.TCPConnector] = None
        self._logger = get_logger('arlinks.gateway')

    @property
    def config(self) -> GatewayConfig:
        """Get current configuration."""
        return self._config

    @property
    def url(self) -> str:
        return self._config.url

    @property
    def chunking(self) -> BaseChunkingStrategy:
        """Strategy used to cut payloads into uploaded chunks."""
        return self._chunking

    async def __aenter__(self) -> 'GatewayClient':
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session is created and open."""
        if self._session is None or self._session.closed:
            self._connector = aiohttp.TCPConnector(
                **self._config.get_connector_kwargs()
            )
            self._session = aiohttp.ClientSession(
                connector=self._connector,
                **self._config.get_session_kwargs()
            )
        return self._session

    async def close(self):
        """Close client and release resources."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._connector = None

    def _proxy(self) -> Optional[str]:
        return self._config.proxy.to_aiohttp_proxy() if self._config.proxy else None

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None
    ) -> Tuple[int, str]:
        """
        Make a request to the gateway.

        Returns:
            (status, response text)
        """
        session = await self._ensure_session()
        url = f"{self.url}/{path.lstrip('/')}"
        self._logger.debug(f"{method} {url}")

        async with session.request(method, url, json=body, proxy=self._proxy()) as response:
            text = await response.text()
            self._logger.debug(f"{method} {url} -> {response.status}")
            return response.status, text

    def _raise_for_status(self, status: int, text: str, path: str) -> None:
        if GatewayStatus.is_accepted(status):
            return
        retryable = GatewayStatus.is_transient(status, self._retry.retry_on_status)
        raise GatewayError(
            f"{path} failed with status {status}: {text.strip()[:200] or GatewayStatus.get_message(status)}",
            status=status,
            url=f"{self.url}/{path}",
            retryable=retryable
        )

    async def post_transaction(self, transaction: Transaction) -> int:
        """
        Submit a transaction header; the payload follows as chunks.

        Returns:
            HTTP status (200 accepted, 208 already known)

        Raises:
            GatewayError: If the gateway rejects the transaction
        """
        status, text = await self._request('POST', 'tx', transaction.header())
        self._raise_for_status(status, text, 'tx')
        self._logger.info(f"Transaction {transaction.id} posted ({status})")
        return status

    async def initiate_chunked_upload(
        self,
        transaction: Transaction,
        uploaded_chunks: int = 0
    ) -> GatewayChunkUploader:
        """
        Start or resume a chunked upload.

        The transaction header is posted only for a fresh upload; a resumed
        upload goes straight to the next pending chunk.

        Args:
            transaction: Signed transaction
            uploaded_chunks: Chunks accepted in an earlier attempt

        Returns:
            Chunk upload handle positioned at uploaded_chunks
        """
        session = await self._ensure_session()
        if uploaded_chunks == 0:
            await self.post_transaction(transaction)

        return GatewayChunkUploader(
            transaction,
            session,
            self.url,
            chunking_strategy=self._chunking,
            uploaded_chunks=uploaded_chunks,
            retry_on_status=self._retry.retry_on_status,
            proxy=self._proxy()
        )

    async def get_transaction_status(self, transaction_id: str) -> Dict[str, Any]:
        """
        Get confirmation status of a transaction.

        Returns:
            Status document; {'status': 202} while pending, {'status': 404} if unknown
        """
        status, text = await self._request('GET', f"tx/{transaction_id}/status")
        if status == 200:
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                data = {}
            return {'status': 200, 'confirmed': data}
        return {'status': status, 'confirmed': None}

    async def get_balance(self, address: str) -> int:
        """
        Get wallet balance.

        Args:
            address: Wallet address

        Returns:
            Balance in winston
        """
        status, text = await self._request('GET', f"wallet/{address}/balance")
        self._raise_for_status(status, text, f"wallet/{address}/balance")
        try:
            return int(text.strip())
        except ValueError as e:
            raise GatewayError(f"Unexpected balance response: {text[:100]!r}", status=status) from e
