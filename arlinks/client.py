"""
ArLinksClient - High-level async client for bundle uploads.

Example:
    >>> async with ArLinksClient(Wallet.load("AR-wallet.json")) as client:
    ...     print(await client.get_balance())
    ...     outcome = await client.upload(["photo.jpg", "video.mp4"])
    ...     print(outcome.result.transaction_ids)
"""
import logging
from decimal import Decimal
from pathlib import Path
from typing import Optional, Sequence, Callable, Union

from .core.api import UploadConfig
from .core.api.gateway_client import GatewayClient
from .core.upload import UploadFacade, SessionOutcome, GatewayChunkingStrategy
from .core.upload.coordinator import ProgressCallback
from .core.upload.services.file_service import FileHandle
from .core.wallet import Wallet, BalancePoller, winston_to_ar
from .core.exceptions import WalletError

logger = logging.getLogger('arlinks.client')


class ArLinksClient:
    """
    High-level client tying together gateway, wallet and uploads.

    The wallet is always passed in explicitly; the client never reads a
    stored key on its own.
    """

    def __init__(
        self,
        wallet: Optional[Wallet] = None,
        config: Optional[UploadConfig] = None,
        gateway: Optional[GatewayClient] = None
    ):
        """
        Initialize client.

        Args:
            wallet: Wallet used for signing and balance queries
            config: Pipeline configuration (defaults to environment overrides)
            gateway: Optional pre-built gateway client
        """
        self._config = config or UploadConfig.from_env()
        self._wallet = wallet
        self._gateway = gateway or GatewayClient(
            self._config.gateway,
            retry=self._config.retry,
            chunking_strategy=GatewayChunkingStrategy(
                self._config.bundle.chunk_size,
                self._config.bundle.min_chunk_size
            )
        )
        self._uploader = UploadFacade(
            self._gateway, config=self._config, log_level=self._config.log_level
        )

    async def __aenter__(self) -> 'ArLinksClient':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the gateway connection."""
        await self._gateway.close()

    @property
    def config(self) -> UploadConfig:
        return self._config

    @property
    def gateway(self) -> GatewayClient:
        return self._gateway

    @property
    def wallet(self) -> Optional[Wallet]:
        return self._wallet

    @wallet.setter
    def wallet(self, wallet: Wallet):
        self._wallet = wallet

    @property
    def address(self) -> str:
        return self._require_wallet().address

    def _require_wallet(self) -> Wallet:
        if self._wallet is None:
            raise WalletError("No wallet loaded. Generate or import one first.")
        return self._wallet

    def generate_wallet(self, path: Optional[Union[str, Path]] = None) -> Wallet:
        """Generate a new wallet, optionally saving it as JWK JSON."""
        self._wallet = Wallet.generate()
        if path is not None:
            self._wallet.save(path)
        logger.info(f"Generated wallet {self._wallet.address}")
        return self._wallet

    def load_wallet(self, path: Union[str, Path]) -> Wallet:
        """Load a JWK wallet file."""
        self._wallet = Wallet.load(path)
        logger.info(f"Loaded wallet {self._wallet.address}")
        return self._wallet

    async def get_balance(self) -> Decimal:
        """Wallet balance in AR."""
        winston = await self._gateway.get_balance(self.address)
        return winston_to_ar(winston)

    def watch_balance(
        self,
        callback: Callable[[Decimal], None],
        interval: float = BalancePoller.DEFAULT_INTERVAL
    ) -> BalancePoller:
        """
        Create a balance poller reporting AR amounts.

        The returned poller is not started; use it as an async context
        manager or call start()/stop().
        """
        return BalancePoller(
            self._gateway.get_balance,
            self.address,
            callback=lambda winston: callback(winston_to_ar(winston)),
            interval=interval
        )

    async def upload(
        self,
        paths: Sequence[FileHandle],
        progress_callback: Optional[ProgressCallback] = None,
        output_dir: Optional[Union[str, Path]] = None
    ) -> SessionOutcome:
        """
        Upload files as bundles.

        Args:
            paths: Files to upload, in order
            progress_callback: Called with (bundle_index, uploaded_chunks, total_chunks)
            output_dir: If given, the session result is written there as JSON

        Returns:
            SessionOutcome (complete, or partial with the failure)
        """
        wallet = self._require_wallet()
        outcome = await self._uploader.upload(paths, wallet, progress_callback)
        if output_dir is not None:
            await self._uploader.write_result(outcome, output_dir)
        return outcome

    async def resume(self, outcome: SessionOutcome) -> SessionOutcome:
        """Continue an upload that stopped on a failure."""
        return await self._uploader.resume(outcome)
