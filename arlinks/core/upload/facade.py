"""
Upload facade.

Provides a simplified interface for bundle uploads.
Follows Facade Pattern - hides complexity of the upload subsystem.
"""
import json
import logging
import time
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import aiofiles

from .coordinator import UploadSessionDriver, ProgressCallback
from .models import LoadedFile, SessionOutcome, SessionResult
from .protocols import Signer, ChunkedUploadInitiator
from .services import FileBufferLoader
from .services.file_service import FileHandle
from .strategies import BaseChunkingStrategy, GatewayChunkingStrategy, RsaPssSigner
from ..api.config import UploadConfig
from ..exceptions import ReadError


class UploadFacade:
    """
    Simplified interface for uploading files as bundles.

    This is the main entry point for uploads.
    Hides the complexity of loading, packing, signing and chunking.

    Example:
        >>> async with GatewayClient() as gateway:
        ...     uploader = UploadFacade(gateway)
        ...     outcome = await uploader.upload(["a.png", "b.mp4"], wallet)
        ...     await uploader.write_result(outcome)
    """

    RESULT_FILE_PREFIX = 'AR-upload'

    def __init__(
        self,
        gateway: ChunkedUploadInitiator,
        config: Optional[UploadConfig] = None,
        signer: Optional[Signer] = None,
        loader: Optional[FileBufferLoader] = None,
        log_level: int = logging.INFO
    ):
        """
        Initialize upload facade.

        Args:
            gateway: Gateway client (or any chunked upload initiator)
            config: Pipeline configuration
            signer: Optional custom signer
            loader: Optional custom file loader
            log_level: Logging level
        """
        self._config = config or UploadConfig.default()
        self._logger = logging.getLogger('arlinks.upload')
        self._logger.setLevel(log_level)

        # The data root must commit to the chunks the gateway actually sends
        chunking = getattr(gateway, 'chunking', None)
        if not isinstance(chunking, BaseChunkingStrategy):
            chunking = GatewayChunkingStrategy(
                self._config.bundle.chunk_size, self._config.bundle.min_chunk_size
            )
        self._loader = loader or FileBufferLoader(
            max_concurrent=self._config.bundle.max_concurrent_reads
        )
        self._driver = UploadSessionDriver(
            signer=signer or RsaPssSigner(chunking),
            initiator=gateway,
            config=self._config
        )

    @property
    def driver(self) -> UploadSessionDriver:
        return self._driver

    async def upload(
        self,
        paths: Sequence[FileHandle],
        credential: Any,
        progress_callback: Optional[ProgressCallback] = None
    ) -> SessionOutcome:
        """
        Load files from disk and upload them.

        Args:
            paths: Files to upload, in order
            credential: Wallet used to sign the bundles
            progress_callback: Called with (bundle_index, uploaded_chunks, total_chunks)

        Returns:
            SessionOutcome; a read failure is reported with an empty result
        """
        try:
            files = await self._loader.load_files(paths)
        except ReadError as e:
            self._logger.error(f"Upload aborted before any network call: {e}")
            return SessionOutcome(result=SessionResult(), failure=e)

        return await self.upload_files(files, credential, progress_callback)

    async def upload_files(
        self,
        files: Sequence[LoadedFile],
        credential: Any,
        progress_callback: Optional[ProgressCallback] = None
    ) -> SessionOutcome:
        """
        Upload already loaded files.

        Args:
            files: Loaded files, in order
            credential: Wallet used to sign the bundles
            progress_callback: Called with (bundle_index, uploaded_chunks, total_chunks)
        """
        if progress_callback:
            self._driver.on('progress', progress_callback)
        try:
            return await self._driver.run_session(files, credential)
        finally:
            if progress_callback:
                self._driver.events.off('progress', progress_callback)

    async def resume(self, outcome: SessionOutcome) -> SessionOutcome:
        """Continue a session that stopped on a failure."""
        return await self._driver.resume(outcome)

    async def write_result(
        self,
        outcome: SessionOutcome,
        directory: Union[str, Path] = '.'
    ) -> Path:
        """
        Save the session result as AR-upload-<timestamp>.json.

        Args:
            outcome: Session outcome
            directory: Target directory

        Returns:
            Path of the written file
        """
        path = Path(directory) / f"{self.RESULT_FILE_PREFIX}-{int(time.time() * 1000)}.json"
        document = outcome.result.to_dict() if outcome.is_complete else outcome.to_dict()

        async with aiofiles.open(path, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(document, indent=2))

        self._logger.info(f"Session result written to {path}")
        return path
