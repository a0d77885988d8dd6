"""
Upload session driver.

Orchestrates an upload session using injected dependencies.
Follows Dependency Inversion Principle - depends on abstractions, not concretions.
"""
import asyncio
import logging
import time
from typing import Any, Callable, Optional, Sequence

from .models import LoadedFile, SessionResult, SessionOutcome
from .protocols import Signer, ChunkedUploadInitiator
from .sequencer import BundleUploadSequencer, BundleStep, SequencerFailure
from .services import BundlePacker
from ..api.config import UploadConfig
from ..api.events import EventEmitter
from ..api.retry import RetryStrategy, ExponentialBackoffStrategy
from ..exceptions import SessionCancelledError

logger = logging.getLogger('arlinks.upload.coordinator')

ProgressCallback = Callable[[int, int, int], None]


class UploadSessionDriver:
    """
    Drains a bundle upload sequencer into a SessionResult.

    Uses dependency injection for all components, making it:
    - Testable (fake signer and network)
    - Extensible (swap packer, retry strategy)

    The driver stops at the first escalated failure and returns the bundles
    uploaded so far together with that failure, so no uploaded bundle is
    ever lost from the result.
    """

    def __init__(
        self,
        signer: Signer,
        initiator: ChunkedUploadInitiator,
        config: Optional[UploadConfig] = None,
        packer: Optional[BundlePacker] = None,
        retry_strategy: Optional[RetryStrategy] = None,
        progress_callback: Optional[ProgressCallback] = None
    ):
        """
        Initialize session driver.

        Args:
            signer: Signs serialized bundles
            initiator: Creates chunked upload handles (the gateway)
            config: Pipeline configuration
            packer: Bundle packer
            retry_strategy: Retry policy for failed chunks
            progress_callback: Called with (bundle_index, uploaded_chunks, total_chunks)
        """
        self._signer = signer
        self._initiator = initiator
        self._config = config or UploadConfig.default()
        self._packer = packer or BundlePacker(self._config.bundle.max_bundle_size)
        self._retry = retry_strategy or ExponentialBackoffStrategy(self._config.retry)
        self._emitter = EventEmitter()
        if progress_callback:
            self._emitter.on('progress', progress_callback)

    @property
    def signer(self) -> Signer:
        return self._signer

    @property
    def events(self) -> EventEmitter:
        """Progress stream: progress, bundle_started and bundle_complete events."""
        return self._emitter

    def on(self, event: str, callback: Callable) -> 'UploadSessionDriver':
        """Register an event handler."""
        self._emitter.on(event, callback)
        return self

    def create_sequencer(
        self,
        files: Sequence[LoadedFile],
        credential: Any,
        start_index: int = 0
    ) -> BundleUploadSequencer:
        """Build the sequencer for one session."""
        return BundleUploadSequencer(
            files,
            credential,
            signer=self._signer,
            initiator=self._initiator,
            config=self._config,
            packer=self._packer,
            retry_strategy=self._retry,
            emitter=self._emitter,
            start_index=start_index
        )

    async def run_session(
        self,
        files: Sequence[LoadedFile],
        credential: Any,
        start_index: int = 0
    ) -> SessionOutcome:
        """
        Upload every file and collect the bundle results.

        Args:
            files: Loaded files in upload order
            credential: Signing credential
            start_index: First bundle to upload

        Returns:
            SessionOutcome; complete if failure is None, partial otherwise

        Note:
            Cancelling the task running this coroutine does not propagate a
            CancelledError. The session stops and returns normally with a
            SessionCancelledError outcome, so the caller's task does not
            report cancelled() and an enclosing asyncio.timeout() does not
            raise TimeoutError. Check outcome.failure instead.
        """
        total = sum(f.size for f in files)
        logger.info(f"Starting session: {len(files)} files ({total / (1024 * 1024):.2f} MB)")
        sequencer = self.create_sequencer(files, credential, start_index)
        return await self.drain(sequencer, SessionResult())

    async def resume(self, outcome: SessionOutcome) -> SessionOutcome:
        """
        Continue a session that stopped on a failure.

        Args:
            outcome: Partial outcome returned by run_session()

        Returns:
            New outcome extending the same result

        Raises:
            ValueError: If the outcome cannot be resumed
        """
        if outcome.is_complete:
            return outcome
        sequencer = outcome.sequencer
        if sequencer is None or not sequencer.resume():
            raise ValueError(f"Session cannot be resumed after {outcome.failure_kind}")
        return await self.drain(sequencer, outcome.result)

    async def drain(
        self,
        sequencer: BundleUploadSequencer,
        result: SessionResult
    ) -> SessionOutcome:
        """
        Pull steps from a sequencer until it is exhausted or fails.

        Cancellation is absorbed into the outcome, as in run_session().

        Args:
            sequencer: Sequencer to drain
            result: Result to append to

        Returns:
            Final or partial outcome
        """
        session_start = time.time()

        while True:
            try:
                step = await sequencer.next_step()
            except asyncio.CancelledError:
                logger.warning(f"Session cancelled after {len(result)} bundles")
                failure = sequencer.failure.error if sequencer.failure else SessionCancelledError(
                    "Upload cancelled"
                )
                return SessionOutcome(result=result, failure=failure, sequencer=sequencer)

            if isinstance(step, BundleStep):
                result.add(step.result)
                logger.info(f"Bundle {step.bundle_index} uploaded: {step.transaction_id}")
                continue

            if isinstance(step, SequencerFailure):
                logger.error(
                    f"Session stopped at bundle {step.bundle_index} after "
                    f"{len(result)} bundles: {step.error}"
                )
                return SessionOutcome(result=result, failure=step.error, sequencer=sequencer)

            break

        elapsed = time.time() - session_start
        logger.info(f"Session complete: {len(result)} bundles in {elapsed:.2f}s")
        return SessionOutcome(result=result.finalize(), sequencer=sequencer)
