"""
Bundle upload sequencer.

A step-at-a-time state machine that packs, signs and uploads one bundle
per step. Bundles are handled strictly in packing order; a step does not
return until its bundle's upload has fully resolved.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple, Union

from .models import LoadedFile, Transaction, ChunkUploadState, BundleResult
from .protocols import Signer, ChunkedUploadInitiator
from .services import BundlePacker, ChunkedTransactionUploader
from ..api.config import UploadConfig
from ..api.events import EventEmitter
from ..api.retry import RetryStrategy, ExponentialBackoffStrategy
from ..exceptions import (
    ArLinksException,
    ChunkUploadError,
    FileTooLargeError,
    SessionCancelledError,
    SigningError
)

logger = logging.getLogger('arlinks.upload.sequencer')

BUNDLE_FORMAT = 'arlinks-manifest'
BUNDLE_VERSION = '1'


class SequencerState(Enum):
    """Lifecycle of a sequencer."""
    PENDING = 'pending'
    RUNNING = 'running'
    DONE = 'done'
    FAILED = 'failed'


@dataclass(frozen=True)
class BundleStep:
    """A bundle that was uploaded completely."""
    result: BundleResult
    upload_state: ChunkUploadState

    @property
    def bundle_index(self) -> int:
        return self.result.bundle_index

    @property
    def transaction_id(self) -> str:
        return self.result.transaction_id


@dataclass(frozen=True)
class SequencerDone:
    """Every bundle has been uploaded."""
    bundle_count: int


@dataclass(frozen=True)
class SequencerFailure:
    """The sequencer halted on a failure."""
    error: ArLinksException
    bundle_index: Optional[int] = None

    @property
    def resumable(self) -> bool:
        return not isinstance(self.error, FileTooLargeError)


Step = Union[BundleStep, SequencerDone, SequencerFailure]


class BundleUploadSequencer:
    """
    Produces one bundle upload per call to next_step().

    The first step plans every bundle boundary, so an oversized file fails
    the session before any network call. Each following step serializes,
    signs and uploads a single bundle; only that bundle's payload is held
    in memory. After a failure the sequencer stays halted and keeps
    reporting the same failure until resume() is called.

    Events emitted on the emitter:
        bundle_started(bundle_index, transaction_id, bundle)
        progress(bundle_index, uploaded_chunks, total_chunks)
        bundle_complete(result)

    Example:
        >>> sequencer = BundleUploadSequencer(files, wallet, signer, gateway)
        >>> async for step in sequencer:
        ...     print(step)
    """

    def __init__(
        self,
        files: Sequence[LoadedFile],
        credential: Any,
        signer: Signer,
        initiator: ChunkedUploadInitiator,
        config: Optional[UploadConfig] = None,
        packer: Optional[BundlePacker] = None,
        retry_strategy: Optional[RetryStrategy] = None,
        emitter: Optional[EventEmitter] = None,
        start_index: int = 0
    ):
        """
        Initialize sequencer.

        Args:
            files: Loaded files in upload order
            credential: Signing credential, only read
            signer: Signs serialized bundles
            initiator: Creates chunked upload handles
            config: Pipeline configuration
            packer: Bundle packer (defaults to the configured bundle size)
            retry_strategy: Retry policy for failed chunks
            emitter: Receives progress events
            start_index: First bundle to upload (earlier ones were uploaded before)
        """
        if start_index < 0:
            raise ValueError("start_index must not be negative")
        self._files = tuple(files)
        self._credential = credential
        self._signer = signer
        self._initiator = initiator
        self._config = config or UploadConfig.default()
        self._packer = packer or BundlePacker(self._config.bundle.max_bundle_size)
        self._retry = retry_strategy or ExponentialBackoffStrategy(self._config.retry)
        self._emitter = emitter or EventEmitter()
        self._start_index = start_index

        self._state = SequencerState.PENDING
        self._groups: Optional[List[List[int]]] = None
        self._current = start_index
        self._failure: Optional[SequencerFailure] = None
        self._failure_reported = False

        # Transaction of a failed upload, kept so resume() can continue it
        self._pending: Optional[Tuple[int, Transaction, int]] = None

    @property
    def state(self) -> SequencerState:
        return self._state

    @property
    def emitter(self) -> EventEmitter:
        return self._emitter

    @property
    def current_index(self) -> int:
        """Index of the next bundle to upload."""
        return self._current

    @property
    def bundle_count(self) -> Optional[int]:
        """Number of bundles (None until the first step has planned them)."""
        return None if self._groups is None else len(self._groups)

    @property
    def failure(self) -> Optional[SequencerFailure]:
        return self._failure

    def bundle_tags(self, bundle_index: int) -> List[Tuple[str, str]]:
        """Tags attached to a bundle transaction."""
        tags = [
            ('Content-Type', 'application/octet-stream'),
            ('Bundle-Format', BUNDLE_FORMAT),
            ('Bundle-Version', BUNDLE_VERSION),
            ('Bundle-Index', str(bundle_index)),
        ]
        tags.extend(self._config.bundle.tags.items())
        return tags

    async def next_step(self) -> Step:
        """
        Advance by one bundle.

        Returns:
            BundleStep after a bundle is uploaded, SequencerDone when every
            bundle has been uploaded, SequencerFailure if halted
        """
        if self._state == SequencerState.FAILED:
            return self._failure
        if self._state == SequencerState.DONE:
            return SequencerDone(len(self._groups))

        if self._state == SequencerState.PENDING:
            failure = self._plan()
            if failure is not None:
                return failure

        if self._current >= len(self._groups):
            self._state = SequencerState.DONE
            logger.info(f"All {len(self._groups)} bundles uploaded")
            return SequencerDone(len(self._groups))

        return await self._upload_bundle(self._current)

    def resume(self) -> bool:
        """
        Re-arm a halted sequencer.

        A failed upload continues with the same signed transaction from its
        last acknowledged chunk. Packing failures are final.

        Returns:
            True if the sequencer can continue
        """
        if self._state != SequencerState.FAILED or not self._failure.resumable:
            return False
        logger.info(f"Resuming at bundle {self._current}")
        self._state = SequencerState.RUNNING if self._groups is not None else SequencerState.PENDING
        self._failure = None
        self._failure_reported = False
        return True

    def __aiter__(self) -> 'BundleUploadSequencer':
        return self

    async def __anext__(self) -> Union[BundleStep, SequencerFailure]:
        if self._state == SequencerState.FAILED and self._failure_reported:
            raise StopAsyncIteration
        step = await self.next_step()
        if isinstance(step, SequencerDone):
            raise StopAsyncIteration
        if isinstance(step, SequencerFailure):
            self._failure_reported = True
        return step

    def _plan(self) -> Optional[SequencerFailure]:
        """Plan bundle boundaries; halts on an oversized file."""
        try:
            self._groups = self._packer.plan(self._files)
        except FileTooLargeError as e:
            return self._fail(e, None)

        if self._start_index > len(self._groups):
            raise ValueError(
                f"start_index {self._start_index} is past the last bundle ({len(self._groups)})"
            )
        logger.info(
            f"Planned {len(self._groups)} bundles for {len(self._files)} files"
            + (f", starting at bundle {self._start_index}" if self._start_index else "")
        )
        self._state = SequencerState.RUNNING
        return None

    def _fail(self, error: ArLinksException, bundle_index: Optional[int]) -> SequencerFailure:
        self._state = SequencerState.FAILED
        self._failure = SequencerFailure(error=error, bundle_index=bundle_index)
        return self._failure

    def _sign(self, bundle_index: int, payload: bytes) -> Transaction:
        try:
            return self._signer.sign(payload, self._credential, self.bundle_tags(bundle_index))
        except SigningError as e:
            e.bundle_index = bundle_index
            raise
        except (ValueError, TypeError) as e:
            raise SigningError(f"Could not sign bundle {bundle_index}: {e}", bundle_index) from e

    async def _upload_bundle(self, bundle_index: int) -> Step:
        members = [self._files[i] for i in self._groups[bundle_index]]
        bundle = self._packer.build(bundle_index, members)

        if self._pending is not None and self._pending[0] == bundle_index:
            _, transaction, uploaded_chunks = self._pending
            logger.info(
                f"Continuing bundle {bundle_index} ({transaction.id}) at chunk {uploaded_chunks}"
            )
        else:
            payload = self._packer.serializer.serialize(bundle)
            try:
                transaction = self._sign(bundle_index, payload)
            except SigningError as e:
                logger.error(f"Bundle {bundle_index} could not be signed: {e}")
                return self._fail(e, bundle_index)
            del payload
            uploaded_chunks = 0

        logger.info(
            f"Bundle {bundle_index + 1}/{len(self._groups)}: {len(members)} files, "
            f"{bundle.serialized_size / (1024 * 1024):.2f} MB, transaction {transaction.id}"
        )
        self._emitter.emit('bundle_started', bundle_index, transaction.id, bundle)

        uploader = ChunkedTransactionUploader(
            self._initiator,
            transaction,
            retry_strategy=self._retry,
            uploaded_chunks=uploaded_chunks,
            progress_callback=lambda s: self._emitter.emit(
                'progress', bundle_index, s.uploaded_chunks, s.total_chunks
            )
        )

        try:
            initial = await uploader.start()
            self._emitter.emit('progress', bundle_index, initial.uploaded_chunks, initial.total_chunks)
            final_state = await uploader.run()
        except ChunkUploadError as e:
            e.bundle_index = bundle_index
            resume_at = e.state.uploaded_chunks if e.state is not None else uploaded_chunks
            self._pending = (bundle_index, transaction, resume_at)
            return self._fail(e, bundle_index)
        except asyncio.CancelledError:
            resume_at = uploader.state.uploaded_chunks if uploader.state else uploaded_chunks
            self._pending = (bundle_index, transaction, resume_at)
            self._fail(
                SessionCancelledError(f"Upload cancelled during bundle {bundle_index}"),
                bundle_index
            )
            raise
        except Exception as e:
            logger.exception(f"Unexpected error while uploading bundle {bundle_index}")
            state = uploader.state
            resume_at = state.uploaded_chunks if state is not None else uploaded_chunks
            self._pending = (bundle_index, transaction, resume_at)
            error = ChunkUploadError(
                transaction.id,
                resume_at,
                state=state.snapshot() if state is not None else None,
                cause=e,
                bundle_index=bundle_index
            )
            return self._fail(error, bundle_index)

        self._pending = None
        result = BundleResult(
            bundle_index=bundle_index,
            transaction_id=transaction.id,
            manifest=bundle.manifest
        )
        self._current = bundle_index + 1
        self._emitter.emit('bundle_complete', result)
        return BundleStep(result=result, upload_state=final_state)
