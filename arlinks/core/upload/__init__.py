"""
Upload module for bundle uploads.

Files are loaded into memory, packed into bundles that respect the maximum
transaction size, signed, and uploaded chunk by chunk, one bundle at a time.
"""
from .models import (
    LoadedFile,
    ManifestEntry,
    Bundle,
    Transaction,
    ChunkUploadState,
    BundleResult,
    SessionResult,
    SessionOutcome
)
from .protocols import (
    ChunkingStrategy,
    Signer,
    ChunkedUploadHandle,
    ChunkedUploadInitiator
)
from .strategies import GatewayChunkingStrategy, FixedSizeChunkingStrategy, RsaPssSigner
from .services import (
    FileBufferLoader,
    BundlePacker,
    BundleSerializer,
    GatewayChunkUploader,
    ChunkedTransactionUploader
)
from .sequencer import (
    BundleUploadSequencer,
    SequencerState,
    BundleStep,
    SequencerDone,
    SequencerFailure
)
from .coordinator import UploadSessionDriver
from .facade import UploadFacade

__all__ = [
    # Main classes
    'UploadFacade',
    'UploadSessionDriver',
    'BundleUploadSequencer',
    'ChunkedTransactionUploader',
    'BundlePacker',
    'BundleSerializer',
    'FileBufferLoader',
    'GatewayChunkUploader',

    # Sequencer steps
    'SequencerState',
    'BundleStep',
    'SequencerDone',
    'SequencerFailure',

    # Models
    'LoadedFile',
    'ManifestEntry',
    'Bundle',
    'Transaction',
    'ChunkUploadState',
    'BundleResult',
    'SessionResult',
    'SessionOutcome',

    # Strategies
    'GatewayChunkingStrategy',
    'FixedSizeChunkingStrategy',
    'RsaPssSigner',

    # Protocols
    'ChunkingStrategy',
    'Signer',
    'ChunkedUploadHandle',
    'ChunkedUploadInitiator',
]
