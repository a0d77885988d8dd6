"""Upload services module."""
from .file_service import FileValidator, FileBufferLoader, guess_mime_type
from .bundle_service import BundleSerializer, BundlePacker
from .chunk_service import GatewayChunkUploader
from .transaction_service import ChunkedTransactionUploader

__all__ = [
    'FileValidator',
    'FileBufferLoader',
    'guess_mime_type',
    'BundleSerializer',
    'BundlePacker',
    'GatewayChunkUploader',
    'ChunkedTransactionUploader',
]
