"""Upload models."""
from .upload_models import (
    LoadedFile,
    ManifestEntry,
    Manifest,
    Bundle,
    Transaction,
    ChunkUploadState,
    BundleResult,
    SessionResult,
    SessionOutcome,
    manifest_to_dict
)

__all__ = [
    'LoadedFile',
    'ManifestEntry',
    'Manifest',
    'Bundle',
    'Transaction',
    'ChunkUploadState',
    'BundleResult',
    'SessionResult',
    'SessionOutcome',
    'manifest_to_dict'
]
