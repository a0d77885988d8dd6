"""
arlinks - Async bundle uploads to Arweave-style storage gateways.

Usage:
    >>> from arlinks import ArLinksClient, Wallet
    >>>
    >>> async with ArLinksClient(Wallet.load("AR-wallet.json")) as client:
    ...     outcome = await client.upload(["a.png", "b.mp4"], output_dir=".")
    ...     for bundle in outcome.result:
    ...         print(bundle.transaction_id)
"""
import logging
from .client import ArLinksClient

# Configuration
from .core.api import (
    UploadConfig,
    GatewayConfig,
    BundleConfig,
    ProxyConfig,
    SSLConfig,
    TimeoutConfig,
    RetryConfig
)
from .core.api.gateway_client import GatewayClient

# Pipeline
from .core.upload import (
    UploadFacade,
    UploadSessionDriver,
    BundleUploadSequencer,
    ChunkedTransactionUploader,
    BundlePacker,
    FileBufferLoader,
    LoadedFile,
    SessionResult,
    SessionOutcome
)
from .core.wallet import Wallet, BalancePoller, winston_to_ar
from .core.exceptions import (
    ArLinksException,
    ReadError,
    FileTooLargeError,
    SigningError,
    ChunkUploadError,
    SessionCancelledError,
    WalletError,
    GatewayError
)

__version__ = '1.0.0'


def setup_logging(level=logging.INFO):
    """
    Configure logging for arlinks modules.

    This ensures that all arlinks loggers are properly configured
    to show log messages at the specified level.

    Args:
        level: Logging level (default: logging.INFO)
    """
    loggers = [
        'arlinks',
        'arlinks.client',
        'arlinks.gateway',
        'arlinks.upload',
        'arlinks.upload.file',
        'arlinks.upload.bundle',
        'arlinks.upload.chunk',
        'arlinks.upload.transaction',
        'arlinks.upload.sequencer',
        'arlinks.upload.coordinator',
        'arlinks.wallet',
    ]

    for logger_name in loggers:
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)
        logger.propagate = True


__all__ = [
    'ArLinksClient',
    'GatewayClient',
    'UploadFacade',
    'UploadSessionDriver',
    'BundleUploadSequencer',
    'ChunkedTransactionUploader',
    'BundlePacker',
    'FileBufferLoader',
    'LoadedFile',
    'SessionResult',
    'SessionOutcome',
    'Wallet',
    'BalancePoller',
    'winston_to_ar',
    'UploadConfig',
    'GatewayConfig',
    'BundleConfig',
    'ProxyConfig',
    'SSLConfig',
    'TimeoutConfig',
    'RetryConfig',
    'ArLinksException',
    'ReadError',
    'FileTooLargeError',
    'SigningError',
    'ChunkUploadError',
    'SessionCancelledError',
    'WalletError',
    'GatewayError',
    'setup_logging',
]
