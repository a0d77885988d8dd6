"""
Gateway API module.

The gateway client lives in arlinks.core.api.gateway_client; it is not
imported here because it depends on the upload models.
"""
from .errors import GatewayStatus
from .events import EventEmitter
from .config import (
    UploadConfig,
    GatewayConfig,
    BundleConfig,
    ProxyConfig,
    SSLConfig,
    TimeoutConfig,
    RetryConfig
)
from .retry import RetryStrategy, ExponentialBackoffStrategy

__all__ = [
    # Configuration
    'UploadConfig',
    'GatewayConfig',
    'BundleConfig',
    'ProxyConfig',
    'SSLConfig',
    'TimeoutConfig',
    'RetryConfig',
    
    # Retry
    'RetryStrategy',
    'ExponentialBackoffStrategy',
    
    # Errors
    'GatewayStatus',
    
    # Events
    'EventEmitter',
]
