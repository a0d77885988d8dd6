"""
Upload configuration module.

Provides configuration for the gateway client and the bundle upload pipeline.
Open for extension through custom configurations.
"""
import os
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Tuple
import ssl


MiB = 1024 * 1024
KiB = 1024


@dataclass
class ProxyConfig:
    """
    Proxy configuration.

    Supports HTTP, HTTPS, and SOCKS proxies.
    """
    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    def to_aiohttp_proxy(self) -> Optional[str]:
        """Convert to aiohttp proxy format."""
        if not self.url:
            return None

        if self.username and self.password:
            if '://' in self.url:
                protocol, rest = self.url.split('://', 1)
                return f"{protocol}://{self.username}:{self.password}@{rest}"

        return self.url


@dataclass
class SSLConfig:
    """
    SSL/TLS configuration.

    Allows customization of SSL behavior for security requirements.
    """
    verify: bool = True
    ca_file: Optional[str] = None
    check_hostname: bool = True

    def create_ssl_context(self):
        """Create SSL context from configuration (False disables verification)."""
        if not self.verify:
            return False

        context = ssl.create_default_context()

        if self.ca_file:
            context.load_verify_locations(self.ca_file)

        context.check_hostname = self.check_hostname

        return context


@dataclass
class TimeoutConfig:
    """
    Timeout configuration.

    Granular control over different timeout types.
    """
    total: float = 300.0
    connect: float = 30.0
    sock_read: float = 60.0

    def to_aiohttp_timeout(self):
        """Convert to aiohttp ClientTimeout."""
        import aiohttp
        return aiohttp.ClientTimeout(
            total=self.total,
            connect=self.connect,
            sock_read=self.sock_read
        )


@dataclass
class RetryConfig:
    """
    Retry configuration.

    Controls how often a failed chunk is re-sent before the failure is
    escalated. Every chunk failure is retried at least once.
    """
    max_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    exponential_base: float = 2.0
    retry_on_status: Tuple[int, ...] = (408, 429, 500, 502, 503, 504)

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must not be negative")

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt number (0-based)."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        return min(delay, self.max_delay)


@dataclass
class BundleConfig:
    """
    Bundle packing and chunking configuration.

    Attributes:
        max_bundle_size: Maximum serialized size of one bundle transaction
        chunk_size: Size of each uploaded chunk
        min_chunk_size: Smallest allowed trailing chunk
        tags: Extra tags attached to every bundle transaction
        max_concurrent_reads: Files read from disk at the same time
    """
    max_bundle_size: int = 250 * MiB
    chunk_size: int = 256 * KiB
    min_chunk_size: int = 32 * KiB
    tags: Dict[str, str] = field(default_factory=dict)
    max_concurrent_reads: int = 32

    def __post_init__(self):
        if self.max_bundle_size <= 0:
            raise ValueError("max_bundle_size must be positive")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 < self.min_chunk_size <= self.chunk_size:
            raise ValueError("min_chunk_size must be positive and not exceed chunk_size")
        if self.max_concurrent_reads < 1:
            raise ValueError("max_concurrent_reads must be at least 1")


@dataclass
class GatewayConfig:
    """
    Gateway connection settings.

    Mirrors the host/port/protocol triple used to initialise an Arweave client.
    """
    host: str = 'arweave.net'
    port: int = 443
    protocol: str = 'https'
    user_agent: str = 'arlinks/1.0.0'
    proxy: Optional[ProxyConfig] = None
    ssl: SSLConfig = field(default_factory=SSLConfig)
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    extra_headers: Dict[str, str] = field(default_factory=dict)
    limit_per_host: int = 10
    limit: int = 100

    @property
    def url(self) -> str:
        """Base URL of the gateway, without trailing slash."""
        default_port = {'https': 443, 'http': 80}.get(self.protocol)
        if self.port == default_port:
            return f"{self.protocol}://{self.host}"
        return f"{self.protocol}://{self.host}:{self.port}"

    @classmethod
    def from_url(cls, url: str, **kwargs) -> 'GatewayConfig':
        """Create configuration from a base URL such as 'http://localhost:1984'."""
        protocol, _, rest = url.partition('://')
        if not rest:
            raise ValueError(f"Invalid gateway URL: {url}")
        host, _, port = rest.rstrip('/').partition(':')
        if port:
            port_number = int(port)
        else:
            port_number = 443 if protocol == 'https' else 80
        return cls(host=host, port=port_number, protocol=protocol, **kwargs)

    def get_connector_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for aiohttp TCPConnector."""
        return {
            'limit': self.limit,
            'limit_per_host': self.limit_per_host,
            'ssl': self.ssl.create_ssl_context(),
        }

    def get_session_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for aiohttp ClientSession."""
        headers = {
            'User-Agent': self.user_agent,
            **self.extra_headers
        }

        return {
            'headers': headers,
            'timeout': self.timeout.to_aiohttp_timeout(),
        }


@dataclass
class UploadConfig:
    """
    Complete pipeline configuration.

    Centralizes all configuration options for an upload session.
    """
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    bundle: BundleConfig = field(default_factory=BundleConfig)

    # Logging
    log_level: int = 20  # logging.INFO

    @classmethod
    def default(cls) -> 'UploadConfig':
        """Create default configuration."""
        return cls()

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'UploadConfig':
        """
        Create configuration from environment variables.

        Recognised variables:
            ARLINKS_GATEWAY: gateway base URL
            ARLINKS_MAX_BUNDLE_SIZE: maximum bundle size in bytes
            ARLINKS_MAX_RETRIES: chunk retry budget
        """
        env = os.environ if environ is None else environ
        config = cls()

        if env.get('ARLINKS_GATEWAY'):
            config.gateway = GatewayConfig.from_url(env['ARLINKS_GATEWAY'])
        if env.get('ARLINKS_MAX_BUNDLE_SIZE'):
            config.bundle = BundleConfig(
                max_bundle_size=int(env['ARLINKS_MAX_BUNDLE_SIZE'])
            )
        if env.get('ARLINKS_MAX_RETRIES'):
            config.retry = RetryConfig(max_retries=int(env['ARLINKS_MAX_RETRIES']))

        return config
