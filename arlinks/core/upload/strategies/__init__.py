"""Upload strategies module."""
from .chunking import BaseChunkingStrategy, GatewayChunkingStrategy, FixedSizeChunkingStrategy
from .signing import RsaPssSigner

__all__ = [
    'BaseChunkingStrategy',
    'GatewayChunkingStrategy',
    'FixedSizeChunkingStrategy',
    'RsaPssSigner',
]
