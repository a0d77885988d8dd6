"""Crypto helpers shared by wallet and signing code."""
from .encoding import Base64Encoder, int_to_bytes, bytes_to_int, sha256

__all__ = [
    'Base64Encoder',
    'int_to_bytes',
    'bytes_to_int',
    'sha256',
]
