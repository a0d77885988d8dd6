"""Encoding utilities."""
import base64
import hashlib


class Base64Encoder:
    """Base64 URL-safe encoder/decoder."""
    
    @staticmethod
    def encode(data: bytes) -> str:
        """Encodes bytes to Base64 URL-safe without padding."""
        return base64.urlsafe_b64encode(data).decode().rstrip('=')

    @staticmethod
    def decode(data: str) -> bytes:
        """Decodes Base64 URL-safe (with or without padding)."""
        padding = len(data) % 4
        if padding:
            data += '=' * (4 - padding)
        return base64.urlsafe_b64decode(data)


def int_to_bytes(value: int) -> bytes:
    """Big-endian bytes of a non-negative integer, without leading zeros."""
    length = max(1, (value.bit_length() + 7) // 8)
    return value.to_bytes(length, 'big')


def bytes_to_int(data: bytes) -> int:
    """Inverse of int_to_bytes."""
    return int.from_bytes(data, 'big')


def sha256(data: bytes) -> bytes:
    """SHA-256 digest of data."""
    return hashlib.sha256(data).digest()
