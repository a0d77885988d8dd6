"""
Chunking strategies for transaction payloads.

Implements Strategy Pattern for different chunking algorithms.
Open for extension (new strategies), closed for modification.
"""
from abc import ABC, abstractmethod
from typing import List, Tuple

from ...api.config import KiB


class BaseChunkingStrategy(ABC):
    """Abstract base class for chunking strategies."""
    
    @abstractmethod
    def calculate_chunks(self, data_size: int) -> List[Tuple[int, int]]:
        """Calculate chunk boundaries."""
        pass
    
    def count_chunks(self, data_size: int) -> int:
        """Number of chunks a payload of data_size bytes is split into."""
        return len(self.calculate_chunks(data_size))


class GatewayChunkingStrategy(BaseChunkingStrategy):
    """
    Gateway chunking strategy.
    
    Payloads are cut into 256 KiB chunks. When the remainder after a full
    chunk would be smaller than the minimum chunk size, the last two chunks
    are rebalanced by splitting what is left in half:
    
        600 KiB -> 256 / 256 / 88
        520 KiB -> 256 / 132 / 132   (instead of 256 / 256 / 8)
    """
    
    MAX_CHUNK_SIZE = 256 * KiB
    MIN_CHUNK_SIZE = 32 * KiB
    
    def __init__(
        self,
        chunk_size: int = MAX_CHUNK_SIZE,
        min_chunk_size: int = MIN_CHUNK_SIZE
    ):
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        if not 0 < min_chunk_size <= chunk_size:
            raise ValueError("Minimum chunk size must be positive and not exceed chunk size")
        self.chunk_size = chunk_size
        self.min_chunk_size = min_chunk_size
    
    def calculate_chunks(self, data_size: int) -> List[Tuple[int, int]]:
        """
        Calculate chunk boundaries for a payload.
        
        Args:
            data_size: Total payload size in bytes
            
        Returns:
            List of (start, end) tuples
        """
        if data_size == 0:
            return []
        
        chunks = []
        cursor = 0
        
        while data_size - cursor > self.chunk_size:
            rest = data_size - cursor
            size = self.chunk_size
            if rest - self.chunk_size < self.min_chunk_size:
                size = (rest + 1) // 2
            chunks.append((cursor, cursor + size))
            cursor += size
        
        chunks.append((cursor, data_size))
        return chunks


class FixedSizeChunkingStrategy(BaseChunkingStrategy):
    """
    Simple fixed-size chunking strategy.
    
    Useful for testing or for gateways without a minimum chunk size.
    """
    
    DEFAULT_CHUNK_SIZE = 256 * KiB
    
    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize with chunk size.
        
        Args:
            chunk_size: Size of each chunk in bytes
        """
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        self.chunk_size = chunk_size
    
    def calculate_chunks(self, data_size: int) -> List[Tuple[int, int]]:
        """
        Calculate fixed-size chunk boundaries.
        
        Args:
            data_size: Total payload size in bytes
            
        Returns:
            List of (start, end) tuples
        """
        if data_size == 0:
            return []
        
        chunks = []
        position = 0
        
        while position < data_size:
            end = min(position + self.chunk_size, data_size)
            chunks.append((position, end))
            position = end
        
        return chunks
