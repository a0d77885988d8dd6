"""Tests for chunking strategies."""
import pytest
from arlinks.core.api.config import KiB
from arlinks.core.upload.strategies.chunking import (
    GatewayChunkingStrategy,
    FixedSizeChunkingStrategy
)


def sizes_kib(chunks):
    return [(end - start) / KiB for start, end in chunks]


class TestGatewayChunkingStrategy:
    """Test suite for GatewayChunkingStrategy."""

    @pytest.fixture
    def strategy(self):
        """Create strategy instance."""
        return GatewayChunkingStrategy()

    def test_empty_payload(self, strategy):
        """Test chunking empty payload."""
        assert strategy.calculate_chunks(0) == []

    def test_small_payload(self, strategy):
        """Test payload smaller than one chunk."""
        assert strategy.calculate_chunks(100) == [(0, 100)]

    def test_exactly_one_chunk(self, strategy):
        """Test payload of exactly 256 KiB."""
        assert strategy.calculate_chunks(256 * KiB) == [(0, 256 * KiB)]

    def test_two_full_chunks(self, strategy):
        """Test payload of exactly two chunks."""
        assert sizes_kib(strategy.calculate_chunks(512 * KiB)) == [256, 256]

    def test_large_remainder_kept(self, strategy):
        """Test remainder above the minimum stays a separate chunk."""
        assert sizes_kib(strategy.calculate_chunks(600 * KiB)) == [256, 256, 88]

    def test_small_remainder_rebalanced(self, strategy):
        """Test last two chunks are split evenly when the tail is too small."""
        assert sizes_kib(strategy.calculate_chunks(520 * KiB)) == [256, 132, 132]

    def test_chunks_cover_payload(self, strategy):
        """Test chunks are contiguous and cover the payload."""
        size = 10 * 1024 * KiB + 12345
        chunks = strategy.calculate_chunks(size)

        assert chunks[0][0] == 0
        assert chunks[-1][1] == size
        for i in range(len(chunks) - 1):
            assert chunks[i][1] == chunks[i + 1][0]

    def test_no_chunk_exceeds_limits(self, strategy):
        """Test every chunk is at most 256 KiB and at least 32 KiB."""
        for size in (300 * KiB, 257 * KiB, 1000 * KiB + 1, 7 * 256 * KiB + 5):
            for start, end in strategy.calculate_chunks(size):
                assert 32 * KiB <= end - start <= 256 * KiB

    def test_count_chunks(self, strategy):
        """Test count_chunks matches calculate_chunks."""
        assert strategy.count_chunks(600 * KiB) == 3
        assert strategy.count_chunks(0) == 0

    def test_invalid_sizes(self):
        """Test invalid chunk sizes are rejected."""
        with pytest.raises(ValueError):
            GatewayChunkingStrategy(chunk_size=0)
        with pytest.raises(ValueError):
            GatewayChunkingStrategy(chunk_size=64, min_chunk_size=128)


class TestFixedSizeChunkingStrategy:
    """Test suite for FixedSizeChunkingStrategy."""

    def test_default_chunk_size(self):
        """Test default chunk size."""
        strategy = FixedSizeChunkingStrategy()
        assert strategy.chunk_size == 256 * KiB

    def test_custom_chunk_size(self):
        """Test custom chunk size."""
        strategy = FixedSizeChunkingStrategy(chunk_size=1024)
        chunks = strategy.calculate_chunks(3000)

        assert chunks == [(0, 1024), (1024, 2048), (2048, 3000)]

    def test_exact_multiple(self):
        """Test payload that is exact multiple of chunk size."""
        strategy = FixedSizeChunkingStrategy(chunk_size=1000)
        chunks = strategy.calculate_chunks(3000)

        assert len(chunks) == 3
        assert chunks[-1] == (2000, 3000)

    def test_no_rebalancing(self):
        """Test small trailing chunk is kept as is."""
        strategy = FixedSizeChunkingStrategy()
        assert sizes_kib(strategy.calculate_chunks(520 * KiB)) == [256, 256, 8]

    def test_invalid_chunk_size(self):
        """Test zero chunk size is rejected."""
        with pytest.raises(ValueError):
            FixedSizeChunkingStrategy(chunk_size=0)
