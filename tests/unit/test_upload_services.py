"""Tests for upload services."""
import asyncio
import pytest
from pathlib import Path
from unittest.mock import MagicMock, AsyncMock
import tempfile
import os

from arlinks.core.api.retry import ExponentialBackoffStrategy
from arlinks.core.exceptions import ReadError, ChunkUploadError, GatewayError
from arlinks.core.upload.models import Transaction
from arlinks.core.upload.services import (
    FileValidator,
    FileBufferLoader,
    GatewayChunkUploader,
    ChunkedTransactionUploader,
    guess_mime_type
)
from arlinks.core.upload.strategies import FixedSizeChunkingStrategy


class TestFileValidator:
    """Test suite for FileValidator."""

    @pytest.fixture
    def validator(self):
        """Create validator instance."""
        return FileValidator()

    @pytest.fixture
    def temp_file(self):
        """Create temporary file for testing."""
        fd, path = tempfile.mkstemp()
        os.write(fd, b"test content")
        os.close(fd)
        yield Path(path)
        os.unlink(path)

    def test_validate_existing_file(self, validator, temp_file):
        """Test validating existing file."""
        path, size = validator.validate(temp_file)

        assert path == temp_file
        assert size == 12  # "test content"

    def test_validate_string_path(self, validator, temp_file):
        """Test validating string path."""
        path, size = validator.validate(str(temp_file))

        assert path == temp_file

    def test_validate_nonexistent_file(self, validator):
        """Test validating non-existent file."""
        with pytest.raises(FileNotFoundError):
            validator.validate(Path("/nonexistent/file.txt"))

    def test_validate_directory(self, validator):
        """Test validating directory raises error."""
        with pytest.raises(IsADirectoryError):
            validator.validate(Path(tempfile.gettempdir()))


def test_guess_mime_type():
    """Test MIME types come from the file extension."""
    assert guess_mime_type("photo.png") == "image/png"
    assert guess_mime_type("no_extension") == "application/octet-stream"


class TestFileBufferLoader:
    """Test suite for FileBufferLoader."""

    @pytest.fixture
    def loader(self):
        return FileBufferLoader()

    @pytest.fixture
    def files(self, tmp_path):
        paths = []
        for name, content in (("one.txt", b"1" * 10), ("two.png", b"2" * 2000), ("three.bin", b"")):
            path = tmp_path / name
            path.write_bytes(content)
            paths.append(path)
        return paths

    @pytest.mark.asyncio
    async def test_load_file(self, loader, files):
        """Test a single file is read with its metadata."""
        loaded = await loader.load_file(files[1])

        assert loaded.name == "two.png"
        assert loaded.size == 2000
        assert loaded.content == b"2" * 2000
        assert loaded.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_load_files_preserves_order(self, loader, files):
        """Test output order matches input order."""
        loaded = await loader.load_files(list(reversed(files)))

        assert [f.name for f in loaded] == ["three.bin", "two.png", "one.txt"]
        assert loaded[0].size == 0

    @pytest.mark.asyncio
    async def test_load_files_empty(self, loader):
        """Test empty input."""
        assert await loader.load_files([]) == []

    @pytest.mark.asyncio
    async def test_missing_file_raises_read_error(self, loader, files, tmp_path):
        """Test one unreadable file fails the whole batch."""
        missing = tmp_path / "missing.txt"

        with pytest.raises(ReadError) as exc_info:
            await loader.load_files([files[0], missing, files[1]])

        assert exc_info.value.name == str(missing)
        assert isinstance(exc_info.value.cause, FileNotFoundError)

    @pytest.mark.asyncio
    async def test_directory_raises_read_error(self, loader, tmp_path):
        """Test directories are not loadable."""
        with pytest.raises(ReadError):
            await loader.load_file(tmp_path)

    @pytest.mark.asyncio
    async def test_concurrent_reads_are_bounded(self, tmp_path):
        """Test a batch larger than the limit never opens more files than allowed."""
        paths = []
        for i in range(150):
            path = tmp_path / f"img{i}.png"
            path.write_bytes(str(i).encode() * 20)
            paths.append(path)

        class CountingLoader(FileBufferLoader):
            active = 0
            peak = 0

            async def load_file(self, handle):
                CountingLoader.active += 1
                CountingLoader.peak = max(CountingLoader.peak, CountingLoader.active)
                try:
                    await asyncio.sleep(0)
                    return await super().load_file(handle)
                finally:
                    CountingLoader.active -= 1

        loader = CountingLoader(max_concurrent=8)
        loaded = await loader.load_files(paths)

        assert [f.name for f in loaded] == [p.name for p in paths]
        assert loaded[42].content == b"42" * 20
        assert 1 < CountingLoader.peak <= 8

    def test_invalid_concurrency(self):
        """Test the read limit must be positive."""
        with pytest.raises(ValueError):
            FileBufferLoader(max_concurrent=0)


class ScriptedInitiator:
    """Initiator returning prepared handles, optionally failing first."""

    def __init__(self, handle, failures=0):
        self.handle = handle
        self.failures = failures
        self.calls = []

    async def initiate_chunked_upload(self, transaction, uploaded_chunks=0):
        self.calls.append(uploaded_chunks)
        if self.failures:
            self.failures -= 1
            raise GatewayError("tx rejected", status=503, retryable=True)
        return self.handle


class TestChunkedTransactionUploader:
    """Test suite for ChunkedTransactionUploader."""

    @pytest.fixture
    def transaction(self):
        return Transaction(payload=b"x" * 100, signature=b"sig", id="tx-1")

    @pytest.fixture
    def retry(self, retry_config):
        return ExponentialBackoffStrategy(retry_config)

    @pytest.mark.asyncio
    async def test_uploads_every_chunk_once(self, handle_factory, transaction, retry):
        """Test k chunks take exactly k calls on a clean run."""
        handle = handle_factory("tx-1", total_chunks=6)
        uploader = ChunkedTransactionUploader(
            ScriptedInitiator(handle), transaction, retry_strategy=retry
        )

        state = await uploader.run()

        assert state.is_complete
        assert state.uploaded_chunks == 6
        assert handle.chunk_calls == [0, 1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_failed_chunk_retried_in_place(self, handle_factory, transaction, retry):
        """Test a chunk failing once is resent before moving on."""
        handle = handle_factory("tx-1", total_chunks=10, failures={4: 1})
        uploader = ChunkedTransactionUploader(
            ScriptedInitiator(handle), transaction, retry_strategy=retry
        )

        state = await uploader.run()

        assert state.is_complete
        assert len(handle.calls) == 11
        assert handle.chunk_calls == [0, 1, 2, 3, 4, 4, 5, 6, 7, 8, 9]

    @pytest.mark.asyncio
    async def test_exhausted_retries_escalate(self, handle_factory, transaction, retry):
        """Test a persistently failing chunk raises ChunkUploadError."""
        handle = handle_factory("tx-1", total_chunks=10, failures={4: 100})
        uploader = ChunkedTransactionUploader(
            ScriptedInitiator(handle), transaction, retry_strategy=retry
        )

        with pytest.raises(ChunkUploadError) as exc_info:
            await uploader.run()

        error = exc_info.value
        assert error.transaction_id == "tx-1"
        assert error.chunk_index == 4
        assert error.state.uploaded_chunks == 4
        assert not error.state.is_complete
        # first attempt plus max_retries
        assert handle.chunk_calls.count(4) == retry.max_retries + 1
        assert 5 not in handle.chunk_calls

    @pytest.mark.asyncio
    async def test_permanent_error_retried_once(self, handle_factory, transaction, retry):
        """Test non-transient errors still get one retry."""
        handle = handle_factory(
            "tx-1",
            total_chunks=3,
            failures={1: 100},
            error=GatewayError("bad chunk", status=400, retryable=False)
        )
        uploader = ChunkedTransactionUploader(
            ScriptedInitiator(handle), transaction, retry_strategy=retry
        )

        with pytest.raises(ChunkUploadError):
            await uploader.run()

        assert handle.chunk_calls == [0, 1, 1]

    @pytest.mark.asyncio
    async def test_resume_from_uploaded_chunks(self, handle_factory, transaction, retry):
        """Test a new uploader continues at chunk j without resending."""
        handle = handle_factory("tx-1", total_chunks=10, uploaded_chunks=4)
        initiator = ScriptedInitiator(handle)
        uploader = ChunkedTransactionUploader(
            initiator, transaction, retry_strategy=retry, uploaded_chunks=4
        )

        state = await uploader.run()

        assert initiator.calls == [4]
        assert handle.chunk_calls == [4, 5, 6, 7, 8, 9]
        assert state.is_complete

    @pytest.mark.asyncio
    async def test_upload_next_sends_one_chunk(self, handle_factory, transaction, retry):
        """Test upload_next advances by exactly one chunk."""
        handle = handle_factory("tx-1", total_chunks=3)
        uploader = ChunkedTransactionUploader(
            ScriptedInitiator(handle), transaction, retry_strategy=retry
        )

        state = await uploader.upload_next()

        assert state.uploaded_chunks == 1
        assert handle.chunk_calls == [0]
        assert uploader.percentage == pytest.approx(100 / 3)

    @pytest.mark.asyncio
    async def test_progress_is_monotonic(self, handle_factory, transaction, retry):
        """Test progress callback sees non-decreasing counts."""
        seen = []
        handle = handle_factory("tx-1", total_chunks=5, failures={2: 2})
        uploader = ChunkedTransactionUploader(
            ScriptedInitiator(handle),
            transaction,
            retry_strategy=retry,
            progress_callback=lambda s: seen.append(s.uploaded_chunks)
        )

        await uploader.run()

        assert seen == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_initiation_retried(self, handle_factory, transaction, retry):
        """Test transient initiation failures are retried."""
        handle = handle_factory("tx-1", total_chunks=2)
        initiator = ScriptedInitiator(handle, failures=2)
        uploader = ChunkedTransactionUploader(initiator, transaction, retry_strategy=retry)

        state = await uploader.run()

        assert initiator.calls == [0, 0, 0]
        assert state.is_complete

    @pytest.mark.asyncio
    async def test_initiation_failure_escalates(self, handle_factory, transaction, retry):
        """Test an initiation that never succeeds raises ChunkUploadError."""
        handle = handle_factory("tx-1", total_chunks=2)
        initiator = ScriptedInitiator(handle, failures=100)
        uploader = ChunkedTransactionUploader(initiator, transaction, retry_strategy=retry)

        with pytest.raises(ChunkUploadError) as exc_info:
            await uploader.run()

        assert exc_info.value.chunk_index == 0
        assert handle.calls == []

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, handle_factory, transaction, retry):
        """Test cancellation is not retried."""
        handle = handle_factory(
            "tx-1", total_chunks=3, failures={0: 1}, error=asyncio.CancelledError()
        )
        uploader = ChunkedTransactionUploader(
            ScriptedInitiator(handle), transaction, retry_strategy=retry
        )

        with pytest.raises(asyncio.CancelledError):
            await uploader.run()

        assert handle.chunk_calls == [0]

    def test_negative_resume_point(self, transaction):
        """Test negative uploaded_chunks is rejected."""
        with pytest.raises(ValueError):
            ChunkedTransactionUploader(ScriptedInitiator(None), transaction, uploaded_chunks=-1)


def mock_session(status=200, text="OK"):
    """aiohttp-like session whose post() yields a canned response."""
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.post = MagicMock(return_value=context)
    return session


class TestGatewayChunkUploader:
    """Test suite for GatewayChunkUploader."""

    @pytest.fixture
    def transaction(self):
        return Transaction(
            payload=bytes(range(250)),
            signature=b"sig",
            id="tx-1",
            data_root="root"
        )

    def make_uploader(self, transaction, session, **kwargs):
        return GatewayChunkUploader(
            transaction,
            session,
            "https://gateway.test/",
            chunking_strategy=FixedSizeChunkingStrategy(100),
            **kwargs
        )

    def test_chunk_layout(self, transaction):
        """Test payload is cut by the chunking strategy."""
        uploader = self.make_uploader(transaction, mock_session())

        assert uploader.total_chunks == 3
        assert uploader.uploaded_chunks == 0
        assert not uploader.is_complete

    def test_chunk_body(self, transaction):
        """Test chunk JSON body fields."""
        uploader = self.make_uploader(transaction, mock_session())
        body = uploader.chunk_body(1)

        assert body['data_root'] == "root"
        assert body['data_size'] == "250"
        assert body['offset'] == "199"

    @pytest.mark.asyncio
    async def test_accepted_chunk_advances(self, transaction):
        """Test 200 response advances to the next chunk."""
        session = mock_session(200)
        uploader = self.make_uploader(transaction, session)

        await uploader.upload_next_chunk()

        assert uploader.uploaded_chunks == 1
        assert uploader.last_response_status == 200
        url = session.post.call_args[0][0]
        assert url == "https://gateway.test/chunk"

    @pytest.mark.asyncio
    async def test_transient_rejection(self, transaction):
        """Test 503 raises a retryable GatewayError without advancing."""
        uploader = self.make_uploader(transaction, mock_session(503, "busy"))

        with pytest.raises(GatewayError) as exc_info:
            await uploader.upload_next_chunk()

        assert exc_info.value.retryable is True
        assert exc_info.value.status == 503
        assert uploader.uploaded_chunks == 0

    @pytest.mark.asyncio
    async def test_permanent_rejection(self, transaction):
        """Test 400 raises a non-retryable GatewayError."""
        uploader = self.make_uploader(transaction, mock_session(400, "invalid"))

        with pytest.raises(GatewayError) as exc_info:
            await uploader.upload_next_chunk()

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_complete_upload_rejects_more_chunks(self, transaction):
        """Test nothing is sent once every chunk is uploaded."""
        session = mock_session()
        uploader = self.make_uploader(transaction, session, uploaded_chunks=3)

        assert uploader.is_complete
        with pytest.raises(ValueError):
            await uploader.upload_next_chunk()
        session.post.assert_not_called()
