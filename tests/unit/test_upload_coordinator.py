"""Tests for the upload session driver."""
import asyncio
import pytest

from arlinks.core.exceptions import (
    ChunkUploadError,
    FileTooLargeError,
    SessionCancelledError
)
from arlinks.core.upload.coordinator import UploadSessionDriver
from arlinks.core.upload.strategies import RsaPssSigner


@pytest.fixture
def driver(fake_signer, fake_gateway, upload_config):
    return UploadSessionDriver(
        signer=fake_signer,
        initiator=fake_gateway,
        config=upload_config
    )


class CancellingGateway:
    """Initiator whose first handle is cancelled mid-upload."""

    def __init__(self, handle_factory, cancel_at=1):
        self._handle_factory = handle_factory
        self._cancel_at = cancel_at
        self.initiations = []

    async def initiate_chunked_upload(self, transaction, uploaded_chunks=0):
        self.initiations.append(uploaded_chunks)
        failures = {}
        error = None
        if len(self.initiations) == 1:
            failures = {self._cancel_at: 1}
            error = asyncio.CancelledError()
        return self._handle_factory(
            transaction.id, 3, uploaded_chunks=uploaded_chunks, failures=failures, error=error
        )


class TestUploadSessionDriver:
    """Test suite for UploadSessionDriver."""

    @pytest.mark.asyncio
    async def test_complete_session(self, driver, sample_files, fake_signer):
        """Test every bundle ends up in the result, in order."""
        outcome = await driver.run_session(sample_files, object())

        assert outcome.is_complete
        assert outcome.result.finalized
        assert [r.bundle_index for r in outcome.result] == [0, 1, 2]
        assert outcome.result.transaction_ids == [tx.id for tx in fake_signer.signed]

    @pytest.mark.asyncio
    async def test_progress_callback(self, fake_signer, fake_gateway, upload_config, sample_files):
        """Test progress reaches every bundle's total."""
        seen = {}

        def on_progress(bundle_index, uploaded, total):
            seen[bundle_index] = (uploaded, total)

        driver = UploadSessionDriver(
            fake_signer, fake_gateway, config=upload_config, progress_callback=on_progress
        )
        await driver.run_session(sample_files, object())

        assert sorted(seen) == [0, 1, 2]
        assert all(uploaded == total for uploaded, total in seen.values())

    @pytest.mark.asyncio
    async def test_partial_result_on_failure(self, driver, sample_files, fake_gateway, fake_signer):
        """Test failure keeps earlier bundles and attempts no later ones."""
        fake_gateway.fail(bundle_index=1, chunk_index=1)

        outcome = await driver.run_session(sample_files, object())

        assert not outcome.is_complete
        assert isinstance(outcome.failure, ChunkUploadError)
        assert outcome.failure.bundle_index == 1
        assert outcome.failure.chunk_index == 1
        assert [r.bundle_index for r in outcome.result] == [0]
        assert not outcome.result.finalized
        assert len(fake_gateway.initiations) == 2
        assert len(fake_signer.signed) == 2

    @pytest.mark.asyncio
    async def test_resume_completes_session(self, driver, sample_files, fake_gateway, fake_signer):
        """Test resume continues from the failed chunk into the same result."""
        fake_gateway.fail(bundle_index=1, chunk_index=1)
        partial = await driver.run_session(sample_files, object())
        failed_tx = partial.failure.transaction_id

        fake_gateway.failures.clear()
        outcome = await driver.resume(partial)

        assert outcome.is_complete
        assert outcome.result is partial.result
        assert [r.bundle_index for r in outcome.result] == [0, 1, 2]
        assert outcome.result.transaction_ids[1] == failed_tx
        assert len(fake_signer.signed) == 3
        assert fake_gateway.chunk_calls(failed_tx).count(0) == 1

    @pytest.mark.asyncio
    async def test_resume_complete_outcome(self, driver, sample_files):
        """Test resuming a complete outcome returns it unchanged."""
        outcome = await driver.run_session(sample_files, object())
        assert await driver.resume(outcome) is outcome

    @pytest.mark.asyncio
    async def test_file_too_large_not_resumable(self, driver, file_factory, fake_gateway):
        """Test packing failures end the session for good."""
        outcome = await driver.run_session([file_factory("huge.bin", 300)], object())

        assert isinstance(outcome.failure, FileTooLargeError)
        assert len(outcome.result) == 0
        assert fake_gateway.initiations == []
        with pytest.raises(ValueError):
            await driver.resume(outcome)

    @pytest.mark.asyncio
    async def test_empty_session(self, driver):
        """Test no files gives an empty, complete result."""
        outcome = await driver.run_session([], object())

        assert outcome.is_complete
        assert len(outcome.result) == 0

    @pytest.mark.asyncio
    async def test_cancellation_returns_partial(
        self, fake_signer, upload_config, handle_factory, file_factory
    ):
        """Test cancelling mid-bundle returns what was uploaded so far."""
        gateway = CancellingGateway(handle_factory, cancel_at=1)
        driver = UploadSessionDriver(fake_signer, gateway, config=upload_config)

        outcome = await driver.run_session([file_factory("a.bin", 10)], object())

        assert isinstance(outcome.failure, SessionCancelledError)
        assert len(outcome.result) == 0

        resumed = await driver.resume(outcome)

        assert resumed.is_complete
        assert gateway.initiations == [0, 1]
        assert len(fake_signer.signed) == 1

    @pytest.mark.asyncio
    async def test_events_stream(self, driver, sample_files):
        """Test bundle events arrive in bundle order."""
        started, completed = [], []
        driver.on('bundle_started', lambda index, tx_id, bundle: started.append(index))
        driver.on('bundle_complete', lambda result: completed.append(result.bundle_index))

        await driver.run_session(sample_files, object())

        assert started == [0, 1, 2]
        assert completed == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_signed_with_wallet(self, wallet, fake_gateway, upload_config, sample_files):
        """Test a session signed with a real wallet key."""
        driver = UploadSessionDriver(RsaPssSigner(), fake_gateway, config=upload_config)

        outcome = await driver.run_session(sample_files, wallet)

        assert outcome.is_complete
        assert len(set(outcome.result.transaction_ids)) == 3
        assert all(len(tx_id) == 43 for tx_id in outcome.result.transaction_ids)

    @pytest.mark.asyncio
    async def test_raising_progress_callback_keeps_result(
        self, fake_signer, fake_gateway, upload_config, sample_files
    ):
        """Test a progress callback that raises does not lose the session result."""
        def on_progress(bundle_index, uploaded, total):
            if bundle_index == 1 and uploaded == 1:
                raise RuntimeError("progress bar closed")

        driver = UploadSessionDriver(
            fake_signer, fake_gateway, config=upload_config, progress_callback=on_progress
        )
        outcome = await driver.run_session(sample_files, object())

        assert outcome.is_complete
        assert [r.bundle_index for r in outcome.result] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_cancelled_session_task_finishes_normally(
        self, fake_signer, upload_config, handle_factory, file_factory
    ):
        """Test cancellation is reported through the outcome, not the task."""
        gateway = CancellingGateway(handle_factory, cancel_at=1)
        driver = UploadSessionDriver(fake_signer, gateway, config=upload_config)

        task = asyncio.ensure_future(driver.run_session([file_factory("a.bin", 10)], object()))
        outcome = await task

        assert not task.cancelled()
        assert isinstance(outcome.failure, SessionCancelledError)
