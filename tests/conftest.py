"""Pytest fixtures for arlinks tests."""
import itertools
from typing import Dict, List, Optional, Tuple

import pytest

from arlinks.core.api.config import UploadConfig, BundleConfig, RetryConfig, KiB
from arlinks.core.crypto import Base64Encoder, sha256
from arlinks.core.exceptions import GatewayError
from arlinks.core.upload.models import LoadedFile, Transaction
from arlinks.core.upload.strategies.chunking import FixedSizeChunkingStrategy
from arlinks.core.wallet import Wallet


class FakeSigner:
    """Signer producing deterministic, unique transaction ids."""

    def __init__(self):
        self._counter = itertools.count()
        self.signed: List[Transaction] = []

    def sign(self, payload, credential, tags=None):
        n = next(self._counter)
        signature = f"sig-{n}".encode()
        transaction = Transaction(
            payload=payload,
            signature=signature,
            id=Base64Encoder.encode(sha256(signature)),
            owner='owner',
            data_root='root',
            tags=tuple(tags or ())
        )
        self.signed.append(transaction)
        return transaction


class ScriptedHandle:
    """Upload handle whose chunk failures are scripted per chunk index."""

    def __init__(
        self,
        transaction_id: str,
        total_chunks: int,
        uploaded_chunks: int = 0,
        failures: Optional[Dict[int, int]] = None,
        error: Optional[BaseException] = None,
        calls: Optional[List[Tuple[str, int]]] = None
    ):
        self.transaction_id = transaction_id
        self._total = total_chunks
        self._uploaded = uploaded_chunks
        self.failures = failures if failures is not None else {}
        self.error = error
        self.calls = calls if calls is not None else []

    @property
    def is_complete(self) -> bool:
        return self._uploaded >= self._total

    @property
    def uploaded_chunks(self) -> int:
        return self._uploaded

    @property
    def total_chunks(self) -> int:
        return self._total

    @property
    def chunk_calls(self) -> List[int]:
        return [index for tx_id, index in self.calls if tx_id == self.transaction_id]

    async def upload_next_chunk(self) -> None:
        index = self._uploaded
        self.calls.append((self.transaction_id, index))
        remaining = self.failures.get(index, 0)
        if remaining:
            self.failures[index] = remaining - 1
            raise self.error or GatewayError(
                f"chunk {index} unavailable", status=503, retryable=True
            )
        self._uploaded += 1


class FakeGateway:
    """
    In-memory chunked upload initiator.

    Failures are scripted per (bundle index, chunk index); the bundle index
    is read from the transaction's Bundle-Index tag.
    """

    def __init__(self, chunk_size: int = 64 * KiB):
        self._chunking = FixedSizeChunkingStrategy(chunk_size)
        self.failures: Dict[Tuple[int, int], int] = {}
        self.initiations: List[Tuple[str, int]] = []
        self.calls: List[Tuple[str, int]] = []
        self.handles: Dict[str, ScriptedHandle] = {}

    @staticmethod
    def bundle_index(transaction: Transaction) -> int:
        return int(dict(transaction.tags).get('Bundle-Index', 0))

    def fail(self, bundle_index: int, chunk_index: int, times: int = 1000) -> None:
        self.failures[(bundle_index, chunk_index)] = times

    async def initiate_chunked_upload(self, transaction, uploaded_chunks=0):
        self.initiations.append((transaction.id, uploaded_chunks))
        bundle_index = self.bundle_index(transaction)
        failures = _BundleFailures(self.failures, bundle_index)
        handle = ScriptedHandle(
            transaction.id,
            self._chunking.count_chunks(transaction.data_size),
            uploaded_chunks=uploaded_chunks,
            failures=failures,
            calls=self.calls
        )
        self.handles[transaction.id] = handle
        return handle

    def chunk_calls(self, transaction_id: str) -> List[int]:
        return [index for tx_id, index in self.calls if tx_id == transaction_id]


class _BundleFailures(dict):
    """View of FakeGateway.failures restricted to one bundle."""

    def __init__(self, failures, bundle_index):
        super().__init__()
        self._failures = failures
        self._bundle_index = bundle_index

    def get(self, chunk_index, default=None):
        return self._failures.get((self._bundle_index, chunk_index), default)

    def __setitem__(self, chunk_index, value):
        self._failures[(self._bundle_index, chunk_index)] = value


def make_file(name: str, size_kib: int, fill: bytes = b'x') -> LoadedFile:
    """LoadedFile of size_kib KiB."""
    return LoadedFile.from_bytes(fill * (size_kib * KiB), name)


@pytest.fixture(scope="session")
def wallet():
    """Small RSA wallet; 1024 bits keeps key generation fast."""
    return Wallet.generate(1024)


@pytest.fixture
def fake_signer():
    return FakeSigner()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def retry_config():
    """Retry configuration without backoff delays."""
    return RetryConfig(max_retries=3, base_delay=0, max_delay=0)


@pytest.fixture
def upload_config(retry_config):
    """250 KiB bundles, zero-delay retries."""
    return UploadConfig(
        retry=retry_config,
        bundle=BundleConfig(max_bundle_size=250 * KiB)
    )


@pytest.fixture
def sample_files():
    """Files packing into bundles [a, b], [c], [d] at 250 KiB."""
    return [
        make_file('a.bin', 40, b'a'),
        make_file('b.bin', 40, b'b'),
        make_file('c.bin', 180, b'c'),
        make_file('d.bin', 180, b'd'),
    ]


@pytest.fixture
def file_factory():
    """Factory for in-memory LoadedFile objects sized in KiB."""
    return make_file


@pytest.fixture
def handle_factory():
    """Factory for ScriptedHandle objects."""
    return ScriptedHandle


@pytest.fixture
def gateway_factory():
    """Factory for FakeGateway objects with a custom chunk size."""
    return FakeGateway
