"""
Data models for upload module.

Uses dataclasses for immutable, type-safe data structures.
"""
import json
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List, Sequence, Tuple, Iterator


@dataclass(frozen=True)
class LoadedFile:
    """
    A file read fully into memory, paired with its metadata.

    Attributes:
        content: Raw file bytes
        name: File name (no directory part)
        size: Size in bytes
        mime_type: MIME type used as the member's content type
    """
    content: bytes
    name: str
    size: int
    mime_type: str = 'application/octet-stream'

    @classmethod
    def from_bytes(
        cls,
        content: bytes,
        name: str,
        mime_type: str = 'application/octet-stream'
    ) -> 'LoadedFile':
        """Create from raw bytes, deriving size."""
        return cls(content=content, name=name, size=len(content), mime_type=mime_type)

    def __repr__(self) -> str:
        return f"LoadedFile(name={self.name!r}, size={self.size}, mime_type={self.mime_type!r})"


@dataclass(frozen=True)
class ManifestEntry:
    """
    Location of one member inside a bundle's content section.

    Attributes:
        offset: Byte offset from the start of the content section
        length: Member length in bytes
        name: Member file name
        mime_type: Member MIME type
    """
    offset: int
    length: int
    name: str
    mime_type: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to manifest JSON form."""
        return {
            'offset': self.offset,
            'length': self.length,
            'name': self.name,
            'mimeType': self.mime_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ManifestEntry':
        """Create from manifest JSON form."""
        return cls(
            offset=int(data['offset']),
            length=int(data['length']),
            name=data['name'],
            mime_type=data.get('mimeType', 'application/octet-stream')
        )


Manifest = Dict[int, ManifestEntry]


def manifest_to_dict(manifest: Manifest) -> Dict[str, Dict[str, Any]]:
    """Manifest as a JSON-ready mapping keyed by member index string."""
    return {str(index): entry.to_dict() for index, entry in sorted(manifest.items())}


@dataclass(frozen=True)
class Bundle:
    """
    One bundle transaction's worth of files.

    Attributes:
        index: Position of the bundle in packing order
        members: Member files in input order
        manifest: Member index -> location in the content section
        serialized_size: Exact size of the serialized bundle in bytes
    """
    index: int
    members: Tuple[LoadedFile, ...]
    manifest: Manifest
    serialized_size: int

    @property
    def content_size(self) -> int:
        """Combined size of all member files."""
        return sum(member.size for member in self.members)

    @property
    def names(self) -> List[str]:
        return [member.name for member in self.members]


@dataclass(frozen=True)
class Transaction:
    """
    A signed bundle transaction.

    Attributes:
        payload: Serialized bundle bytes
        signature: Signature over the transaction fields
        id: Content-derived identifier (known only after signing)
        owner: Public key of the signer (base64url modulus)
        data_root: Root hash committing to the payload chunks (base64url)
        tags: Name/value tags carried by the transaction
    """
    payload: bytes
    signature: bytes
    id: str
    owner: str = ''
    data_root: str = ''
    tags: Tuple[Tuple[str, str], ...] = ()

    @property
    def data_size(self) -> int:
        return len(self.payload)

    def header(self) -> Dict[str, Any]:
        """Transaction header as posted to the gateway (payload excluded)."""
        from ...crypto import Base64Encoder
        encoder = Base64Encoder()
        return {
            'format': 2,
            'id': self.id,
            'owner': self.owner,
            'tags': [
                {'name': encoder.encode(name.encode()), 'value': encoder.encode(value.encode())}
                for name, value in self.tags
            ],
            'data_size': str(self.data_size),
            'data_root': self.data_root,
            'data': '',
            'signature': encoder.encode(self.signature),
        }

    def __repr__(self) -> str:
        return f"Transaction(id={self.id!r}, data_size={self.data_size})"


@dataclass
class ChunkUploadState:
    """
    Progress of one transaction's chunked upload.

    Only the chunked transaction uploader mutates this object, and only
    through advance() and mark_complete(): uploaded_chunks never decreases
    and is_complete never goes back to False.

    Attributes:
        transaction_id: Transaction being uploaded
        total_chunks: Number of chunks in the payload
        uploaded_chunks: Chunks acknowledged so far
        is_complete: Terminal flag
    """
    transaction_id: str
    total_chunks: int
    uploaded_chunks: int = 0
    is_complete: bool = False

    def __post_init__(self):
        if self.total_chunks < 0:
            raise ValueError("total_chunks must not be negative")
        if not 0 <= self.uploaded_chunks <= self.total_chunks:
            raise ValueError(
                f"uploaded_chunks must be between 0 and {self.total_chunks}"
            )

    def advance(self, uploaded_chunks: Optional[int] = None) -> None:
        """Record acknowledged chunks (one more by default)."""
        if self.is_complete:
            return
        target = self.uploaded_chunks + 1 if uploaded_chunks is None else uploaded_chunks
        if target < self.uploaded_chunks:
            raise ValueError(
                f"uploaded_chunks cannot go back from {self.uploaded_chunks} to {target}"
            )
        self.uploaded_chunks = min(target, self.total_chunks)

    def mark_complete(self) -> None:
        """Set the terminal flag."""
        self.uploaded_chunks = self.total_chunks
        self.is_complete = True

    @property
    def percentage(self) -> float:
        """Returns upload progress as percentage."""
        if self.total_chunks == 0:
            return 100.0 if self.is_complete else 0.0
        return (self.uploaded_chunks / self.total_chunks) * 100

    def snapshot(self) -> 'ChunkUploadState':
        """Independent copy of the current state."""
        return ChunkUploadState(
            transaction_id=self.transaction_id,
            total_chunks=self.total_chunks,
            uploaded_chunks=self.uploaded_chunks,
            is_complete=self.is_complete
        )


@dataclass(frozen=True)
class BundleResult:
    """
    Result of one successfully uploaded bundle.

    Attributes:
        bundle_index: Position of the bundle in packing order
        transaction_id: Id of the bundle transaction
        manifest: Layout of the bundle members
    """
    bundle_index: int
    transaction_id: str
    manifest: Manifest

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transaction_id': self.transaction_id,
            'manifest': manifest_to_dict(self.manifest),
        }


@dataclass
class SessionResult:
    """
    Ordered results of every bundle uploaded in a session.

    Built incrementally; finalize() freezes bundles into a tuple and no
    more results can be added.
    """
    bundles: Sequence[BundleResult] = field(default_factory=list)
    finalized: bool = False

    def add(self, result: BundleResult) -> None:
        """Append the result of the next uploaded bundle."""
        if self.finalized:
            raise RuntimeError("SessionResult is finalized")
        self.bundles.append(result)

    def finalize(self) -> 'SessionResult':
        self.bundles = tuple(self.bundles)
        self.finalized = True
        return self

    @property
    def transaction_ids(self) -> List[str]:
        return [result.transaction_id for result in self.bundles]

    def __len__(self) -> int:
        return len(self.bundles)

    def __iter__(self) -> Iterator[BundleResult]:
        return iter(self.bundles)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Mapping of bundle index -> transaction id and manifest."""
        return {str(result.bundle_index): result.to_dict() for result in self.bundles}

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


@dataclass
class SessionOutcome:
    """
    Terminal state of an upload session.

    Attributes:
        result: Bundles uploaded so far (complete when failure is None)
        failure: First escalated failure, if any
        sequencer: Sequencer that produced the result, kept for resuming
    """
    result: SessionResult
    failure: Optional[Exception] = None
    sequencer: Any = None

    @property
    def is_complete(self) -> bool:
        return self.failure is None

    @property
    def failure_kind(self) -> Optional[str]:
        if self.failure is None:
            return None
        return type(self.failure).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Result plus failure summary, ready to persist."""
        data: Dict[str, Any] = {'bundles': self.result.to_dict()}
        if self.failure is not None:
            failure: Dict[str, Any] = {
                'kind': self.failure_kind,
                'message': str(self.failure),
            }
            for attr in ('transaction_id', 'chunk_index', 'bundle_index', 'name'):
                value = getattr(self.failure, attr, None)
                if value is not None:
                    failure[attr] = value
            data['failure'] = failure
        return data
