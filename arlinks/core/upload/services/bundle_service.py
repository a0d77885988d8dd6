"""
Bundle packing and serialization services.

A serialized bundle is laid out as:

    +----------------------+---------------------+------------------------+
    | manifest length (8B) | manifest JSON bytes | member content, joined |
    +----------------------+---------------------+------------------------+

Manifest offsets are relative to the start of the content section.
"""
import json
import logging
import struct
from typing import Dict, Any, List, Optional, Sequence, Tuple

from ..models import LoadedFile, ManifestEntry, Manifest, Bundle
from ...exceptions import FileTooLargeError

logger = logging.getLogger('arlinks.upload.bundle')


class BundleSerializer:
    """Builds manifests and serializes bundles to transaction payloads."""

    FORMAT_VERSION = 1
    HEADER = struct.Struct('>Q')

    def build_manifest(self, members: Sequence[LoadedFile]) -> Manifest:
        """Manifest for members laid out back to back, in order."""
        manifest = {}
        offset = 0
        for index, member in enumerate(members):
            manifest[index] = ManifestEntry(
                offset=offset,
                length=member.size,
                name=member.name,
                mime_type=member.mime_type
            )
            offset += member.size
        return manifest

    @staticmethod
    def _encode(document: Any) -> bytes:
        return json.dumps(document, sort_keys=True, separators=(',', ':')).encode('utf-8')

    def encode_manifest(self, manifest: Manifest) -> bytes:
        """Canonical JSON encoding of a manifest."""
        document = {
            'version': self.FORMAT_VERSION,
            'files': [manifest[index].to_dict() for index in sorted(manifest)],
        }
        return self._encode(document)

    @property
    def empty_size(self) -> int:
        """Serialized size of a bundle without members."""
        return self.HEADER.size + len(self.encode_manifest({}))

    def entry_size(self, entry: ManifestEntry) -> int:
        """Encoded length of one manifest entry, separator excluded."""
        return len(self._encode(entry.to_dict()))

    def serialized_size(
        self,
        members: Sequence[LoadedFile],
        manifest: Optional[Manifest] = None
    ) -> int:
        """Exact serialized size of a bundle holding members."""
        if manifest is None:
            manifest = self.build_manifest(members)
        manifest_bytes = self.encode_manifest(manifest)
        return self.HEADER.size + len(manifest_bytes) + sum(m.size for m in members)

    def serialize(self, bundle: Bundle) -> bytes:
        """
        Serialize a bundle into a transaction payload.

        Args:
            bundle: Packed bundle

        Returns:
            Payload bytes of exactly bundle.serialized_size
        """
        manifest_bytes = self.encode_manifest(bundle.manifest)
        parts = [self.HEADER.pack(len(manifest_bytes)), manifest_bytes]
        parts.extend(member.content for member in bundle.members)
        payload = b''.join(parts)
        if len(payload) != bundle.serialized_size:
            raise ValueError(
                f"Bundle {bundle.index} serialized to {len(payload)} bytes, "
                f"expected {bundle.serialized_size}"
            )
        return payload

    def deserialize(self, payload: bytes) -> List[Tuple[ManifestEntry, bytes]]:
        """
        Split a payload back into (manifest entry, content) pairs.

        Raises:
            ValueError: If the payload is not a well-formed bundle
        """
        if len(payload) < self.HEADER.size:
            raise ValueError("Payload too short for a bundle header")
        (manifest_length,) = self.HEADER.unpack_from(payload)
        body_start = self.HEADER.size + manifest_length
        if body_start > len(payload):
            raise ValueError("Manifest length exceeds payload size")

        document: Dict[str, Any] = json.loads(payload[self.HEADER.size:body_start])
        content = payload[body_start:]
        members = []
        for item in document.get('files', []):
            entry = ManifestEntry.from_dict(item)
            if entry.offset + entry.length > len(content):
                raise ValueError(f"Member {entry.name!r} lies outside the payload")
            members.append((entry, content[entry.offset:entry.offset + entry.length]))
        return members


class BundlePacker:
    """
    Greedy sequential bundle packer.

    Files are appended to the current bundle in input order until the next
    one would push its serialized size above the limit; then the bundle is
    closed and a new one started. Boundaries depend only on input order and
    the limit, so re-packing the same files reproduces the same bundles.
    """

    def __init__(self, max_bundle_size: int, serializer: BundleSerializer = None):
        """
        Initialize packer.

        Args:
            max_bundle_size: Maximum serialized bundle size in bytes
            serializer: Bundle serializer used for size accounting
        """
        if max_bundle_size <= 0:
            raise ValueError("max_bundle_size must be positive")
        self.max_bundle_size = max_bundle_size
        self._serializer = serializer or BundleSerializer()

    @property
    def serializer(self) -> BundleSerializer:
        return self._serializer

    def plan(self, files: Sequence[LoadedFile]) -> List[List[int]]:
        """
        Compute bundle boundaries without building any bundle.

        Args:
            files: Loaded files in upload order

        Returns:
            One list of file indices per bundle

        Raises:
            FileTooLargeError: If a file does not fit in a bundle on its own
        """
        base = self._serializer.empty_size
        groups: List[List[int]] = []
        current: List[int] = []
        # Serialized size of the open bundle and the size of its content section
        total = base
        content = 0

        for index, loaded in enumerate(files):
            separator = 1 if current else 0
            grown = total + separator + self._entry_size(loaded, content) + loaded.size
            if grown <= self.max_bundle_size:
                current.append(index)
                total = grown
                content += loaded.size
                continue

            alone = base + self._entry_size(loaded, 0) + loaded.size
            if alone > self.max_bundle_size:
                logger.error(
                    f"{loaded.name} ({loaded.size} bytes) exceeds bundle limit {self.max_bundle_size}"
                )
                raise FileTooLargeError(loaded.name, loaded.size, self.max_bundle_size)

            groups.append(current)
            current = [index]
            total = alone
            content = loaded.size

        if current:
            groups.append(current)

        return groups

    def _entry_size(self, loaded: LoadedFile, offset: int) -> int:
        entry = ManifestEntry(
            offset=offset,
            length=loaded.size,
            name=loaded.name,
            mime_type=loaded.mime_type
        )
        return self._serializer.entry_size(entry)

    def build(self, index: int, members: Sequence[LoadedFile]) -> Bundle:
        """
        Create the bundle for a planned group of members.

        Raises:
            ValueError: If the members do not fit in one bundle
        """
        members = tuple(members)
        manifest = self._serializer.build_manifest(members)
        size = self._serializer.serialized_size(members, manifest)
        if size > self.max_bundle_size:
            raise ValueError(
                f"Bundle {index} is {size} bytes, above the limit of {self.max_bundle_size}"
            )
        return Bundle(index=index, members=members, manifest=manifest, serialized_size=size)

    def pack(self, files: Sequence[LoadedFile]) -> List[Bundle]:
        """
        Partition files into bundles.

        Args:
            files: Loaded files in upload order

        Returns:
            Bundles in packing order, each at most max_bundle_size when serialized

        Raises:
            FileTooLargeError: If a file does not fit in a bundle on its own
        """
        bundles = [
            self.build(bundle_index, [files[i] for i in group])
            for bundle_index, group in enumerate(self.plan(files))
        ]
        logger.info(f"Packed {len(files)} files into {len(bundles)} bundles")
        return bundles
