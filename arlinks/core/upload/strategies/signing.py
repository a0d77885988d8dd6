"""
Transaction signing strategy.

Signs serialized bundles with the wallet's RSA key (RSA-PSS, SHA-256).
The transaction id is the base64url SHA-256 of the signature, so it is
only known once the payload has been signed.
"""
import logging
from typing import Any, List, Optional, Tuple

from Crypto.Hash import SHA256
from Crypto.Signature import pss

from ...crypto import Base64Encoder, sha256
from ...exceptions import SigningError, WalletError
from ...wallet import Wallet
from ..models import Transaction
from .chunking import BaseChunkingStrategy, GatewayChunkingStrategy

logger = logging.getLogger('arlinks.upload.signing')


class RsaPssSigner:
    """
    Default signer for bundle transactions.

    The data root commits to the payload chunk by chunk (SHA-256 over the
    concatenated chunk hashes) so the gateway can check chunks as they
    arrive. The signed message covers owner, data root, data size and tags.
    """

    def __init__(self, chunking_strategy: Optional[BaseChunkingStrategy] = None):
        self._chunking = chunking_strategy or GatewayChunkingStrategy()
        self._encoder = Base64Encoder()

    @property
    def chunking(self) -> BaseChunkingStrategy:
        return self._chunking

    def data_root(self, payload: bytes) -> bytes:
        """Root hash committing to every chunk of the payload."""
        chunk_hashes = [
            sha256(payload[start:end])
            for start, end in self._chunking.calculate_chunks(len(payload))
        ]
        return sha256(b''.join(chunk_hashes))

    def signature_message(
        self,
        owner: bytes,
        data_root: bytes,
        data_size: int,
        tags: List[Tuple[str, str]]
    ) -> bytes:
        """Digest input covering every signed transaction field."""
        tag_hashes = b''.join(
            sha256(sha256(name.encode('utf-8')) + sha256(value.encode('utf-8')))
            for name, value in tags
        )
        return b''.join([
            sha256(b'2'),
            sha256(owner),
            sha256(str(data_size).encode('ascii')),
            sha256(data_root),
            sha256(tag_hashes),
        ])

    def sign(
        self,
        payload: bytes,
        credential: Any,
        tags: Optional[List[Tuple[str, str]]] = None
    ) -> Transaction:
        """
        Sign a payload into a transaction.

        Args:
            payload: Serialized bundle bytes
            credential: Wallet holding a private key
            tags: Transaction tags

        Returns:
            Signed transaction

        Raises:
            SigningError: If the credential cannot sign
        """
        if not isinstance(credential, Wallet):
            raise SigningError(
                f"Unsupported credential type: {type(credential).__name__}"
            )
        if not credential.has_private_key:
            raise SigningError("Wallet has no private key")
        if not payload:
            raise SigningError("Cannot sign an empty payload")

        tags = list(tags or [])
        owner = self._encoder.decode(credential.owner)
        data_root = self.data_root(payload)
        message = self.signature_message(owner, data_root, len(payload), tags)

        try:
            signature = pss.new(credential.key).sign(SHA256.new(message))
        except (ValueError, TypeError) as e:
            raise SigningError(f"Could not sign transaction: {e}") from e

        transaction = Transaction(
            payload=payload,
            signature=signature,
            id=self._encoder.encode(sha256(signature)),
            owner=credential.owner,
            data_root=self._encoder.encode(data_root),
            tags=tuple(tags)
        )
        logger.debug(f"Signed transaction {transaction.id} ({len(payload)} bytes)")
        return transaction

    def verify(self, transaction: Transaction) -> bool:
        """Check a transaction's signature and id against its owner."""
        try:
            wallet = Wallet.from_jwk({'kty': 'RSA', 'n': transaction.owner, 'e': 'AQAB'})
        except WalletError:
            return False

        if self._encoder.encode(sha256(transaction.signature)) != transaction.id:
            return False
        if self._encoder.encode(self.data_root(transaction.payload)) != transaction.data_root:
            return False

        message = self.signature_message(
            self._encoder.decode(transaction.owner),
            self._encoder.decode(transaction.data_root),
            transaction.data_size,
            list(transaction.tags)
        )
        try:
            pss.new(wallet.key).verify(SHA256.new(message), transaction.signature)
            return True
        except (ValueError, TypeError):
            return False
