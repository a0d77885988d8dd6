"""
Wallet key material.

A wallet is an RSA key pair stored as a JSON Web Key, as produced by
Arweave wallet tooling. The address is the base64url SHA-256 of the
public modulus.
"""
import json
import logging
from pathlib import Path
from typing import Dict, Any, Union

from Crypto.PublicKey import RSA

from ..crypto import Base64Encoder, int_to_bytes, bytes_to_int, sha256
from ..exceptions import WalletError

logger = logging.getLogger('arlinks.wallet')

JWK_PRIVATE_FIELDS = ('d', 'p', 'q', 'dp', 'dq', 'qi')


class Wallet:
    """
    RSA wallet used as the signing credential.

    The wallet is never mutated after construction; signing only reads it.

    Example:
        >>> wallet = Wallet.generate()
        >>> wallet.save("AR-wallet.json")
        >>> print(wallet.address)
    """

    DEFAULT_BITS = 4096
    PUBLIC_EXPONENT = 65537

    def __init__(self, key: RSA.RsaKey):
        """
        Initialize wallet from a pycryptodome RSA key.

        Args:
            key: RSA key (private key required for signing)
        """
        self._key = key
        self._encoder = Base64Encoder()

    @classmethod
    def generate(cls, bits: int = DEFAULT_BITS) -> 'Wallet':
        """Generate a new wallet."""
        logger.info(f"Generating {bits}-bit wallet key")
        return cls(RSA.generate(bits, e=cls.PUBLIC_EXPONENT))

    @classmethod
    def from_jwk(cls, jwk: Dict[str, Any]) -> 'Wallet':
        """
        Create wallet from a JSON Web Key.

        Args:
            jwk: JWK dict with kty 'RSA' and base64url n, e (and d, p, q for private keys)

        Raises:
            WalletError: If the key is malformed
        """
        if not isinstance(jwk, dict) or jwk.get('kty') != 'RSA':
            raise WalletError("Wallet must be an RSA JSON Web Key")

        encoder = Base64Encoder()
        try:
            n = bytes_to_int(encoder.decode(jwk['n']))
            e = bytes_to_int(encoder.decode(jwk['e']))
            if 'd' in jwk:
                d = bytes_to_int(encoder.decode(jwk['d']))
                if 'p' in jwk and 'q' in jwk:
                    p = bytes_to_int(encoder.decode(jwk['p']))
                    q = bytes_to_int(encoder.decode(jwk['q']))
                    key = RSA.construct((n, e, d, p, q))
                else:
                    key = RSA.construct((n, e, d))
            else:
                key = RSA.construct((n, e))
        except KeyError as exc:
            raise WalletError(f"Wallet key is missing field {exc}") from exc
        except (ValueError, TypeError) as exc:
            raise WalletError(f"Invalid wallet key: {exc}") from exc

        return cls(key)

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> 'Wallet':
        """Create wallet from a JWK JSON document."""
        try:
            jwk = json.loads(data)
        except json.JSONDecodeError as exc:
            raise WalletError(f"Wallet is not valid JSON: {exc}") from exc
        return cls.from_jwk(jwk)

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'Wallet':
        """Load wallet from a JWK JSON file."""
        path = Path(path)
        try:
            data = path.read_text(encoding='utf-8')
        except OSError as exc:
            raise WalletError(f"Could not read wallet file {path}: {exc}") from exc
        return cls.from_json(data)

    def save(self, path: Union[str, Path]) -> Path:
        """Write the wallet as a JWK JSON file."""
        path = Path(path)
        path.write_text(json.dumps(self.to_jwk(), indent=2), encoding='utf-8')
        logger.info(f"Wallet saved to {path}")
        return path

    def to_jwk(self) -> Dict[str, str]:
        """Export as a JSON Web Key."""
        key = self._key
        encode = self._encoder.encode
        jwk = {
            'kty': 'RSA',
            'n': encode(int_to_bytes(key.n)),
            'e': encode(int_to_bytes(key.e)),
        }
        if key.has_private():
            p, q, d = int(key.p), int(key.q), int(key.d)
            jwk.update({
                'd': encode(int_to_bytes(d)),
                'p': encode(int_to_bytes(p)),
                'q': encode(int_to_bytes(q)),
                'dp': encode(int_to_bytes(d % (p - 1))),
                'dq': encode(int_to_bytes(d % (q - 1))),
                'qi': encode(int_to_bytes(pow(q, -1, p))),
            })
        return jwk

    @property
    def key(self) -> RSA.RsaKey:
        return self._key

    @property
    def has_private_key(self) -> bool:
        return self._key.has_private()

    @property
    def owner(self) -> str:
        """Public modulus, base64url encoded."""
        return self._encoder.encode(int_to_bytes(self._key.n))

    @property
    def address(self) -> str:
        """Wallet address: base64url SHA-256 of the public modulus."""
        return self._encoder.encode(sha256(int_to_bytes(self._key.n)))

    def public(self) -> 'Wallet':
        """Wallet holding only the public key."""
        return Wallet(self._key.publickey())

    def __repr__(self) -> str:
        kind = 'private' if self.has_private_key else 'public'
        return f"Wallet(address={self.address!r}, {kind})"
