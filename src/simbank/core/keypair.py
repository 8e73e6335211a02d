"""
Keypairs and Public Keys

Identities on the ledger are Ed25519 keypairs. Public keys travel as base58
strings, the same text form wallets and explorers show; the raw 32 bytes are
only needed when a message is serialized for signing.
"""

from dataclasses import dataclass

import base58
from ecdsa import BadSignatureError, SigningKey, VerifyingKey
from ecdsa.curves import Ed25519
from ecdsa.errors import MalformedPointError

PUBKEY_LENGTH = 32
SIGNATURE_LENGTH = 64


def pubkey_to_bytes(pubkey: str) -> bytes:
    """Decode a base58 public key, checking that it is exactly 32 bytes."""
    try:
        raw = base58.b58decode(pubkey)
    except ValueError as e:
        raise ValueError(f"Invalid public key {pubkey!r}: {e}") from e
    if len(raw) != PUBKEY_LENGTH:
        raise ValueError(f"Invalid public key {pubkey!r}: expected {PUBKEY_LENGTH} bytes, got {len(raw)}")
    return raw


def pubkey_from_bytes(raw: bytes) -> str:
    if len(raw) != PUBKEY_LENGTH:
        raise ValueError(f"Public key must be {PUBKEY_LENGTH} bytes, got {len(raw)}")
    return base58.b58encode(raw).decode("ascii")


def is_valid_pubkey(pubkey: str) -> bool:
    try:
        pubkey_to_bytes(pubkey)
    except (ValueError, TypeError):
        return False
    return True


def verify_signature(pubkey: str, signature: bytes, message: bytes) -> bool:
    """Check an Ed25519 signature; malformed keys or signatures simply fail."""
    if len(signature) != SIGNATURE_LENGTH:
        return False
    try:
        verifying_key = VerifyingKey.from_string(pubkey_to_bytes(pubkey), curve=Ed25519)
        return verifying_key.verify(signature, message)
    except (BadSignatureError, MalformedPointError, ValueError):
        return False


@dataclass(frozen=True, eq=False)
class Keypair:
    """
    An Ed25519 identity.

    Holds the private signing key in memory only; nothing here writes key
    material anywhere.
    """
    signing_key: SigningKey

    @classmethod
    def from_seed(cls, seed: bytes) -> 'Keypair':
        if len(seed) != 32:
            raise ValueError("Seed must be 32 bytes")
        return cls(SigningKey.from_string(seed, curve=Ed25519))

    @classmethod
    def from_secret_key(cls, secret: bytes) -> 'Keypair':
        """Load the 64-byte `seed || public key` layout used by wallet files."""
        if len(secret) != 64:
            raise ValueError("Secret key must be 64 bytes")
        keypair = cls.from_seed(secret[:32])
        if keypair.public_key_bytes() != secret[32:]:
            raise ValueError("Secret key does not match its public key")
        return keypair

    @property
    def pubkey(self) -> str:
        return pubkey_from_bytes(self.public_key_bytes())

    def public_key_bytes(self) -> bytes:
        return bytes(self.signing_key.verifying_key.to_string())

    def secret(self) -> bytes:
        return bytes(self.signing_key.to_string()) + self.public_key_bytes()

    def sign(self, message: bytes) -> bytes:
        return bytes(self.signing_key.sign(message))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Keypair):
            return NotImplemented
        return self.secret() == other.secret()

    def __hash__(self) -> int:
        return hash(self.public_key_bytes())

    def __repr__(self) -> str:
        return f"Keypair({self.pubkey})"


def generate_keypair() -> Keypair:
    """Generate a fresh Ed25519 keypair from OS randomness."""
    return Keypair(SigningKey.generate(curve=Ed25519))
