"""
User and tower identities.

An identity is a secp256k1 public key, stored in its 33-byte compressed
encoding. Two identities are equal when the encodings are equal and they
are of the same kind (a ``UserId`` never equals a ``TowerId``).
"""

from __future__ import annotations

from dataclasses import dataclass

from ecdsa import SECP256k1, VerifyingKey
from ecdsa.errors import MalformedPointError

from misbehaviour_tool.errors import InvalidKeyEncoding

COMPRESSED_KEY_LEN = 33


def load_public_key(data: bytes) -> VerifyingKey:
    """Parse a compressed public key, raising InvalidKeyEncoding on bad input."""
    if len(data) != COMPRESSED_KEY_LEN or data[0] not in (2, 3):
        raise InvalidKeyEncoding(
            f"Expected a {COMPRESSED_KEY_LEN}-byte compressed public key, "
            f"got {len(data)} bytes"
        )
    try:
        return VerifyingKey.from_string(data, curve=SECP256k1)
    except (MalformedPointError, ValueError) as e:
        raise InvalidKeyEncoding(f"Not a point on secp256k1: {e}") from e


@dataclass(frozen=True)
class Identity:
    """A public-key backed identity."""

    pubkey: bytes

    def __post_init__(self) -> None:
        load_public_key(self.pubkey)

    @classmethod
    def from_verifying_key(cls, key: VerifyingKey) -> Identity:
        return cls(key.to_string("compressed"))

    @classmethod
    def deserialize(cls, data: bytes) -> Identity:
        """Builds an identity from its byte representation."""
        return cls(bytes(data))

    @classmethod
    def from_hex(cls, hex_str: str) -> Identity:
        try:
            data = bytes.fromhex(hex_str)
        except ValueError as e:
            raise InvalidKeyEncoding(f"Invalid hex public key: {e}") from e
        return cls.deserialize(data)

    def serialize(self) -> bytes:
        """Encodes the identity in its byte representation."""
        return self.pubkey

    def to_hex(self) -> str:
        return self.pubkey.hex()

    def __str__(self) -> str:
        return self.to_hex()


class UserId(Identity):
    """Identifies a watchtower client."""


class TowerId(Identity):
    """Identifies a watchtower."""
