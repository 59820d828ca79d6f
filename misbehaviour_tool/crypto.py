"""
Recoverable message signatures.

Messages are signed the way Lightning nodes sign them: the digest is
SHA256d over a fixed prefix plus the message, the signature is a 65-byte
recoverable ECDSA signature (header byte ``31 + recovery_id`` followed by
``r || s``) and the whole thing travels as z-base-32 text.

Verification never takes a public key as input. The signer's key is
recovered from the signature and compared against the expected identity,
so a well-formed signature by the wrong key and a forged one look the
same from here.
"""

from __future__ import annotations

import hashlib

import structlog
from bitcoinutils.keys import PrivateKey
from ecdsa import SECP256k1, SigningKey, VerifyingKey
from ecdsa.errors import MalformedPointError
from ecdsa.numbertheory import Error as NumberTheoryError
from ecdsa.util import sigdecode_string, sigencode_string_canonize

from misbehaviour_tool import zbase32
from misbehaviour_tool.errors import MalformedSignature
from misbehaviour_tool.identity import Identity

log = structlog.get_logger()

MESSAGE_PREFIX = b"Lightning Signed Message:"
RECOVERABLE_SIG_LEN = 65
HEADER_BASE = 31


def sha256d(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def message_digest(message: bytes) -> bytes:
    return sha256d(MESSAGE_PREFIX + message)


def generate_keypair() -> tuple[SigningKey, VerifyingKey]:
    """Create a fresh random secp256k1 key pair."""
    secret = SigningKey.from_string(PrivateKey().to_bytes(), curve=SECP256k1)
    return secret, secret.get_verifying_key()


def _recovery_candidates(digest: bytes, rs: bytes) -> list[VerifyingKey]:
    return VerifyingKey.from_public_key_recovery_with_digest(
        rs,
        digest,
        SECP256k1,
        hashfunc=hashlib.sha256,
        sigdecode=sigdecode_string,
    )


def sign(message: bytes, secret_key: SigningKey) -> str:
    """Sign ``message`` and return the z-base-32 recoverable signature."""
    digest = message_digest(message)
    rs = secret_key.sign_digest_deterministic(
        digest, hashfunc=hashlib.sha256, sigencode=sigencode_string_canonize
    )

    # Candidates come back ordered by recovery id (even R first)
    expected = secret_key.get_verifying_key().to_string("compressed")
    for recovery_id, candidate in enumerate(_recovery_candidates(digest, rs)):
        if candidate.to_string("compressed") == expected:
            return zbase32.encode(bytes([HEADER_BASE + recovery_id]) + rs)

    raise RuntimeError("Signature does not recover to the signing key")


def recover_pk(message: bytes, signature: str | None) -> VerifyingKey:
    """
    Recover the public key that produced ``signature`` over ``message``.

    Raises:
        MalformedSignature: if the signature is missing, cannot be decoded,
            or no key can be recovered from it.
    """
    if not signature:
        raise MalformedSignature("Missing signature")

    try:
        raw = zbase32.decode(signature)
    except ValueError as e:
        raise MalformedSignature(str(e)) from e

    if len(raw) != RECOVERABLE_SIG_LEN:
        raise MalformedSignature(
            f"Expected {RECOVERABLE_SIG_LEN} signature bytes, got {len(raw)}"
        )

    recovery_id = raw[0] - HEADER_BASE
    if recovery_id not in (0, 1):
        raise MalformedSignature(f"Unsupported signature header: {raw[0]}")

    try:
        candidates = _recovery_candidates(message_digest(message), raw[1:])
    except (MalformedPointError, NumberTheoryError, ValueError, ZeroDivisionError) as e:
        raise MalformedSignature(f"Public key recovery failed: {e}") from e

    if len(candidates) <= recovery_id:
        raise MalformedSignature("Public key recovery failed")
    return candidates[recovery_id]


def recover_identity(message: bytes, signature: str | None) -> bytes:
    """Return the compressed encoding of the key recovered from ``signature``."""
    return recover_pk(message, signature).to_string("compressed")


def verify_identity(message: bytes, signature: str | None, expected: Identity) -> bool:
    """Check that ``signature`` over ``message`` was made by ``expected``."""
    recovered = recover_identity(message, signature)
    matches = recovered == expected.serialize()
    if not matches:
        log.debug(
            "signature_signer_mismatch",
            expected=expected.to_hex(),
            recovered=recovered.hex(),
        )
    return matches
