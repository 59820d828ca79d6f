"""Error taxonomy for receipt verification.

Two families live here:

- Verification failures: terminal outcomes of a verification run. Each one
  carries the :class:`Outcome` it maps to, so the orchestrator can turn it
  into a result without a lookup table.
- Provider errors: raised by blockchain data providers and translated into
  verification failures by the cross-reference checker.
"""

from __future__ import annotations

from enum import Enum


class Outcome(str, Enum):
    """Terminal verdicts of a verification run."""

    VERIFIED = "Verified"
    MALFORMED_SIGNATURE = "MalformedSignature"
    RECEIPT_VERIFICATION_FAILED = "ReceiptVerificationFailed"
    APPOINTMENT_OUTSIDE_SUBSCRIPTION = "AppointmentOutsideSubscription"
    TRANSACTION_NOT_RESPONDED = "TransactionNotResponded"
    PROVIDER_UNAVAILABLE = "ProviderUnavailable"
    PROVIDER_TIMEOUT = "ProviderTimeout"


class MisbehaviourToolError(Exception):
    """Base class for every error raised by this package."""


class InvalidKeyEncoding(MisbehaviourToolError, ValueError):
    """Bytes do not encode a compressed secp256k1 public key."""


class VerificationFailure(MisbehaviourToolError):
    """A verification stage rejected the bundle."""

    outcome: Outcome = Outcome.RECEIPT_VERIFICATION_FAILED


class MalformedSignature(VerificationFailure):
    """A signature could not be decoded or no key could be recovered from it."""

    outcome = Outcome.MALFORMED_SIGNATURE


class ReceiptVerificationFailed(VerificationFailure):
    """A signature recovered to the wrong key, or broadcast bytes differ."""

    outcome = Outcome.RECEIPT_VERIFICATION_FAILED


class AppointmentOutsideSubscription(VerificationFailure):
    """The tower accepted an appointment outside the paid-for window."""

    outcome = Outcome.APPOINTMENT_OUTSIDE_SUBSCRIPTION


class TransactionNotResponded(VerificationFailure):
    """The expected transaction is not known to the blockchain provider."""

    outcome = Outcome.TRANSACTION_NOT_RESPONDED


class ProviderUnavailable(VerificationFailure):
    """The blockchain provider failed for a reason other than "not found"."""

    outcome = Outcome.PROVIDER_UNAVAILABLE


class ProviderTimeout(ProviderUnavailable):
    """The blockchain provider did not answer in time."""

    outcome = Outcome.PROVIDER_TIMEOUT


class TransactionNotFound(MisbehaviourToolError):
    """Provider-level: no transaction with the requested id."""


class ProviderError(MisbehaviourToolError):
    """Provider-level: transport, protocol or server error."""


class ProviderTimeoutError(ProviderError):
    """Provider-level: the request exceeded its timeout."""


__all__ = [
    "AppointmentOutsideSubscription",
    "InvalidKeyEncoding",
    "MalformedSignature",
    "MisbehaviourToolError",
    "Outcome",
    "ProviderError",
    "ProviderTimeout",
    "ProviderTimeoutError",
    "ProviderUnavailable",
    "ReceiptVerificationFailed",
    "TransactionNotFound",
    "TransactionNotResponded",
    "VerificationFailure",
]
