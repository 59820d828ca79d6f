"""Detect Lightning watchtower misbehaviour from the receipts it signed."""

from misbehaviour_tool.errors import Outcome
from misbehaviour_tool.identity import TowerId, UserId
from misbehaviour_tool.receipts import Appointment, AppointmentReceipt, RegistrationReceipt
from misbehaviour_tool.verifier import (
    ReceiptVerifier,
    VerificationBundle,
    VerificationResult,
    verify_bundle,
)

__version__ = "0.1.0"

__all__ = [
    "Appointment",
    "AppointmentReceipt",
    "Outcome",
    "ReceiptVerifier",
    "RegistrationReceipt",
    "TowerId",
    "UserId",
    "VerificationBundle",
    "VerificationResult",
    "verify_bundle",
]
