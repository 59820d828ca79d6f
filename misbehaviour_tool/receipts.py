"""
Appointments and the receipts a tower hands out for them.

All objects are immutable. Each one has a canonical byte encoding
(``to_bytes``) which is what gets signed; integers are encoded as
unsigned 32-bit big-endian.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from misbehaviour_tool.identity import UserId

LOCATOR_LEN = 32
DEFAULT_TO_SELF_DELAY = 42
MAX_U32 = 0xFFFFFFFF


def _u32(value: int) -> bytes:
    return struct.pack(">I", value)


def _check_u32(name: str, value: int) -> None:
    if not 0 <= value <= MAX_U32:
        raise ValueError(f"{name} out of range: {value}")


@dataclass(frozen=True)
class Appointment:
    """A client's request to watch for a breach and publish a penalty."""

    locator: bytes
    encrypted_blob: bytes
    to_self_delay: int = DEFAULT_TO_SELF_DELAY

    def __post_init__(self) -> None:
        if len(self.locator) != LOCATOR_LEN:
            raise ValueError(
                f"Locator must be {LOCATOR_LEN} bytes, got {len(self.locator)}"
            )
        _check_u32("to_self_delay", self.to_self_delay)

    def to_bytes(self) -> bytes:
        return self.locator + self.encrypted_blob + _u32(self.to_self_delay)


@dataclass(frozen=True)
class RegistrationReceipt:
    """Tower-signed proof of a subscription covering a block range."""

    user_id: UserId
    available_slots: int
    subscription_start: int
    subscription_expiry: int
    signature: str | None = None

    def __post_init__(self) -> None:
        _check_u32("available_slots", self.available_slots)
        _check_u32("subscription_start", self.subscription_start)
        _check_u32("subscription_expiry", self.subscription_expiry)
        if self.subscription_start > self.subscription_expiry:
            raise ValueError(
                f"Subscription starts after it expires "
                f"({self.subscription_start} > {self.subscription_expiry})"
            )

    def to_bytes(self) -> bytes:
        return (
            self.user_id.serialize()
            + _u32(self.available_slots)
            + _u32(self.subscription_start)
            + _u32(self.subscription_expiry)
        )


@dataclass(frozen=True)
class AppointmentReceipt:
    """Tower-signed proof that an appointment was accepted.

    ``user_signature`` is the client's signature over the appointment; by
    signing the receipt the tower commits to that exact appointment.
    """

    user_signature: str
    start_block: int
    signature: str | None = None

    def __post_init__(self) -> None:
        _check_u32("start_block", self.start_block)

    def to_bytes(self) -> bytes:
        return self.user_signature.encode("utf-8") + _u32(self.start_block)
