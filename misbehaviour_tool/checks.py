"""
Receipt chain and subscription window checks.

The receipt chain check proves the tower received and acknowledged a
specific, user-authorized appointment. It says nothing about whether the
tower later acted on it; that is the job of :mod:`misbehaviour_tool.chain`.
"""

from __future__ import annotations

import structlog

from misbehaviour_tool.crypto import verify_identity
from misbehaviour_tool.errors import (
    AppointmentOutsideSubscription,
    MalformedSignature,
    ReceiptVerificationFailed,
)
from misbehaviour_tool.identity import Identity, TowerId, UserId
from misbehaviour_tool.receipts import Appointment, AppointmentReceipt, RegistrationReceipt

log = structlog.get_logger()


def check_signature(appointment: Appointment, signature: str, user_id: UserId) -> bool:
    """Check the user's signature over the appointment."""
    return verify_identity(appointment.to_bytes(), signature, user_id)


def _evaluate(
    name: str, message: bytes, signature: str | None, expected: Identity
) -> bool | MalformedSignature:
    try:
        passed = verify_identity(message, signature, expected)
    except MalformedSignature as e:
        log.info(name, passed=False, malformed=str(e))
        return e
    log.info(name, passed=passed)
    return passed


def check_receipt_chain(
    user_id: UserId,
    tower_id: TowerId,
    reg_receipt: RegistrationReceipt,
    app_receipt: AppointmentReceipt,
    appointment: Appointment,
    user_signature: str,
) -> None:
    """
    Check that the registration receipt, the user's appointment signature and
    the appointment receipt were signed by the expected parties, and that the
    registration belongs to ``user_id``.

    All checks always run and are logged; the verdict is their AND.

    Raises:
        MalformedSignature: if any of the signatures cannot be decoded.
        ReceiptVerificationFailed: if any signature recovers to the wrong key
            or the registration was issued to another user.
    """
    registered_user = reg_receipt.user_id == user_id
    log.info(
        "registration_user_checked",
        registered_user=reg_receipt.user_id.to_hex(),
        passed=registered_user,
    )

    results = [
        _evaluate(
            "registration_receipt_checked",
            reg_receipt.to_bytes(),
            reg_receipt.signature,
            tower_id,
        ),
        _evaluate(
            "user_signature_checked",
            appointment.to_bytes(),
            user_signature,
            user_id,
        ),
        _evaluate(
            "appointment_receipt_checked",
            app_receipt.to_bytes(),
            app_receipt.signature,
            tower_id,
        ),
    ]

    for result in results:
        if isinstance(result, MalformedSignature):
            raise result

    if not (registered_user and all(results)):
        raise ReceiptVerificationFailed(
            "registration_user={}, registration={}, user_signature={}, "
            "appointment_receipt={}".format(registered_user, *results)
        )


def check_subscription_window(
    reg_receipt: RegistrationReceipt, app_receipt: AppointmentReceipt
) -> None:
    """
    Check that the appointment started inside the paid-for subscription.

    Raises:
        AppointmentOutsideSubscription: if ``start_block`` is outside
            ``[subscription_start, subscription_expiry]``.
    """
    in_subscription = (
        reg_receipt.subscription_start
        <= app_receipt.start_block
        <= reg_receipt.subscription_expiry
    )
    log.info(
        "subscription_window_checked",
        subscription_start=reg_receipt.subscription_start,
        subscription_expiry=reg_receipt.subscription_expiry,
        start_block=app_receipt.start_block,
        passed=in_subscription,
    )

    if not in_subscription:
        raise AppointmentOutsideSubscription(
            f"Appointment start block {app_receipt.start_block} outside "
            f"[{reg_receipt.subscription_start}, {reg_receipt.subscription_expiry}]"
        )
