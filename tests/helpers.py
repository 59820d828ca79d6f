"""Test helpers: an in-memory provider and signed bundle builders."""

from __future__ import annotations

import time
from dataclasses import replace

from bitcoinutils.script import Script
from bitcoinutils.transactions import Transaction, TxInput, TxOutput

from misbehaviour_tool.crypto import sign
from misbehaviour_tool.errors import TransactionNotFound
from misbehaviour_tool.identity import TowerId, UserId
from misbehaviour_tool.receipts import Appointment, AppointmentReceipt, RegistrationReceipt
from misbehaviour_tool.verifier import VerificationBundle

SUBSCRIPTION_START = 100
SUBSCRIPTION_EXPIRY = 4420


class FakeProvider:
    """In-memory provider keyed by txid hex."""

    def __init__(self, transactions=None, error=None, delay=0.0):
        self.transactions = dict(transactions or {})
        self.error = error
        self.delay = delay
        self.calls = []
        self.closed = False

    def get_raw_transaction(self, txid: str) -> bytes:
        self.calls.append(txid)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        try:
            return self.transactions[txid]
        except KeyError:
            raise TransactionNotFound(txid) from None

    def close(self) -> None:
        self.closed = True


def make_raw_tx(amount: int = 3700, data: str = "deadbeef") -> bytes:
    """Build a small unsigned transaction and return its serialization."""
    txin = TxInput("4fd83128fb2df7cd25d96fdb6ed9bea26de755f212e37c3aa017641d3d2d2c6d", 0)
    txout = TxOutput(amount, Script(["OP_RETURN", data]))
    return bytes.fromhex(Transaction([txin], [txout]).serialize())


def txid_of(raw_tx: bytes) -> str:
    return Transaction.from_raw(raw_tx.hex()).get_txid()


def make_bundle(
    user_key,
    tower_key,
    raw_tx: bytes,
    start_block: int = SUBSCRIPTION_START + 1,
    receipt_signer=None,
    registration_signer=None,
    appointment_signer=None,
) -> VerificationBundle:
    """Build a signed bundle whose appointment points at ``raw_tx``.

    The ``*_signer`` arguments replace the legitimate signing key of the
    corresponding artifact.
    """
    user_sk, user_pk = user_key
    tower_sk, tower_pk = tower_key
    user_id = UserId.from_verifying_key(user_pk)

    reg_receipt = RegistrationReceipt(user_id, 21, SUBSCRIPTION_START, SUBSCRIPTION_EXPIRY)
    reg_receipt = replace(
        reg_receipt, signature=sign(reg_receipt.to_bytes(), registration_signer or tower_sk)
    )

    locator = bytes.fromhex(txid_of(raw_tx))[::-1]
    appointment = Appointment(locator, raw_tx)
    user_signature = sign(appointment.to_bytes(), appointment_signer or user_sk)

    app_receipt = AppointmentReceipt(user_signature, start_block)
    app_receipt = replace(
        app_receipt, signature=sign(app_receipt.to_bytes(), receipt_signer or tower_sk)
    )

    return VerificationBundle(
        user_id=user_id,
        tower_id=TowerId.from_verifying_key(tower_pk),
        reg_receipt=reg_receipt,
        app_receipt=app_receipt,
        appointment=appointment,
        user_signature=user_signature,
    )


