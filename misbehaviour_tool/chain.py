"""
Blockchain cross-reference.

Checks whether the tower actually broadcast the penalty it promised: the
appointment locator is taken as the breach transaction id, the transaction
is fetched from a provider and its serialization must match the
appointment's encrypted blob byte for byte.
"""

from __future__ import annotations

import asyncio
import struct

import structlog
from bitcoinutils.transactions import Transaction

from misbehaviour_tool.errors import (
    ProviderError,
    ProviderTimeout,
    ProviderTimeoutError,
    ProviderUnavailable,
    ReceiptVerificationFailed,
    TransactionNotFound,
    TransactionNotResponded,
)
from misbehaviour_tool.providers import TransactionProvider
from misbehaviour_tool.receipts import Appointment

log = structlog.get_logger()


def locator_to_txid(locator: bytes) -> str:
    """Reinterpret a locator as a sha256d digest and return its txid hex.

    Transaction ids are displayed with their bytes reversed.
    """
    return locator[::-1].hex()


def canonical_serialization(raw_tx: bytes) -> bytes:
    """Parse ``raw_tx`` and serialize it back in canonical form.

    Raises:
        ProviderUnavailable: if the bytes are not a transaction.
    """
    try:
        tx = Transaction.from_raw(raw_tx.hex())
        return bytes.fromhex(tx.serialize())
    except (ValueError, IndexError, struct.error) as e:
        raise ProviderUnavailable(f"Provider returned an undecodable transaction: {e}") from e


async def fetch_transaction(provider: TransactionProvider, txid: str, timeout: float) -> bytes:
    """
    Fetch a raw transaction in a worker thread, bounded by ``timeout``.

    Raises:
        TransactionNotResponded: the provider does not know the transaction.
        ProviderTimeout: no answer within ``timeout`` seconds.
        ProviderUnavailable: any other provider failure.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(provider.get_raw_transaction, txid), timeout
        )
    except asyncio.TimeoutError as e:
        raise ProviderTimeout(f"No answer for {txid} within {timeout}s") from e
    except ProviderTimeoutError as e:
        raise ProviderTimeout(str(e)) from e
    except TransactionNotFound as e:
        raise TransactionNotResponded(f"Transaction {txid} not found: {e}") from e
    except ProviderError as e:
        raise ProviderUnavailable(str(e)) from e


async def check_broadcast(
    appointment: Appointment, provider: TransactionProvider, timeout: float
) -> None:
    """
    Check that the transaction behind ``appointment.locator`` was broadcast
    and serializes to exactly ``appointment.encrypted_blob``.

    Raises:
        ReceiptVerificationFailed: the transaction exists but differs.
        TransactionNotResponded, ProviderTimeout, ProviderUnavailable:
            see :func:`fetch_transaction`.
    """
    txid = locator_to_txid(appointment.locator)
    raw_tx = await fetch_transaction(provider, txid, timeout)
    matches = canonical_serialization(raw_tx) == appointment.encrypted_blob

    log.info("broadcast_checked", txid=txid, size=len(raw_tx), passed=matches)
    if not matches:
        raise ReceiptVerificationFailed(
            f"Transaction {txid} does not match the appointment's encrypted blob"
        )
