"""Unit tests for the blockchain cross-reference check."""

from __future__ import annotations

import pytest

from misbehaviour_tool.chain import (
    canonical_serialization,
    check_broadcast,
    fetch_transaction,
    locator_to_txid,
)
from misbehaviour_tool.errors import (
    ProviderError,
    ProviderTimeout,
    ProviderTimeoutError,
    ProviderUnavailable,
    ReceiptVerificationFailed,
    TransactionNotResponded,
)
from misbehaviour_tool.receipts import Appointment
from tests.helpers import FakeProvider, make_raw_tx, txid_of


@pytest.fixture
def appointment(raw_tx) -> Appointment:
    return Appointment(bytes.fromhex(txid_of(raw_tx))[::-1], raw_tx)


class TestLocatorToTxid:
    def test_reverses_byte_order(self) -> None:
        locator = bytes(range(32))

        assert locator_to_txid(locator) == bytes(range(31, -1, -1)).hex()

    def test_matches_transaction_id(self, appointment, raw_tx) -> None:
        assert locator_to_txid(appointment.locator) == txid_of(raw_tx)


class TestCanonicalSerialization:
    def test_round_trips_raw_transaction(self, raw_tx) -> None:
        assert canonical_serialization(raw_tx) == raw_tx

    @pytest.mark.parametrize(
        "raw",
        [b"", b"\x01", b"\x02\x00\x00\x00", b"\xff" * 10],
    )
    def test_undecodable_bytes(self, raw: bytes) -> None:
        with pytest.raises(ProviderUnavailable):
            canonical_serialization(raw)


class TestFetchTransaction:
    async def test_returns_bytes(self, provider, raw_tx) -> None:
        assert await fetch_transaction(provider, txid_of(raw_tx), 1.0) == raw_tx

    async def test_not_found(self) -> None:
        with pytest.raises(TransactionNotResponded):
            await fetch_transaction(FakeProvider(), "00" * 32, 1.0)

    async def test_provider_error(self) -> None:
        provider = FakeProvider(error=ProviderError("connection refused"))

        with pytest.raises(ProviderUnavailable) as exc_info:
            await fetch_transaction(provider, "00" * 32, 1.0)
        assert not isinstance(exc_info.value, ProviderTimeout)

    async def test_provider_timeout_error(self) -> None:
        provider = FakeProvider(error=ProviderTimeoutError("read timed out"))

        with pytest.raises(ProviderTimeout):
            await fetch_transaction(provider, "00" * 32, 1.0)

    async def test_slow_provider_bounded_by_timeout(self, raw_tx) -> None:
        provider = FakeProvider({txid_of(raw_tx): raw_tx}, delay=0.5)

        with pytest.raises(ProviderTimeout):
            await fetch_transaction(provider, txid_of(raw_tx), 0.05)


class TestCheckBroadcast:
    async def test_matching_transaction(self, appointment, provider, raw_tx) -> None:
        await check_broadcast(appointment, provider, 1.0)

        assert provider.calls == [txid_of(raw_tx)]

    async def test_missing_transaction(self, appointment) -> None:
        with pytest.raises(TransactionNotResponded):
            await check_broadcast(appointment, FakeProvider(), 1.0)

    async def test_different_transaction(self, appointment, raw_tx) -> None:
        # Same txid on chain, different bytes than the tower promised
        other = make_raw_tx(amount=1000)
        provider = FakeProvider({txid_of(raw_tx): other})

        with pytest.raises(ReceiptVerificationFailed):
            await check_broadcast(appointment, provider, 1.0)
