"""Unit tests for the bitcoind and Esplora providers (HTTP mocked)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from misbehaviour_tool.config import ProviderConfig
from misbehaviour_tool.errors import ProviderError, ProviderTimeoutError, TransactionNotFound
from misbehaviour_tool.providers import BitcoindProvider, EsploraProvider, build_provider

TXID = "ab" * 32


def _response(status_code=200, json_body=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    if json_body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = json_body
    return resp


class TestBitcoindProvider:
    def test_returns_decoded_transaction(self) -> None:
        session = MagicMock()
        session.post.return_value = _response(json_body={"result": "0200", "error": None, "id": 1})
        provider = BitcoindProvider("node", 8332, "alice", "secret", timeout=3.0, session=session)

        assert provider.get_raw_transaction(TXID) == b"\x02\x00"

        _, kwargs = session.post.call_args
        assert session.post.call_args[0][0] == "http://node:8332/"
        assert kwargs["json"]["method"] == "getrawtransaction"
        assert kwargs["json"]["params"] == [TXID]
        assert kwargs["auth"] == ("alice", "secret")
        assert kwargs["timeout"] == 3.0

    def test_credentials_not_stored_on_session(self) -> None:
        session = requests.Session()
        provider = BitcoindProvider("node", 8332, "alice", "secret", session=session)

        assert session.auth is None
        provider.close()

    def test_not_found(self) -> None:
        session = MagicMock()
        session.post.return_value = _response(
            500,
            {"result": None, "error": {"code": -5, "message": "No such mempool or blockchain transaction"}},
        )
        provider = BitcoindProvider("node", 8332, session=session)

        with pytest.raises(TransactionNotFound):
            provider.get_raw_transaction(TXID)

    def test_other_rpc_error(self) -> None:
        session = MagicMock()
        session.post.return_value = _response(
            500, {"result": None, "error": {"code": -28, "message": "Loading block index"}}
        )
        provider = BitcoindProvider("node", 8332, session=session)

        with pytest.raises(ProviderError) as exc_info:
            provider.get_raw_transaction(TXID)
        assert not isinstance(exc_info.value, TransactionNotFound)

    def test_unauthorized(self) -> None:
        session = MagicMock()
        session.post.return_value = _response(401)
        provider = BitcoindProvider("node", 8332, "alice", "wrong", session=session)

        with pytest.raises(ProviderError):
            provider.get_raw_transaction(TXID)

    def test_connection_error(self) -> None:
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        provider = BitcoindProvider("node", 8332, session=session)

        with pytest.raises(ProviderError):
            provider.get_raw_transaction(TXID)

    def test_timeout(self) -> None:
        session = MagicMock()
        session.post.side_effect = requests.Timeout("slow")
        provider = BitcoindProvider("node", 8332, session=session)

        with pytest.raises(ProviderTimeoutError):
            provider.get_raw_transaction(TXID)


class TestEsploraProvider:
    def test_returns_decoded_transaction(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(text="0200\n")
        provider = EsploraProvider("https://blockstream.info/testnet/api/", session=session)

        assert provider.get_raw_transaction(TXID) == b"\x02\x00"
        assert session.get.call_args[0][0] == f"https://blockstream.info/testnet/api/tx/{TXID}/hex"

    def test_not_found(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(404, text="Transaction not found")
        provider = EsploraProvider("https://example.invalid/api", session=session)

        with pytest.raises(TransactionNotFound):
            provider.get_raw_transaction(TXID)

    def test_server_error(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(503)
        provider = EsploraProvider("https://example.invalid/api", session=session)

        with pytest.raises(ProviderError):
            provider.get_raw_transaction(TXID)

    def test_invalid_hex(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(text="<html>")
        provider = EsploraProvider("https://example.invalid/api", session=session)

        with pytest.raises(ProviderError):
            provider.get_raw_transaction(TXID)


class TestBuildProvider:
    def test_bitcoind(self) -> None:
        provider = build_provider(ProviderConfig(network="regtest", host="127.0.0.1"))

        assert isinstance(provider, BitcoindProvider)
        assert provider.url == "http://127.0.0.1:18443/"
        provider.close()

    def test_esplora(self) -> None:
        provider = build_provider(ProviderConfig(kind="esplora", network="testnet", timeout=2.5))

        assert isinstance(provider, EsploraProvider)
        assert provider.base_url == "https://blockstream.info/testnet/api"
        assert provider.timeout == 2.5
        provider.close()
