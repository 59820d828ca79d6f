"""
Blockchain data providers.

A provider answers one question: what are the raw bytes of the transaction
with a given id. Two backends are available, a bitcoind node over JSON-RPC
and an Esplora REST API (Blockstream / mempool.space style).

Providers are synchronous and blocking; callers are expected to run them
off the event loop with a bounded timeout.
"""

from __future__ import annotations

import itertools
from typing import Protocol

import requests
import structlog

from misbehaviour_tool.config import ProviderConfig
from misbehaviour_tool.errors import ProviderError, ProviderTimeoutError, TransactionNotFound

log = structlog.get_logger()

# bitcoind: "No such mempool or blockchain transaction"
RPC_INVALID_ADDRESS_OR_KEY = -5


class TransactionProvider(Protocol):
    def get_raw_transaction(self, txid: str) -> bytes: ...

    def close(self) -> None: ...


def _decode_hex(txid: str, raw_hex: object) -> bytes:
    if not isinstance(raw_hex, str):
        raise ProviderError(f"Unexpected response for {txid}: {raw_hex!r}")
    try:
        return bytes.fromhex(raw_hex.strip())
    except ValueError as e:
        raise ProviderError(f"Provider returned invalid hex for {txid}") from e


class BitcoindProvider:
    """
    Fetch transactions from a bitcoind node.

    The HTTP session is reused across calls for connection pooling, but
    credentials are attached to each request and never stored on it.
    """

    def __init__(self, host, port, user=None, password=None, timeout=10.0, session=None):
        self.url = f"http://{host}:{port}/"
        self.timeout = timeout
        self._auth = (user, password) if user is not None else None
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    def _call(self, method, *params):
        payload = {
            "jsonrpc": "1.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }
        try:
            resp = self._session.post(
                self.url, json=payload, auth=self._auth, timeout=self.timeout
            )
        except requests.Timeout as e:
            raise ProviderTimeoutError(f"{method} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise ProviderError(f"{method} request failed: {e}") from e

        # bitcoind reports RPC errors with HTTP 404/500 and a JSON body
        try:
            body = resp.json()
        except ValueError:
            raise ProviderError(f"{method} returned HTTP {resp.status_code}") from None

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            if error.get("code") == RPC_INVALID_ADDRESS_OR_KEY:
                raise TransactionNotFound(error.get("message", "transaction not found"))
            raise ProviderError(f"{method} failed: {error}")
        if resp.status_code != 200:
            raise ProviderError(f"{method} returned HTTP {resp.status_code}")
        return body.get("result")

    def get_raw_transaction(self, txid: str) -> bytes:
        log.debug("bitcoind_getrawtransaction", txid=txid, url=self.url)
        return _decode_hex(txid, self._call("getrawtransaction", txid))

    def close(self) -> None:
        self._session.close()


class EsploraProvider:
    """Fetch transactions from an Esplora REST API."""

    def __init__(self, base_url, timeout=10.0, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_raw_transaction(self, txid: str) -> bytes:
        url = f"{self.base_url}/tx/{txid}/hex"
        log.debug("esplora_get_tx", txid=txid, url=url)
        try:
            resp = self._session.get(url, timeout=self.timeout)
        except requests.Timeout as e:
            raise ProviderTimeoutError(f"GET {url} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise ProviderError(f"GET {url} failed: {e}") from e

        if resp.status_code == 404:
            raise TransactionNotFound(f"Transaction {txid} not found")
        if resp.status_code != 200:
            raise ProviderError(f"GET {url} returned HTTP {resp.status_code}")
        return _decode_hex(txid, resp.text)

    def close(self) -> None:
        self._session.close()


def build_provider(config: ProviderConfig) -> TransactionProvider:
    """Create the provider described by ``config``."""
    if config.kind == "esplora":
        return EsploraProvider(config.esplora_url, timeout=config.timeout)
    return BitcoindProvider(
        config.host,
        config.port,
        user=config.user,
        password=config.password,
        timeout=config.timeout,
    )
