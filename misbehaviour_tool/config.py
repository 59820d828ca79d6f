"""
Configuration and constants.

Values are read from environment variables when the ``from_env``
constructors are called; invalid numeric values fall back to defaults.

Environment Variables (Provider):
- MISBEHAVIOUR_PROVIDER: "bitcoind" or "esplora" (default: bitcoind)
- BTC_NETWORK: mainnet, testnet, signet or regtest (default: mainnet)
- BTC_RPC_HOST: bitcoind host (default: localhost)
- BTC_RPC_PORT: bitcoind RPC port (default: network RPC port)
- BTC_RPC_USER / BTC_RPC_PASSWORD: bitcoind RPC credentials
- ESPLORA_URL: Esplora API base URL (default: Blockstream for the network)
- PROVIDER_TIMEOUT: seconds to wait for the provider (default: 10.0)

Environment Variables (Server):
- API_HOST: bind address (default: 127.0.0.1)
- API_PORT: bind port (default: 8000)

Environment Variables (Logging):
- LOG_LEVEL: log level name (default: INFO)
- LOG_FORMAT: "production" (JSON) or "development" (console)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

PROVIDER_KINDS = ("bitcoind", "esplora")

# Network parameters
NETWORK_CONFIG = {
    "mainnet": {"rpc_port": 8332, "esplora_url": "https://blockstream.info/api"},
    "testnet": {"rpc_port": 18332, "esplora_url": "https://blockstream.info/testnet/api"},
    "signet": {"rpc_port": 38332, "esplora_url": "https://mempool.space/signet/api"},
    "regtest": {"rpc_port": 18443, "esplora_url": "http://localhost:3002"},
}

DEFAULT_NETWORK = "mainnet"
DEFAULT_RPC_HOST = "localhost"
DEFAULT_PROVIDER_TIMEOUT = 10.0
DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8000
DEFAULT_LOG_FORMAT = "production"


def _get_int_env(key: str, default: int) -> int:
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def network_params(network: str) -> dict:
    """Return the parameters of ``network``, raising ValueError if unknown."""
    if network not in NETWORK_CONFIG:
        raise ValueError(
            f"Unsupported network: {network} (expected one of {', '.join(NETWORK_CONFIG)})"
        )
    return NETWORK_CONFIG[network]


@dataclass(frozen=True)
class ProviderConfig:
    """Connection parameters for the blockchain data provider.

    Attributes:
        kind: "bitcoind" (JSON-RPC) or "esplora" (REST).
        network: Network selector, picks default port and Esplora URL.
        host: bitcoind host.
        port: bitcoind RPC port; None means the network default.
        user: bitcoind RPC user.
        password: bitcoind RPC password.
        esplora_url: Esplora base URL; None means the network default.
        timeout: Seconds to wait for a transaction fetch.
    """

    kind: str = "bitcoind"
    network: str = DEFAULT_NETWORK
    host: str = DEFAULT_RPC_HOST
    port: int | None = None
    user: str | None = None
    password: str | None = field(default=None, repr=False)
    esplora_url: str | None = None
    timeout: float = DEFAULT_PROVIDER_TIMEOUT

    def __post_init__(self) -> None:
        if self.kind not in PROVIDER_KINDS:
            raise ValueError(f"Unsupported provider kind: {self.kind}")
        params = network_params(self.network)
        if self.timeout <= 0:
            raise ValueError(f"Provider timeout must be positive, got {self.timeout}")
        # Fill network defaults; frozen, so go through object.__setattr__
        if self.port is None:
            object.__setattr__(self, "port", params["rpc_port"])
        if self.esplora_url is None:
            object.__setattr__(self, "esplora_url", params["esplora_url"])

    @classmethod
    def from_env(cls, **overrides) -> ProviderConfig:
        """Build from the environment; non-None ``overrides`` take precedence."""
        port = _get_int_env("BTC_RPC_PORT", 0)
        values = dict(
            kind=os.environ.get("MISBEHAVIOUR_PROVIDER", "bitcoind"),
            network=os.environ.get("BTC_NETWORK", DEFAULT_NETWORK),
            host=os.environ.get("BTC_RPC_HOST", DEFAULT_RPC_HOST),
            port=port or None,
            user=os.environ.get("BTC_RPC_USER"),
            password=os.environ.get("BTC_RPC_PASSWORD"),
            esplora_url=os.environ.get("ESPLORA_URL"),
            timeout=_get_float_env("PROVIDER_TIMEOUT", DEFAULT_PROVIDER_TIMEOUT),
        )
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


@dataclass(frozen=True)
class ServerConfig:
    """Bind address of the HTTP API."""

    host: str = DEFAULT_API_HOST
    port: int = DEFAULT_API_PORT

    @classmethod
    def from_env(cls) -> ServerConfig:
        return cls(
            host=os.environ.get("API_HOST", DEFAULT_API_HOST),
            port=_get_int_env("API_PORT", DEFAULT_API_PORT),
        )


def log_format() -> str:
    return os.environ.get("LOG_FORMAT", DEFAULT_LOG_FORMAT)
