"""
Pytest fixtures for misbehaviour tool tests.

Testing Standards:
- Async tests run under pytest-asyncio (auto mode enabled in pyproject.toml)
- Blockchain access always goes through FakeProvider, never the network
"""

from __future__ import annotations

import pytest

from misbehaviour_tool.crypto import generate_keypair
from misbehaviour_tool.verifier import VerificationBundle
from tests.helpers import FakeProvider, make_bundle, make_raw_tx, txid_of


@pytest.fixture
def user_key():
    return generate_keypair()


@pytest.fixture
def tower_key():
    return generate_keypair()


@pytest.fixture
def other_key():
    return generate_keypair()


@pytest.fixture
def raw_tx() -> bytes:
    return make_raw_tx()


@pytest.fixture
def bundle(user_key, tower_key, raw_tx) -> VerificationBundle:
    return make_bundle(user_key, tower_key, raw_tx)


@pytest.fixture
def provider(raw_tx) -> FakeProvider:
    return FakeProvider({txid_of(raw_tx): raw_tx})
