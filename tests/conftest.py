# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Shared test fixtures for the SIWS test suite.

Provides message parameter factories, real sr25519 / ed25519 / secp256k1
key material, and in-memory stand-ins for the wallet signer and the
identifier resolver.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import pysodium
import pytest
import sr25519
from eth_keys import keys
from eth_utils import keccak

from siws import ss58
from siws.exceptions import ResolutionError

VALID_ADDRESS = "5DFMVCaWNPcSdPVmK7d6g81ZV58vw5jkKbQk8vR4FSxyhJBD"

# One key, three networks.
ALICE = {
    "generic": "5Hjayx5oBSeYYKdNgTwEcDDGFhGafAXLPW8HhayxdiGRnA18",
    "polkadot": "16ft8HLs3Dv1yrdte6zEkN3R7KGEMU5UTzrmrsyKBoHwxcnP",
    "kusama": "JFCeGRfoofUHySpTAkHWAaGQHYpTqLWqsy36FFv7WUvXQFy",
}

# Well-known development account.
DEV_ALICE_SS58 = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
DEV_ALICE_PUBKEY = "0xd43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d"


def now_ms() -> int:
    return int(time.time() * 1000)


# =========================================================================
# Message parameters
# =========================================================================

@pytest.fixture
def valid_params() -> Dict[str, Any]:
    """Keyword arguments for a valid message that expires in 30 seconds."""
    return {
        "domain": "siws.xyz",
        "address": VALID_ADDRESS,
        "statement": "This is a test statement",
        "uri": "https://siws.xyz",
        "nonce": "1234567890",
        "chain_id": "polkadot",
        "expiration_time": now_ms() + 30_000,
    }


@pytest.fixture
def full_params(valid_params: Dict[str, Any]) -> Dict[str, Any]:
    """Every optional field populated."""
    now = now_ms()
    return {
        **valid_params,
        "azero_id": "siws.azero",
        "chain_name": "Aleph Zero",
        "issued_at": now,
        "not_before": now + 1_000,
        "request_id": "request-42",
        "resources": ["https://siws.xyz/terms", "ipfs://bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"],
    }


# =========================================================================
# Key material
# =========================================================================

@pytest.fixture
def sr25519_account() -> Tuple[str, Callable[[bytes], bytes]]:
    """An sr25519 account as ``(ss58_address, sign)``."""
    public, secret = sr25519.pair_from_seed(bytes([7] * 32))

    def sign(message: bytes) -> bytes:
        return sr25519.sign((public, secret), message)

    return ss58.encode(public), sign


@pytest.fixture
def ed25519_account() -> Tuple[str, Callable[[bytes], bytes]]:
    """An ed25519 account as ``(ss58_address, sign)``."""
    pk, sk = pysodium.crypto_sign_seed_keypair(bytes([9] * 32))

    def sign(message: bytes) -> bytes:
        return pysodium.crypto_sign_detached(message, sk)

    return ss58.encode(pk), sign


@pytest.fixture
def ethereum_account() -> Tuple[str, Callable[[bytes], bytes]]:
    """A secp256k1 account as ``(0x_address, sign)``; signs keccak(message)."""
    private_key = keys.PrivateKey(bytes([3] * 32))

    def sign(message: bytes) -> bytes:
        return private_key.sign_msg_hash(keccak(message)).to_bytes()

    return private_key.public_key.to_checksum_address(), sign


# =========================================================================
# Collaborator stand-ins
# =========================================================================

class FakeSigner:
    """Records sign_raw payloads and returns a fixed signature."""

    def __init__(self, signature: str = "0xmockedSignature"):
        self.signature = signature
        self.calls: List[Dict[str, str]] = []

    async def sign_raw(self, payload: Dict[str, str]) -> Dict[str, Any]:
        self.calls.append(payload)
        return {"signature": self.signature}


class FakeResolver:
    """Resolves identifiers from a fixed mapping."""

    def __init__(self, mapping: Optional[Dict[str, str]] = None, error: Optional[Exception] = None):
        self.mapping = mapping or {}
        self.error = error
        self.calls: List[str] = []

    async def resolve(self, identifier: str) -> str:
        self.calls.append(identifier)
        if self.error is not None:
            raise self.error
        if identifier not in self.mapping:
            raise ResolutionError.not_found(identifier)
        return self.mapping[identifier]


@pytest.fixture
def fake_signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def fake_resolver() -> FakeResolver:
    return FakeResolver({"siws.azero": VALID_ADDRESS})
