# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Raw-message signature verification for Substrate and Ethereum keys.

32-byte keys are checked as sr25519 first, then ed25519; 20-byte keys
are checked by secp256k1 public-key recovery over the keccak-256 hash of
the message.  Wallet extensions sign ``<Bytes>{message}</Bytes>`` rather
than the bare message, so both forms are tried.

A 65-byte signature on a 32-byte key is treated as a SCALE
``MultiSignature``: the leading byte selects the scheme
(``0`` ed25519, ``1`` sr25519) and the remaining 64 bytes are the
signature.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterator, Optional

import pysodium
import sr25519
from eth_keys import keys
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as EthKeysValidationError
from eth_utils import keccak

from siws.address import Address
from siws.config import BYTES_WRAP_PREFIX, BYTES_WRAP_SUFFIX
from siws.exceptions import SignatureBackendError

logger = logging.getLogger(__name__)

__all__ = ["SignatureVerifier", "decode_signature", "get_default_verifier"]

_SIG_LEN = 64
_MULTI_SIG_LEN = 65
_ECDSA_SIG_LEN = 65

_MULTI_ED25519 = 0
_MULTI_SR25519 = 1

_SELF_TEST_SEED = bytes(range(32))
_SELF_TEST_MESSAGE = b"siws self-test"


def decode_signature(signature: str) -> bytes:
    """Decode a ``0x``-prefixed hex signature.

    Raises:
        ValueError: If *signature* is not hex.
    """
    body = signature[2:] if signature.startswith("0x") else signature
    return bytes.fromhex(body)


def _message_variants(message: bytes) -> Iterator[bytes]:
    yield message
    if not (message.startswith(BYTES_WRAP_PREFIX) and message.endswith(BYTES_WRAP_SUFFIX)):
        yield BYTES_WRAP_PREFIX + message + BYTES_WRAP_SUFFIX


# ---------------------------------------------------------------------------
# Scheme primitives
# ---------------------------------------------------------------------------

def _verify_sr25519(message: bytes, signature: bytes, public_key: bytes) -> bool:
    try:
        return bool(sr25519.verify(signature, message, public_key))
    except (ValueError, TypeError):
        return False


def _verify_ed25519(message: bytes, signature: bytes, public_key: bytes) -> bool:
    try:
        pysodium.crypto_sign_verify_detached(signature, message, public_key)
    except ValueError:
        return False
    return True


def _verify_secp256k1(message: bytes, signature: bytes, eth_address: bytes) -> bool:
    if len(signature) != _ECDSA_SIG_LEN:
        return False
    v = signature[-1]
    # Ethereum tooling reports v as 27/28.
    if v >= 27:
        signature = signature[:-1] + bytes([v - 27])
    try:
        recovered = keys.Signature(signature_bytes=signature).recover_public_key_from_msg_hash(
            keccak(message)
        )
    except (BadSignature, EthKeysValidationError, ValueError):
        return False
    return recovered.to_canonical_address() == eth_address


# ---------------------------------------------------------------------------
# Verifier
# ---------------------------------------------------------------------------

class SignatureVerifier:
    """Verifies signatures by the key an :class:`Address` names.

    :meth:`ensure_ready` runs a one-time known-answer self test of the
    crypto backends; it is idempotent and safe to await concurrently.
    """

    def __init__(self) -> None:
        self._ready = False
        self._lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self._ready

    async def ensure_ready(self) -> None:
        if self._ready:
            return
        async with self._lock:
            if self._ready:
                return
            await asyncio.to_thread(self._self_test)
            self._ready = True
            logger.info("Signature backends ready (sr25519, ed25519, secp256k1)")

    @staticmethod
    def _self_test() -> None:
        public, secret = sr25519.pair_from_seed(_SELF_TEST_SEED)
        sr_sig = sr25519.sign((public, secret), _SELF_TEST_MESSAGE)
        if not _verify_sr25519(_SELF_TEST_MESSAGE, sr_sig, public):
            raise SignatureBackendError("sr25519 backend failed its self test")

        pk, sk = pysodium.crypto_sign_seed_keypair(_SELF_TEST_SEED)
        ed_sig = pysodium.crypto_sign_detached(_SELF_TEST_MESSAGE, sk)
        if not _verify_ed25519(_SELF_TEST_MESSAGE, ed_sig, pk):
            raise SignatureBackendError("ed25519 backend failed its self test")

    def verify(self, message: bytes, signature: bytes, address: Address) -> bool:
        """True if *signature* over *message* was made by *address*'s key."""
        for candidate in _message_variants(message):
            if self._verify_once(candidate, signature, address):
                return True
        logger.debug("Signature did not verify for %d-byte key", len(address.raw))
        return False

    @staticmethod
    def _verify_once(message: bytes, signature: bytes, address: Address) -> bool:
        if address.is_ethereum:
            return _verify_secp256k1(message, signature, address.raw)

        if len(signature) == _MULTI_SIG_LEN:
            scheme, raw = signature[0], signature[1:]
            if scheme == _MULTI_SR25519:
                return _verify_sr25519(message, raw, address.raw)
            if scheme == _MULTI_ED25519:
                return _verify_ed25519(message, raw, address.raw)
            return False

        if len(signature) != _SIG_LEN:
            return False
        return (
            _verify_sr25519(message, signature, address.raw)
            or _verify_ed25519(message, signature, address.raw)
        )


_default_verifier: Optional[SignatureVerifier] = None


def get_default_verifier() -> SignatureVerifier:
    """Get or create the process-wide verifier."""
    global _default_verifier
    if _default_verifier is None:
        _default_verifier = SignatureVerifier()
    return _default_verifier
