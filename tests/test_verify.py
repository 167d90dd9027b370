# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Integration tests for the SIWS verification pipeline (siws.verify).

Messages are built with the library, signed with real keys, and run
through verify_siws.  Covers each terminal failure code and the order in
which the phases run.
"""

from __future__ import annotations

import time
from unittest.mock import AsyncMock, patch

import pytest

from siws import ss58
from siws.address import Address
from siws.exceptions import (
    InvalidMessageError,
    ResolutionError,
    VerificationError,
    VerificationErrorCode,
)
from siws.message import SiwsMessage
from siws.signature import SignatureVerifier
from siws.verify import verify_siws

VALID_ADDRESS = "5DFMVCaWNPcSdPVmK7d6g81ZV58vw5jkKbQk8vR4FSxyhJBD"


def build_message(address: str, **overrides) -> SiwsMessage:
    params = {
        "domain": "siws.xyz",
        "address": address,
        "statement": "Sign in to siws.xyz",
        "uri": "https://siws.xyz",
        "nonce": "abc123",
        "expiration_time": int(time.time() * 1000) + 60_000,
    }
    params.update(overrides)
    return SiwsMessage(**params)


def sign_hex(sign, text: str) -> str:
    return "0x" + sign(text.encode("utf-8")).hex()


@pytest.fixture
def verifier() -> SignatureVerifier:
    return SignatureVerifier()


async def expect_failure(code: VerificationErrorCode, *args, **kwargs) -> VerificationError:
    with pytest.raises(VerificationError) as exc_info:
        await verify_siws(*args, **kwargs)
    assert exc_info.value.code == code
    return exc_info.value


# =========================================================================
# Successful verification
# =========================================================================

class TestVerifySuccess:
    """Test accepted messages for each key type and wire form."""

    @pytest.mark.asyncio
    async def test_sr25519_text(self, verifier, sr25519_account):
        address, sign = sr25519_account
        text = build_message(address).prepare_message()

        result = await verify_siws(text, sign_hex(sign, text), address, verifier=verifier)

        assert result.nonce == "abc123"
        assert result.address == address
        assert verifier.ready

    @pytest.mark.asyncio
    async def test_wallet_wrapped_signature(self, verifier, sr25519_account):
        address, sign = sr25519_account
        text = build_message(address).prepare_message()
        signature = sign(f"<Bytes>{text}</Bytes>".encode("utf-8"))

        result = await verify_siws(text, signature, address, verifier=verifier)
        assert result.domain == "siws.xyz"

    @pytest.mark.asyncio
    async def test_ed25519_json(self, verifier, ed25519_account):
        address, sign = ed25519_account
        text = build_message(address).prepare_json()

        result = await verify_siws(text, sign_hex(sign, text), address, verifier=verifier)
        assert result.uri == "https://siws.xyz"

    @pytest.mark.asyncio
    async def test_ethereum_key(self, verifier, ethereum_account):
        address, sign = ethereum_account
        text = build_message(address).prepare_message()

        result = await verify_siws(text, sign_hex(sign, text), address, verifier=verifier)
        assert Address.from_text(result.address).is_ethereum

    @pytest.mark.asyncio
    async def test_claimed_address_on_other_network(self, verifier, sr25519_account):
        """The claimed address may use a different SS58 prefix than the message."""
        address, sign = sr25519_account
        text = build_message(address).prepare_message()
        polkadot = ss58.encode(Address.from_text(address).raw, 0)

        result = await verify_siws(text, sign_hex(sign, text), polkadot, verifier=verifier)
        assert result.address == address

    @pytest.mark.asyncio
    async def test_no_resolver_without_azero_id(self, verifier, sr25519_account):
        address, sign = sr25519_account
        text = build_message(address).prepare_message()

        with patch("siws.verify.HttpIdentifierResolver") as resolver_cls:
            await verify_siws(text, sign_hex(sign, text), address, verifier=verifier)
        resolver_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_matching_azero_id(self, verifier, sr25519_account, fake_resolver):
        address, sign = sr25519_account
        fake_resolver.mapping["alice.azero"] = address
        text = build_message(address, azero_id="alice.azero").prepare_message()

        result = await verify_siws(
            text, sign_hex(sign, text), address, verifier=verifier, resolver=fake_resolver
        )
        assert result.azero_id == "alice.azero"
        assert fake_resolver.calls == ["alice.azero"]


# =========================================================================
# Phase 1: signature
# =========================================================================

class TestBadSignature:
    """Test rejections raised before the message is parsed."""

    @pytest.mark.asyncio
    async def test_wrong_key(self, verifier, sr25519_account, ed25519_account):
        address, _ = sr25519_account
        _, other_sign = ed25519_account
        text = build_message(address).prepare_message()

        error = await expect_failure(
            VerificationErrorCode.BAD_SIGNATURE,
            text, sign_hex(other_sign, text), address, verifier=verifier,
        )
        assert str(error) == "SIWS Error: Invalid signature."

    @pytest.mark.asyncio
    async def test_parse_not_attempted(self, verifier, sr25519_account):
        """A bad signature fails fast without parsing the message."""
        address, sign = sr25519_account
        text = build_message(address).prepare_message()

        with patch("siws.verify.parse_message") as parse:
            await expect_failure(
                VerificationErrorCode.BAD_SIGNATURE,
                text, sign_hex(sign, "something else"), address, verifier=verifier,
            )
        parse.assert_not_called()

    @pytest.mark.asyncio
    async def test_undecodable_signature(self, verifier, sr25519_account):
        address, _ = sr25519_account
        await expect_failure(
            VerificationErrorCode.BAD_SIGNATURE, "message", "0xzz", address, verifier=verifier,
        )

    @pytest.mark.asyncio
    async def test_undecodable_address(self, verifier):
        await expect_failure(
            VerificationErrorCode.BAD_SIGNATURE, "message", "0x00", "invalid", verifier=verifier,
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", [123, b"message", "message \ud800"])
    async def test_unencodable_message(self, verifier, sr25519_account, message):
        """Messages that cannot be encoded as UTF-8 text fail like a bad signature."""
        address, sign = sr25519_account
        await expect_failure(
            VerificationErrorCode.BAD_SIGNATURE,
            message, sign_hex(sign, "message"), address, verifier=verifier,
        )


# =========================================================================
# Phases 2-4
# =========================================================================

class TestRejectedAfterSignature:
    """Test rejections of correctly signed messages."""

    @pytest.mark.asyncio
    async def test_malformed_message(self, verifier, sr25519_account):
        address, sign = sr25519_account
        text = "hello world"

        error = await expect_failure(
            VerificationErrorCode.MALFORMED_MESSAGE,
            text, sign_hex(sign, text), address, verifier=verifier,
        )
        assert isinstance(error.__cause__, InvalidMessageError)

    @pytest.mark.asyncio
    async def test_deeply_nested_json(self, verifier, sr25519_account):
        address, sign = sr25519_account
        text = "[" * 100_000 + "]" * 100_000

        await expect_failure(
            VerificationErrorCode.MALFORMED_MESSAGE,
            text, sign_hex(sign, text), address, verifier=verifier,
        )

    @pytest.mark.asyncio
    async def test_expired_message(self, verifier, sr25519_account):
        address, sign = sr25519_account
        text = build_message(address).prepare_message()
        later = int(time.time() * 1000) + 120_000

        with patch("siws.message._now_ms", return_value=later):
            error = await expect_failure(
                VerificationErrorCode.MALFORMED_MESSAGE,
                text, sign_hex(sign, text), address, verifier=verifier,
            )
        assert error.__cause__.reason == "EXPIRED"

    @pytest.mark.asyncio
    async def test_address_mismatch(self, verifier, sr25519_account):
        """A valid signature over a message naming someone else is rejected."""
        address, sign = sr25519_account
        text = build_message(VALID_ADDRESS).prepare_message()

        await expect_failure(
            VerificationErrorCode.ADDRESS_MISMATCH,
            text, sign_hex(sign, text), address, verifier=verifier,
        )

    @pytest.mark.asyncio
    async def test_azero_id_resolves_elsewhere(self, verifier, sr25519_account, fake_resolver):
        address, sign = sr25519_account
        text = build_message(address, azero_id="siws.azero").prepare_message()

        error = await expect_failure(
            VerificationErrorCode.IDENTITY_MISMATCH,
            text, sign_hex(sign, text), address, verifier=verifier, resolver=fake_resolver,
        )
        assert str(error) == "SIWS Error: Invalid Azero ID."

    @pytest.mark.asyncio
    async def test_resolver_failure_is_identity_mismatch(self, verifier, sr25519_account):
        address, sign = sr25519_account
        text = build_message(address, azero_id="alice.azero").prepare_message()
        resolver = AsyncMock()
        resolver.resolve.side_effect = ResolutionError.failed("HTTP 503")

        await expect_failure(
            VerificationErrorCode.IDENTITY_MISMATCH,
            text, sign_hex(sign, text), address, verifier=verifier, resolver=resolver,
        )
        resolver.resolve.assert_awaited_once_with("alice.azero")

    @pytest.mark.asyncio
    async def test_resolver_crash_is_identity_mismatch(self, verifier, sr25519_account):
        address, sign = sr25519_account
        text = build_message(address, azero_id="alice.azero").prepare_message()
        resolver = AsyncMock()
        resolver.resolve.side_effect = RuntimeError("boom")

        await expect_failure(
            VerificationErrorCode.IDENTITY_MISMATCH,
            text, sign_hex(sign, text), address, verifier=verifier, resolver=resolver,
        )
