# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Byte-level account address.

Addresses are held as raw public-key bytes and only encoded for display,
so equality checks never depend on the SS58 network prefix or on which
textual form a caller supplied.  Two key sizes are supported:

* 32 bytes: Substrate accounts, displayed as SS58.
* 20 bytes: Ethereum-style accounts, displayed as EIP-55 hex.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from eth_utils import is_checksum_address, to_checksum_address

from siws import ss58
from siws.config import DEFAULT_SS58_PREFIX
from siws.exceptions import AddressError

__all__ = ["Address"]

SUBSTRATE_KEY_LENGTH = 32
ETHEREUM_KEY_LENGTH = 20
_VALID_LENGTHS = (ETHEREUM_KEY_LENGTH, SUBSTRATE_KEY_LENGTH)

_HEX_PATTERN = re.compile(r"^0x(?:[0-9a-fA-F]{2})*$")


def _decode_hex(candidate: str) -> bytes:
    if not _HEX_PATTERN.match(candidate):
        raise AddressError.malformed("not a 0x-prefixed hex string")
    return bytes.fromhex(candidate[2:])


@dataclass(frozen=True)
class Address:
    """A 20- or 32-byte public key.

    Attributes:
        raw:  The public-key bytes.
    """

    raw: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "raw", bytes(self.raw))
        if len(self.raw) not in _VALID_LENGTHS:
            raise AddressError.wrong_length(len(self.raw))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_text(cls, candidate: str) -> "Address":
        """Decode a ``0x`` hex key or an SS58 address.

        Raises:
            AddressError: With code ``ADDRESS_MALFORMED``,
                ``ADDRESS_BAD_CHECKSUM`` or ``ADDRESS_WRONG_LENGTH``.
        """
        if not isinstance(candidate, str) or not candidate:
            raise AddressError.malformed("empty address")

        if candidate.startswith("0x"):
            raw = _decode_hex(candidate)
            # Mixed-case 20-byte hex is an EIP-55 claim; hold it to it.
            body = candidate[2:]
            if (
                len(raw) == ETHEREUM_KEY_LENGTH
                and body != body.lower()
                and body != body.upper()
                and not is_checksum_address(candidate)
            ):
                raise AddressError.bad_checksum()
            return cls(raw)

        try:
            _, raw = ss58.decode(candidate)
        except ss58.SS58ChecksumError as exc:
            raise AddressError.bad_checksum() from exc
        except ss58.SS58DecodeError as exc:
            raise AddressError.malformed(str(exc)) from exc
        return cls(raw)

    @classmethod
    def try_from_text(cls, candidate: str) -> Optional["Address"]:
        """Like :meth:`from_text` but returns ``None`` on failure."""
        try:
            return cls.from_text(candidate)
        except AddressError:
            return None

    @classmethod
    def from_public_key(cls, public_key: str) -> "Address":
        """Build an Address from a ``0x`` hex public key (20 or 32 bytes)."""
        if not isinstance(public_key, str):
            raise AddressError.malformed("public key must be a hex string")
        return cls(_decode_hex(public_key))

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    @property
    def is_ethereum(self) -> bool:
        return len(self.raw) == ETHEREUM_KEY_LENGTH

    def to_text(self, ss58_prefix: Optional[int] = None) -> str:
        """Display form: SS58 for 32-byte keys, EIP-55 for 20-byte keys.

        The SS58 prefix is ignored for 20-byte keys.
        """
        if self.is_ethereum:
            return to_checksum_address(self.raw)
        prefix = DEFAULT_SS58_PREFIX if ss58_prefix is None else ss58_prefix
        return ss58.encode(self.raw, prefix)

    def to_public_key_hex(self) -> str:
        return "0x" + self.raw.hex()

    def equals(self, other: "Address") -> bool:
        return self == other

    def __str__(self) -> str:
        return self.to_text()
