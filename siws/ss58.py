# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""SS58 address codec subset.

Implements only what SIWS needs from the Substrate address format:

- **Decoding** a checksummed SS58 string to its network prefix and raw
  account bytes.
- **Encoding** raw account bytes under a chosen network prefix.

Payloads are base58 (Bitcoin alphabet) over
``prefix || account || checksum`` where the checksum is the leading
bytes of ``blake2b-512("SS58PRE" || prefix || account)``.

References
----------
- Substrate SS58 address format specification
"""

from __future__ import annotations

import hashlib
from typing import Tuple

import base58

from siws.config import DEFAULT_SS58_PREFIX

__all__ = [
    "decode",
    "encode",
    "SS58ChecksumError",
    "SS58DecodeError",
]


class SS58DecodeError(Exception):
    """Raised when an SS58 string cannot be decoded."""


class SS58ChecksumError(SS58DecodeError):
    """Raised when the embedded checksum does not match the payload."""


_CHECKSUM_PREFIX = b"SS58PRE"

# Total decoded lengths (prefix + account + checksum) accepted on input.
_ALLOWED_DECODED_LENGTHS = frozenset({3, 4, 6, 10, 35, 36, 37, 38})

# Reserved prefixes that must never appear on the wire.
_RESERVED_PREFIXES = frozenset({46, 47})

_MAX_PREFIX = 16383


def _ss58_hash(data: bytes) -> bytes:
    return hashlib.blake2b(_CHECKSUM_PREFIX + data, digest_size=64).digest()


def _decode_prefix(decoded: bytes) -> Tuple[int, int]:
    """Return ``(prefix, prefix_length)`` from the leading bytes."""
    first = decoded[0]
    if first & 0b0100_0000:
        if len(decoded) < 2:
            raise SS58DecodeError("Truncated two-byte network prefix")
        second = decoded[1]
        prefix = ((first & 0b0011_1111) << 2) | (second >> 6) | ((second & 0b0011_1111) << 8)
        return prefix, 2
    return first, 1


def _encode_prefix(prefix: int) -> bytes:
    if prefix < 64:
        return bytes([prefix])
    return bytes([
        ((prefix & 0b1111_1100) >> 2) | 0b0100_0000,
        (prefix >> 8) | ((prefix & 0b0000_0011) << 6),
    ])


def decode(address: str) -> Tuple[int, bytes]:
    """Decode an SS58 string to ``(network_prefix, account_bytes)``.

    Parameters
    ----------
    address : str
        The base58 SS58 address.

    Returns
    -------
    tuple of (int, bytes)
        The network prefix and the raw account bytes.

    Raises
    ------
    SS58DecodeError
        If the string is not base58, has an unsupported length, uses a
        reserved prefix, or fails its checksum.
    """
    if not address:
        raise SS58DecodeError("Empty address string")

    try:
        decoded = base58.b58decode(address)
    except ValueError as exc:
        raise SS58DecodeError(f"Base58 decode failed: {exc}") from exc

    if len(decoded) not in _ALLOWED_DECODED_LENGTHS:
        raise SS58DecodeError(f"Invalid decoded address length {len(decoded)}")

    if decoded[0] & 0b1000_0000 or decoded[0] in _RESERVED_PREFIXES:
        raise SS58DecodeError(f"Invalid SS58 prefix byte {decoded[0]}")

    prefix, prefix_len = _decode_prefix(decoded)

    # Public keys (32 or 33 bytes) carry a 2-byte checksum; short account
    # indices carry 1 byte.
    is_public_key = len(decoded) in (34 + prefix_len, 35 + prefix_len)
    checksum_len = 2 if is_public_key else 1
    body_end = len(decoded) - checksum_len

    expected = _ss58_hash(decoded[:body_end])[:checksum_len]
    if decoded[body_end:] != expected:
        raise SS58ChecksumError("Invalid SS58 checksum")

    return prefix, decoded[prefix_len:body_end]


def encode(account: bytes, prefix: int = DEFAULT_SS58_PREFIX) -> str:
    """Encode *account* bytes as an SS58 string under *prefix*.

    Raises
    ------
    ValueError
        If the prefix is out of range or reserved, or the account length
        is not one SS58 can carry.
    """
    if not 0 <= prefix <= _MAX_PREFIX or prefix in _RESERVED_PREFIXES:
        raise ValueError(f"Invalid SS58 prefix {prefix}")
    if len(account) not in (1, 2, 4, 8, 32, 33):
        raise ValueError(f"Cannot SS58-encode {len(account)}-byte account")

    body = _encode_prefix(prefix) + account
    checksum_len = 2 if len(account) in (32, 33) else 1
    checksum = _ss58_hash(body)[:checksum_len]
    return base58.b58encode(body + checksum).decode("ascii")
