# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Azero ID resolution.

Maps a human-readable identifier such as ``alice.azero`` to the account
address registered for it, and checks that address against the one a
SIWS message names.

Resolution is best-effort.  :func:`check_azero_id` never raises; it
reports one of three outcomes so callers can tell "resolved to someone
else" apart from "could not resolve":

* ``MATCH``: the identifier resolves to the message address.
* ``MISMATCH``: it resolves to a different address.
* ``UNRESOLVED``: the resolver failed or returned nothing usable; the
  :class:`ResolutionError` is attached.

No retry or caching is performed; an unreachable resolver is a
deterministic negative result for that call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from siws.address import Address
from siws.config import AZERO_ID_SUFFIXES, RESOLVER_TIMEOUT_SECONDS, RESOLVER_URL
from siws.exceptions import ResolutionError

logger = logging.getLogger(__name__)

__all__ = [
    "AzeroIdCheck",
    "AzeroIdStatus",
    "HttpIdentifierResolver",
    "IdentifierResolver",
    "check_azero_id",
    "close_shared_client",
    "is_azero_id",
]


def is_azero_id(azero_id: str) -> bool:
    """True when *azero_id* ends in a recognised identifier suffix."""
    return isinstance(azero_id, str) and azero_id.lower().endswith(AZERO_ID_SUFFIXES)


@runtime_checkable
class IdentifierResolver(Protocol):
    async def resolve(self, identifier: str) -> str:
        """Return the textual address registered for *identifier*."""
        ...


# ---------------------------------------------------------------------------
# Shared HTTP client
# ---------------------------------------------------------------------------

_shared_client: Optional[httpx.AsyncClient] = None


def get_shared_client() -> httpx.AsyncClient:
    """Get or lazily create the pooled client used by resolvers."""
    global _shared_client
    if _shared_client is None or _shared_client.is_closed:
        _shared_client = httpx.AsyncClient(
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
            follow_redirects=True,
        )
        logger.info("Created shared httpx.AsyncClient for identifier resolution")
    return _shared_client


async def close_shared_client() -> None:
    global _shared_client
    if _shared_client is not None and not _shared_client.is_closed:
        await _shared_client.aclose()
    _shared_client = None


class HttpIdentifierResolver:
    """Resolve identifiers against an HTTP endpoint.

    Performs ``GET {base_url}/{identifier}`` and reads the ``address``
    member of the JSON response body.
    """

    def __init__(
        self,
        base_url: str = RESOLVER_URL,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = RESOLVER_TIMEOUT_SECONDS,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = client
        self._timeout = timeout

    async def resolve(self, identifier: str) -> str:
        client = self._client or get_shared_client()
        url = f"{self._base_url}/{quote(identifier, safe='')}"

        try:
            response = await client.get(url, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise ResolutionError.failed(f"{type(exc).__name__}: {exc}") from exc

        if response.status_code == 404:
            raise ResolutionError.not_found(identifier)
        if response.status_code != 200:
            raise ResolutionError.failed(f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ResolutionError.failed("response is not JSON") from exc

        address = data.get("address") if isinstance(data, dict) else None
        if not isinstance(address, str) or not address:
            raise ResolutionError.not_found(identifier)
        return address


# ---------------------------------------------------------------------------
# Address check
# ---------------------------------------------------------------------------

class AzeroIdStatus(str, Enum):
    MATCH = "MATCH"
    MISMATCH = "MISMATCH"
    UNRESOLVED = "UNRESOLVED"


@dataclass(frozen=True)
class AzeroIdCheck:
    """Outcome of resolving an identifier and comparing addresses."""

    status: AzeroIdStatus
    error: Optional[ResolutionError] = None

    @property
    def ok(self) -> bool:
        return self.status is AzeroIdStatus.MATCH


async def check_azero_id(
    azero_id: str,
    address: str,
    resolver: IdentifierResolver,
) -> AzeroIdCheck:
    """Resolve *azero_id* and compare the result with *address*.

    Never raises: resolver failures of any kind become ``UNRESOLVED``.
    """
    try:
        resolved = await resolver.resolve(azero_id)
    except ResolutionError as exc:
        logger.info("Azero ID resolution failed: %s", exc.code)
        return AzeroIdCheck(AzeroIdStatus.UNRESOLVED, exc)
    except Exception as exc:
        logger.warning("Azero ID resolver raised %s", type(exc).__name__)
        return AzeroIdCheck(
            AzeroIdStatus.UNRESOLVED,
            ResolutionError.failed(type(exc).__name__),
        )

    resolved_address = Address.try_from_text(resolved) if isinstance(resolved, str) else None
    if resolved_address is None:
        return AzeroIdCheck(
            AzeroIdStatus.UNRESOLVED,
            ResolutionError.failed("resolver returned an invalid address"),
        )

    expected = Address.try_from_text(address)
    if expected is None or not expected.equals(resolved_address):
        return AzeroIdCheck(AzeroIdStatus.MISMATCH)
    return AzeroIdCheck(AzeroIdStatus.MATCH)
