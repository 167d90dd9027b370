# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Wallet signing transport boundary.

A signer is anything exposing an async ``sign_raw(payload)`` method that
takes ``{"address", "data", "type"}`` and returns ``{"signature": ...}``,
mirroring the injected wallet-extension signer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, runtime_checkable

from siws.exceptions import SigningUnsupportedError

logger = logging.getLogger(__name__)

__all__ = ["Signer", "SignedMessage", "request_signature"]


@runtime_checkable
class Signer(Protocol):
    async def sign_raw(self, payload: Dict[str, str]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class SignedMessage:
    """A serialized message together with the signature over it."""

    signature: str
    message: str


def _get_sign_raw(signer: Any) -> Optional[Callable[[Dict[str, str]], Awaitable[Dict[str, Any]]]]:
    sign_raw = getattr(signer, "sign_raw", None)
    return sign_raw if callable(sign_raw) else None


async def request_signature(signer: Any, address: str, data: str) -> SignedMessage:
    """Ask *signer* to sign *data* on behalf of *address*.

    Raises:
        SigningUnsupportedError: If *signer* has no callable ``sign_raw``.
            Checked before any call is attempted.
    """
    sign_raw = _get_sign_raw(signer)
    if sign_raw is None:
        raise SigningUnsupportedError()

    result = await sign_raw({"address": address, "data": data, "type": "payload"})
    logger.debug("Signature obtained from wallet for %d-byte payload", len(data))
    return SignedMessage(signature=result["signature"], message=data)
