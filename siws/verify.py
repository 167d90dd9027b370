# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""SIWS verification pipeline.

Composes the signature primitive, the message parser and identifier
resolution into one pass/fail decision.  Phases run strictly in order
and the first failure is terminal:

1. **Signature**: the raw message bytes must verify against the claimed
   address.  On failure the message is never parsed.
2. **Parse**: the message must parse (JSON or text) into a valid
   :class:`SiwsMessage`; this re-runs field and expiry validation.
3. **Address binding**: the claimed address must be the address the
   message names (byte equality, any encoding).
4. **Azero ID**: when the message carries one, it must resolve to the
   message address.  Resolver faults count as a mismatch.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from siws.address import Address
from siws.codec import parse_message
from siws.exceptions import AddressError, InvalidMessageError, VerificationError
from siws.message import SiwsMessage
from siws.resolver import HttpIdentifierResolver, IdentifierResolver, check_azero_id
from siws.signature import SignatureVerifier, decode_signature, get_default_verifier

logger = logging.getLogger("siws.verify")

__all__ = ["verify_siws"]


async def verify_siws(
    message: str,
    signature: Union[str, bytes],
    address: str,
    *,
    verifier: Optional[SignatureVerifier] = None,
    resolver: Optional[IdentifierResolver] = None,
) -> SiwsMessage:
    """Verify a signed SIWS message and return it parsed.

    Parameters:
        message:    The exact string that was signed (text or JSON form).
        signature:  ``0x`` hex string or raw signature bytes.
        address:    The address claiming to have signed (SS58 or hex).
        verifier:   Signature primitive; the process default if omitted.
        resolver:   Identifier resolver; an :class:`HttpIdentifierResolver`
                    is created only if the message carries an Azero ID.

    Returns:
        The parsed and validated :class:`SiwsMessage`.

    Raises:
        VerificationError: ``BAD_SIGNATURE``, ``MALFORMED_MESSAGE``,
            ``ADDRESS_MISMATCH`` or ``IDENTITY_MISMATCH``.
    """
    verifier = verifier or get_default_verifier()
    await verifier.ensure_ready()

    # --- Phase 1: signature -------------------------------------------
    try:
        claimed = Address.from_text(address)
        raw_signature = signature if isinstance(signature, bytes) else decode_signature(signature)
        payload = message.encode("utf-8")
    except (AddressError, ValueError, TypeError, AttributeError) as exc:
        logger.info("Verification rejected: undecodable address or signature")
        raise VerificationError.bad_signature() from exc

    if not verifier.verify(payload, raw_signature, claimed):
        logger.info("Verification rejected: BAD_SIGNATURE")
        raise VerificationError.bad_signature()

    # --- Phase 2: parse -----------------------------------------------
    try:
        siws_message = parse_message(message)
    except InvalidMessageError as exc:
        logger.info("Verification rejected: MALFORMED_MESSAGE (%s)", exc.reason)
        raise VerificationError.malformed_message() from exc

    # --- Phase 3: address binding -------------------------------------
    if not claimed.equals(siws_message.signer):
        logger.info("Verification rejected: ADDRESS_MISMATCH")
        raise VerificationError.address_mismatch()

    # --- Phase 4: Azero ID --------------------------------------------
    if siws_message.azero_id:
        check = await check_azero_id(
            siws_message.azero_id,
            siws_message.address,
            resolver or HttpIdentifierResolver(),
        )
        if not check.ok:
            logger.warning(
                "Verification rejected: IDENTITY_MISMATCH (status=%s)", check.status.value
            )
            raise VerificationError.identity_mismatch()

    logger.debug("SIWS message verified")
    return siws_message
