# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Sign-In-With-Substrate message model, codecs and verification."""

from .address import Address
from .codec import parse_json, parse_message, parse_text
from .exceptions import (
    AddressError,
    InvalidMessageError,
    ResolutionError,
    SigningUnsupportedError,
    SiwsError,
    ValidationError,
    ValidationReason,
    VerificationError,
    VerificationErrorCode,
)
from .message import SiwsMessage, SiwsMessageParams
from .resolver import AzeroIdCheck, AzeroIdStatus, HttpIdentifierResolver, check_azero_id, is_azero_id
from .signature import SignatureVerifier
from .signer import SignedMessage
from .verify import verify_siws

__all__ = [
    "Address",
    "AddressError",
    "AzeroIdCheck",
    "AzeroIdStatus",
    "HttpIdentifierResolver",
    "InvalidMessageError",
    "ResolutionError",
    "SignatureVerifier",
    "SignedMessage",
    "SigningUnsupportedError",
    "SiwsError",
    "SiwsMessage",
    "SiwsMessageParams",
    "ValidationError",
    "ValidationReason",
    "VerificationError",
    "VerificationErrorCode",
    "check_azero_id",
    "is_azero_id",
    "parse_json",
    "parse_message",
    "parse_text",
    "verify_siws",
]
