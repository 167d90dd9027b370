# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""SIWS exceptions mapped to stable error codes."""

from enum import Enum
from typing import Optional


class SiwsError(Exception):
    """Base exception for SIWS errors."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


# =============================================================================
# Address
# =============================================================================

class AddressErrorCode(str, Enum):
    MALFORMED = "ADDRESS_MALFORMED"
    BAD_CHECKSUM = "ADDRESS_BAD_CHECKSUM"
    WRONG_LENGTH = "ADDRESS_WRONG_LENGTH"


class AddressError(SiwsError):
    """Textual or raw address could not be decoded."""

    @classmethod
    def malformed(cls, reason: str) -> "AddressError":
        return cls(code=AddressErrorCode.MALFORMED, message=f"Address is malformed: {reason}")

    @classmethod
    def bad_checksum(cls) -> "AddressError":
        return cls(code=AddressErrorCode.BAD_CHECKSUM, message="Address checksum does not match")

    @classmethod
    def wrong_length(cls, length: int) -> "AddressError":
        return cls(
            code=AddressErrorCode.WRONG_LENGTH,
            message=f"Address must be 20 or 32 bytes, got {length}",
        )


# =============================================================================
# Message validation
# =============================================================================

class ValidationReason(str, Enum):
    DOMAIN_REQUIRED = "DOMAIN_REQUIRED"
    DOMAIN_INVALID = "DOMAIN_INVALID"
    ADDRESS_INVALID = "ADDRESS_INVALID"
    AZERO_ID_INVALID = "AZERO_ID_INVALID"
    STATEMENT_INVALID = "STATEMENT_INVALID"
    URI_REQUIRED = "URI_REQUIRED"
    URI_INVALID = "URI_INVALID"
    VERSION_REQUIRED = "VERSION_REQUIRED"
    VERSION_UNSUPPORTED = "VERSION_UNSUPPORTED"
    NONCE_REQUIRED = "NONCE_REQUIRED"
    NONCE_INVALID = "NONCE_INVALID"
    CHAIN_INVALID = "CHAIN_INVALID"
    ISSUED_AT_INVALID = "ISSUED_AT_INVALID"
    EXPIRATION_TIME_INVALID = "EXPIRATION_TIME_INVALID"
    EXPIRATION_BEFORE_ISSUED_AT = "EXPIRATION_BEFORE_ISSUED_AT"
    EXPIRATION_BEFORE_NOT_BEFORE = "EXPIRATION_BEFORE_NOT_BEFORE"
    EXPIRED = "EXPIRED"
    NOT_BEFORE_INVALID = "NOT_BEFORE_INVALID"
    REQUEST_ID_INVALID = "REQUEST_ID_INVALID"
    RESOURCES_INVALID = "RESOURCES_INVALID"


_VALIDATION_MESSAGES = {
    ValidationReason.DOMAIN_REQUIRED: "domain is required",
    ValidationReason.DOMAIN_INVALID: "domain must not contain newlines",
    ValidationReason.ADDRESS_INVALID: "address is not a valid substrate address",
    ValidationReason.AZERO_ID_INVALID: "azeroId is not a valid Azero ID",
    ValidationReason.STATEMENT_INVALID: "statement must not contain newlines",
    ValidationReason.URI_REQUIRED: "uri is required",
    ValidationReason.URI_INVALID: "uri must not contain newlines",
    ValidationReason.VERSION_REQUIRED: "version is required",
    ValidationReason.NONCE_REQUIRED: "nonce is required",
    ValidationReason.NONCE_INVALID: "nonce must not contain newlines",
    ValidationReason.CHAIN_INVALID: "chainName and chainId must be text without newlines",
    ValidationReason.ISSUED_AT_INVALID: "issuedAt is not a valid date",
    ValidationReason.EXPIRATION_TIME_INVALID: "expirationTime is not a valid date",
    ValidationReason.EXPIRATION_BEFORE_ISSUED_AT: "expirationTime must be greater than issuedAt",
    ValidationReason.EXPIRATION_BEFORE_NOT_BEFORE: "expirationTime must be greater than notBefore",
    ValidationReason.EXPIRED: "message has expired!",
    ValidationReason.NOT_BEFORE_INVALID: "notBefore is not a valid date",
    ValidationReason.REQUEST_ID_INVALID: "requestId must not contain newlines",
    ValidationReason.RESOURCES_INVALID: "resources must be valid URLs",
}


class ValidationError(SiwsError):
    """A message field violates the SIWS field contract."""

    def __init__(self, code: ValidationReason, message: str):
        super().__init__(code, message)

    @classmethod
    def for_reason(cls, reason: ValidationReason) -> "ValidationError":
        return cls(code=reason, message=f"SIWS Error: {_VALIDATION_MESSAGES[reason]}")

    @classmethod
    def unsupported_version(cls, version: str) -> "ValidationError":
        return cls(
            code=ValidationReason.VERSION_UNSUPPORTED,
            message=f"SIWS Error: version {version} is not supported",
        )


# =============================================================================
# Codec
# =============================================================================

class MessageSyntaxError(SiwsError):
    """Structural deviation from the text or JSON grammar.

    Never surfaced directly; carried as the cause of
    :class:`InvalidMessageError`.
    """

    @classmethod
    def empty(cls) -> "MessageSyntaxError":
        return cls(code="SYNTAX_EMPTY", message="message is empty or not a string")

    @classmethod
    def section_count(cls, count: int) -> "MessageSyntaxError":
        return cls(code="SYNTAX_SECTIONS", message=f"expected 2 or 3 sections, got {count}")

    @classmethod
    def bad_header(cls, reason: str) -> "MessageSyntaxError":
        return cls(code="SYNTAX_HEADER", message=f"header is malformed: {reason}")

    @classmethod
    def empty_statement(cls) -> "MessageSyntaxError":
        return cls(code="SYNTAX_STATEMENT", message="statement section is empty")

    @classmethod
    def missing_field(cls, field: str) -> "MessageSyntaxError":
        return cls(code="SYNTAX_MISSING_FIELD", message=f"required field '{field}' is missing")

    @classmethod
    def duplicate_field(cls, field: str) -> "MessageSyntaxError":
        return cls(code="SYNTAX_DUPLICATE_FIELD", message=f"field '{field}' appears more than once")

    @classmethod
    def bad_timestamp(cls, field: str) -> "MessageSyntaxError":
        return cls(code="SYNTAX_TIMESTAMP", message=f"field '{field}' is not an ISO-8601 timestamp")

    @classmethod
    def not_json_object(cls, type_name: str) -> "MessageSyntaxError":
        return cls(code="SYNTAX_JSON", message=f"expected JSON object, got {type_name}")


class InvalidMessageError(SiwsError):
    """Generic parse failure for text or JSON SIWS messages.

    The specific reason is kept on ``cause`` (and ``__cause__``) for
    diagnostics; the public message is always the same.
    """

    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__("INVALID_MESSAGE", "SIWS Error: Invalid SIWS message.")
        self.cause = cause

    @property
    def reason(self) -> Optional[str]:
        """Code of the underlying failure, when it carried one."""
        code = getattr(self.cause, "code", None)
        if code is None:
            return None
        return code.value if isinstance(code, Enum) else str(code)


# =============================================================================
# Verification
# =============================================================================

class VerificationErrorCode(str, Enum):
    BAD_SIGNATURE = "BAD_SIGNATURE"
    MALFORMED_MESSAGE = "MALFORMED_MESSAGE"
    ADDRESS_MISMATCH = "ADDRESS_MISMATCH"
    IDENTITY_MISMATCH = "IDENTITY_MISMATCH"


class VerificationError(SiwsError):
    """Terminal failure of a verification call."""

    @classmethod
    def bad_signature(cls) -> "VerificationError":
        return cls(code=VerificationErrorCode.BAD_SIGNATURE, message="SIWS Error: Invalid signature.")

    @classmethod
    def malformed_message(cls) -> "VerificationError":
        return cls(
            code=VerificationErrorCode.MALFORMED_MESSAGE,
            message="SIWS Error: Invalid SIWS message.",
        )

    @classmethod
    def address_mismatch(cls) -> "VerificationError":
        return cls(
            code=VerificationErrorCode.ADDRESS_MISMATCH,
            message="SIWS Error: signer address does not match message address.",
        )

    @classmethod
    def identity_mismatch(cls) -> "VerificationError":
        return cls(code=VerificationErrorCode.IDENTITY_MISMATCH, message="SIWS Error: Invalid Azero ID.")


# =============================================================================
# Collaborators
# =============================================================================

class SigningUnsupportedError(SiwsError):
    """Signing transport does not expose ``sign_raw``."""

    def __init__(self, message: str = "Wallet does not support signing message."):
        super().__init__("SIGNING_UNSUPPORTED", message)


class ResolutionError(SiwsError):
    """Identifier resolution service failed or returned nothing usable."""

    @classmethod
    def not_found(cls, identifier: str) -> "ResolutionError":
        return cls(code="RESOLUTION_NOT_FOUND", message=f"Identifier {identifier!r} did not resolve")

    @classmethod
    def failed(cls, reason: str) -> "ResolutionError":
        return cls(code="RESOLUTION_FAILED", message=f"Identifier resolution failed: {reason}")


class SignatureBackendError(SiwsError):
    """A crypto backend failed its readiness self-test."""

    def __init__(self, message: str):
        super().__init__("SIGNATURE_BACKEND_UNAVAILABLE", message)
