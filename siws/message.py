# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""SIWS message model, validation and serialization.

A :class:`SiwsMessage` only exists in a validated state: construction
runs :meth:`SiwsMessage.validate` and raises :class:`ValidationError` on
the first violated field rule.  The same pass runs again before every
serialization and after parsing, so the three entry points agree.

Validation is time dependent.  ``expirationTime`` must lie in the
future, so a message that validated an hour ago may now be rejected.

Serialization is side-effect free.  A message without ``issuedAt`` is
serialized as if stamped "now"; :meth:`SiwsMessage.with_defaults`
returns the stamped copy for callers that need stable output.
"""

from __future__ import annotations

import json
import math
import re
import time
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import urlsplit

from siws.address import Address
from siws.config import CURRENT_VERSION, DEFAULT_CHAIN_NAME, is_supported_version
from siws.exceptions import ValidationError, ValidationReason
from siws.resolver import IdentifierResolver, check_azero_id, is_azero_id
from siws.signer import SignedMessage, request_signature

__all__ = [
    "SiwsMessage",
    "SiwsMessageParams",
    "format_timestamp",
    "parse_timestamp",
]

ChainId = Union[str, int]

INTRO_PHRASE = " wants you to sign in with your "
INTRO_SUFFIX = " account:"

# Python attribute name -> JSON / wire key, in serialization order.
JSON_KEYS: Tuple[Tuple[str, str], ...] = (
    ("domain", "domain"),
    ("address", "address"),
    ("azero_id", "azeroId"),
    ("statement", "statement"),
    ("uri", "uri"),
    ("version", "version"),
    ("nonce", "nonce"),
    ("chain_name", "chainName"),
    ("chain_id", "chainId"),
    ("issued_at", "issuedAt"),
    ("expiration_time", "expirationTime"),
    ("not_before", "notBefore"),
    ("request_id", "requestId"),
    ("resources", "resources"),
)

_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

def _now_ms() -> int:
    return int(time.time() * 1000)


def _to_datetime(ms: Union[int, float]) -> datetime:
    return _EPOCH + timedelta(milliseconds=int(ms))


def _is_valid_instant(value: Any) -> bool:
    """True for a non-boolean number of milliseconds a datetime can hold."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    try:
        _to_datetime(value)
    except OverflowError:
        return False
    return True


def format_timestamp(ms: Union[int, float]) -> str:
    """Render epoch milliseconds as ISO-8601 UTC, e.g. ``2024-01-01T00:00:00.000Z``."""
    dt = _to_datetime(ms)
    return (
        f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"
        f"T{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}.{dt.microsecond // 1000:03d}Z"
    )


def parse_timestamp(text: str) -> int:
    """Parse an ISO-8601 timestamp with an explicit offset into epoch ms.

    Raises:
        ValueError: If *text* is not ISO-8601 or carries no UTC offset.
    """
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        raise ValueError("timestamp has no UTC offset")
    return (dt - _EPOCH) // timedelta(milliseconds=1)


# ---------------------------------------------------------------------------
# Field checks
# ---------------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or len(value) == 0


def _has_line_break(value: Any) -> bool:
    return isinstance(value, str) and "\n" in value


def _is_valid_uri(value: Any) -> bool:
    """True for an absolute URI: a scheme, ``:``, and a non-empty remainder."""
    if not isinstance(value, str) or not _SCHEME_PATTERN.match(value):
        return False
    if any(ch.isspace() for ch in value):
        return False
    try:
        parts = urlsplit(value)
        parts.port
    except ValueError:
        return False
    return bool(parts.netloc or parts.path)


# ---------------------------------------------------------------------------
# Parameter record
# ---------------------------------------------------------------------------

@dataclass
class SiwsMessageParams:
    """Plain data needed to build a :class:`SiwsMessage`.

    Carries no behaviour and performs no validation; use
    :meth:`SiwsMessage.from_params` to obtain a validated message.
    """

    domain: str
    address: str
    uri: str
    nonce: str
    version: Optional[str] = CURRENT_VERSION
    azero_id: Optional[str] = None
    statement: Optional[str] = None
    chain_name: Optional[str] = None
    chain_id: Optional[ChainId] = None
    issued_at: Optional[int] = None
    expiration_time: Optional[int] = None
    not_before: Optional[int] = None
    request_id: Optional[str] = None
    resources: Optional[List[str]] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "SiwsMessageParams":
        """Build params from a camelCase JSON object.  Unknown keys are ignored."""
        kwargs = {attr: data.get(key) for attr, key in JSON_KEYS}
        return cls(**kwargs)


# ---------------------------------------------------------------------------
# Message
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SiwsMessage:
    """A validated Sign-In-With-Substrate message.

    Attributes:
        domain:           RFC 4501 dns authority requesting the signing.
        address:          Textual address of the signer (SS58 or ``0x`` hex).
        uri:              RFC 3986 URI that is the subject of the signing.
        nonce:            Randomized token used to prevent replay attacks.
        version:          Message format version.
        azero_id:         Optional Azero ID claimed by the signer.
        statement:        Human-readable assertion, no newlines.
        chain_name:       Shown as ``sign in with your {chain_name} account``;
                          ``None`` stands for "Substrate".
        chain_id:         Opaque chain identifier, numbers are stored as text.
        issued_at:        Epoch ms when the message was issued.
        expiration_time:  Epoch ms after which the message is invalid.
        not_before:       Epoch ms before which the message is not yet valid.
        request_id:       System-specific request identifier, no newlines.
        resources:        URIs the signer wishes to have resolved.
    """

    domain: str
    address: str
    uri: str
    nonce: str
    version: Optional[str] = CURRENT_VERSION
    azero_id: Optional[str] = None
    statement: Optional[str] = None
    chain_name: Optional[str] = None
    chain_id: Optional[ChainId] = None
    issued_at: Optional[int] = None
    expiration_time: Optional[int] = None
    not_before: Optional[int] = None
    request_id: Optional[str] = None
    resources: Optional[Tuple[str, ...]] = None

    def __post_init__(self) -> None:
        # Both wire forms must carry the same value for every field.
        if isinstance(self.resources, list):
            object.__setattr__(self, "resources", tuple(self.resources))
        if isinstance(self.chain_id, (int, float)) and not isinstance(self.chain_id, bool):
            object.__setattr__(self, "chain_id", str(self.chain_id))
        if self.chain_name == DEFAULT_CHAIN_NAME:
            object.__setattr__(self, "chain_name", None)
        for attr in ("chain_id", "chain_name", "statement", "request_id"):
            if getattr(self, attr) == "":
                object.__setattr__(self, attr, None)
        self.validate()

    @classmethod
    def from_params(cls, params: SiwsMessageParams) -> "SiwsMessage":
        return cls(**asdict(params))

    def to_params(self) -> SiwsMessageParams:
        params = SiwsMessageParams(**{attr: getattr(self, attr) for attr, _ in JSON_KEYS})
        if self.resources is not None:
            params.resources = list(self.resources)
        return params

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, now_ms: Optional[int] = None) -> None:
        """Check every field rule in order; the first failure is raised.

        Parameters:
            now_ms: Reference time for the expiry check.  Defaults to the
                current wall-clock time.

        Raises:
            ValidationError: Carrying the :class:`ValidationReason`.
        """
        if _is_blank(self.domain):
            raise ValidationError.for_reason(ValidationReason.DOMAIN_REQUIRED)
        if _has_line_break(self.domain):
            raise ValidationError.for_reason(ValidationReason.DOMAIN_INVALID)

        if _is_blank(self.address) or Address.try_from_text(self.address) is None:
            raise ValidationError.for_reason(ValidationReason.ADDRESS_INVALID)

        if self.azero_id is not None and (
            not is_azero_id(self.azero_id) or _has_line_break(self.azero_id)
        ):
            raise ValidationError.for_reason(ValidationReason.AZERO_ID_INVALID)

        if self.statement is not None and (
            not isinstance(self.statement, str) or "\n" in self.statement
        ):
            raise ValidationError.for_reason(ValidationReason.STATEMENT_INVALID)

        # uri is required for wallet validation and to help prevent phishing
        if _is_blank(self.uri):
            raise ValidationError.for_reason(ValidationReason.URI_REQUIRED)
        if _has_line_break(self.uri):
            raise ValidationError.for_reason(ValidationReason.URI_INVALID)

        if _is_blank(self.version):
            raise ValidationError.for_reason(ValidationReason.VERSION_REQUIRED)
        if not is_supported_version(self.version):
            raise ValidationError.unsupported_version(self.version)

        if _is_blank(self.nonce):
            raise ValidationError.for_reason(ValidationReason.NONCE_REQUIRED)
        if _has_line_break(self.nonce):
            raise ValidationError.for_reason(ValidationReason.NONCE_INVALID)

        for value in (self.chain_name, self.chain_id):
            if value is not None and (not isinstance(value, str) or "\n" in value):
                raise ValidationError.for_reason(ValidationReason.CHAIN_INVALID)

        if self.issued_at is not None and not _is_valid_instant(self.issued_at):
            raise ValidationError.for_reason(ValidationReason.ISSUED_AT_INVALID)

        if self.expiration_time is not None:
            self._validate_expiration(now_ms)

        if self.not_before is not None and not _is_valid_instant(self.not_before):
            raise ValidationError.for_reason(ValidationReason.NOT_BEFORE_INVALID)

        if self.request_id is not None and (
            not isinstance(self.request_id, str) or "\n" in self.request_id
        ):
            raise ValidationError.for_reason(ValidationReason.REQUEST_ID_INVALID)

        if self.resources is not None and (
            not isinstance(self.resources, tuple)
            or not all(_is_valid_uri(r) for r in self.resources)
        ):
            raise ValidationError.for_reason(ValidationReason.RESOURCES_INVALID)

    def _validate_expiration(self, now_ms: Optional[int]) -> None:
        exp = self.expiration_time
        if not _is_valid_instant(exp):
            raise ValidationError.for_reason(ValidationReason.EXPIRATION_TIME_INVALID)

        if self.issued_at is not None and exp <= self.issued_at:
            raise ValidationError.for_reason(ValidationReason.EXPIRATION_BEFORE_ISSUED_AT)

        # An unparseable notBefore is reported by its own check below.
        if (
            self.not_before is not None
            and _is_valid_instant(self.not_before)
            and exp <= self.not_before
        ):
            raise ValidationError.for_reason(ValidationReason.EXPIRATION_BEFORE_NOT_BEFORE)

        now = _now_ms() if now_ms is None else now_ms
        if exp <= now:
            raise ValidationError.for_reason(ValidationReason.EXPIRED)

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    def with_defaults(self, now_ms: Optional[int] = None) -> "SiwsMessage":
        """Return a copy with ``issued_at`` stamped if it was unset."""
        if self.issued_at is not None:
            return self
        return replace(self, issued_at=_now_ms() if now_ms is None else now_ms)

    @property
    def signer(self) -> Address:
        return Address.from_text(self.address)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @property
    def as_json(self) -> Dict[str, Any]:
        """The message as a plain JSON-ready dict.

        ``None`` fields and empty ``resources`` are omitted.
        """
        data: Dict[str, Any] = {}
        for attr, key in JSON_KEYS:
            value = getattr(self, attr)
            if value is None:
                continue
            if attr == "resources":
                if not value:
                    continue
                value = list(value)
            data[key] = value
        return data

    def prepare_json(self) -> str:
        """Serialize as a two-space-indented JSON document."""
        self.validate()
        return json.dumps(self.with_defaults().as_json, indent=2)

    def prepare_message(self) -> str:
        """Serialize in the human-readable format the signer inspects."""
        self.validate()
        stamped = self.with_defaults()

        header = [
            f"{stamped.domain}{INTRO_PHRASE}{stamped.chain_name or DEFAULT_CHAIN_NAME}{INTRO_SUFFIX}",
            stamped.address,
        ]
        if stamped.azero_id:
            header.append(f"({stamped.azero_id})")

        sections = ["\n".join(header)]
        if stamped.statement:
            sections.append(stamped.statement)
        sections.append("\n".join(stamped._body_lines()))
        return "\n\n".join(sections)

    def _body_lines(self) -> List[str]:
        body = [f"URI: {self.uri}", f"Version: {self.version}"]
        if self.chain_id is not None and self.chain_id != "":
            body.append(f"Chain ID: {self.chain_id}")
        body.append(f"Nonce: {self.nonce}")
        body.append(f"Issued At: {format_timestamp(self.issued_at)}")
        if self.expiration_time is not None:
            body.append(f"Expiration Time: {format_timestamp(self.expiration_time)}")
        if self.not_before is not None:
            body.append(f"Not Before: {format_timestamp(self.not_before)}")
        if self.request_id:
            body.append(f"Request ID: {self.request_id}")
        if self.resources:
            body.append("Resources:")
            body.extend(f"- {resource}" for resource in self.resources)
        return body

    # ------------------------------------------------------------------
    # Signing and identity
    # ------------------------------------------------------------------

    async def sign(self, signer: Any) -> SignedMessage:
        """Sign the human-readable form with a wallet signer.

        Raises:
            SigningUnsupportedError: If *signer* has no ``sign_raw``.
        """
        return await request_signature(signer, self.address, self.prepare_message())

    async def sign_json(self, signer: Any) -> SignedMessage:
        """Sign the JSON form with a wallet signer."""
        return await request_signature(signer, self.address, self.prepare_json())

    async def verify_azero_id(self, resolver: IdentifierResolver) -> bool:
        """True when there is no Azero ID or it resolves to this address."""
        if not self.azero_id:
            return True
        result = await check_azero_id(self.azero_id, self.address, resolver)
        return result.ok

