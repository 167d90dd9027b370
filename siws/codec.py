# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""SIWS message parsers.

Two wire forms are accepted:

* **Text**: the human-readable form produced by
  :meth:`SiwsMessage.prepare_message`::

      {domain} wants you to sign in with your {chain} account:
      {address}
      [({azeroId})]

      [{statement}

      ]URI: ...
      Version: ...
      ...

* **JSON**: the object produced by :meth:`SiwsMessage.prepare_json`.

Every failure surfaces as :class:`InvalidMessageError` with the specific
reason kept on ``.cause``.  :func:`parse_message` tries JSON first and
only falls back to the text grammar when the input does not decode as
JSON at all; decodable JSON that is not a valid message is rejected
outright rather than reinterpreted as text.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from siws.address import Address
from siws.exceptions import (
    AddressError,
    InvalidMessageError,
    MessageSyntaxError,
    ValidationError,
)
from siws.message import (
    INTRO_PHRASE,
    INTRO_SUFFIX,
    SiwsMessage,
    SiwsMessageParams,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

__all__ = ["parse_json", "parse_message", "parse_text"]

_REQUIRED_JSON_KEYS = ("domain", "address", "uri", "version", "nonce")

_AZERO_ID_LINE = re.compile(r"^\((.+)\)$")

_RESOURCES_KEY = "Resources:"
_RESOURCE_ITEM = "- "

# Recognised body keys; anything else is ignored.
_BODY_KEYS = frozenset({
    "URI",
    "Version",
    "Chain ID",
    "Nonce",
    "Issued At",
    "Expiration Time",
    "Not Before",
    "Request ID",
})

# json.loads raises RecursionError on deeply nested input.
_PARSE_ERRORS = (
    MessageSyntaxError, ValidationError, AddressError, ValueError, TypeError, RecursionError,
)


def _invalid(exc: BaseException) -> InvalidMessageError:
    logger.debug("SIWS message rejected: %s", getattr(exc, "code", type(exc).__name__))
    return InvalidMessageError(exc)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def _message_from_json(data: Any) -> SiwsMessage:
    if not isinstance(data, dict):
        raise MessageSyntaxError.not_json_object(type(data).__name__)
    for key in _REQUIRED_JSON_KEYS:
        if not data.get(key):
            raise MessageSyntaxError.missing_field(key)
    return SiwsMessage.from_params(SiwsMessageParams.from_json(data))


def parse_json(message: str) -> SiwsMessage:
    """Parse the JSON wire form.

    Raises:
        InvalidMessageError: If *message* is not a JSON object carrying
            ``domain``, ``address``, ``uri``, ``version`` and ``nonce``, or
            if the resulting message fails validation.
    """
    try:
        return _message_from_json(json.loads(message))
    except _PARSE_ERRORS as exc:
        raise _invalid(exc) from exc


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def _split_sections(message: str) -> Tuple[str, Optional[str], str]:
    sections = message.split("\n\n")
    if len(sections) == 2:
        return sections[0], None, sections[1]
    if len(sections) == 3:
        if not sections[1]:
            raise MessageSyntaxError.empty_statement()
        return sections[0], sections[1], sections[2]
    raise MessageSyntaxError.section_count(len(sections))


def _parse_header(header: str) -> Tuple[str, Optional[str], str, Optional[str]]:
    """Return ``(domain, chain_name, address, azero_id)``."""
    lines = header.split("\n")
    if len(lines) not in (2, 3):
        raise MessageSyntaxError.bad_header(f"expected 2 or 3 lines, got {len(lines)}")

    intro = lines[0].split(INTRO_PHRASE)
    if len(intro) != 2:
        raise MessageSyntaxError.bad_header("intro line not recognised")
    domain, remainder = intro

    # "your account:" (no chain name) is rejected here.
    if not remainder.endswith(INTRO_SUFFIX):
        raise MessageSyntaxError.bad_header("intro line not recognised")
    chain_name = remainder[: -len(INTRO_SUFFIX)]
    if not chain_name:
        raise MessageSyntaxError.bad_header("chain name is empty")

    address = lines[1]
    Address.from_text(address)

    azero_id = None
    if len(lines) == 3:
        match = _AZERO_ID_LINE.match(lines[2])
        if match is None:
            raise MessageSyntaxError.bad_header("identifier line must be parenthesised")
        azero_id = match.group(1)

    return domain, chain_name, address, azero_id


def _parse_body(body: str) -> Tuple[Dict[str, str], Optional[List[str]]]:
    fields: Dict[str, str] = {}
    resources: Optional[List[str]] = None
    in_resources = False

    for line in body.split("\n"):
        if in_resources:
            if line.startswith(_RESOURCE_ITEM):
                resources.append(line[len(_RESOURCE_ITEM):])
                continue
            in_resources = False

        if line == _RESOURCES_KEY:
            if resources is not None:
                raise MessageSyntaxError.duplicate_field("Resources")
            resources = []
            in_resources = True
            continue

        key, sep, value = line.partition(": ")
        if not sep or key not in _BODY_KEYS:
            continue
        if key in fields:
            raise MessageSyntaxError.duplicate_field(key)
        fields[key] = value

    return fields, resources or None


def _optional_timestamp(fields: Dict[str, str], key: str) -> Optional[int]:
    value = fields.get(key)
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise MessageSyntaxError.bad_timestamp(key) from exc


def _message_from_text(message: Any) -> SiwsMessage:
    if not isinstance(message, str) or not message:
        raise MessageSyntaxError.empty()

    header, statement, body = _split_sections(message)
    domain, chain_name, address, azero_id = _parse_header(header)
    fields, resources = _parse_body(body)

    for key in ("URI", "Version", "Nonce"):
        if key not in fields:
            raise MessageSyntaxError.missing_field(key)

    return SiwsMessage(
        domain=domain,
        address=address,
        uri=fields["URI"],
        nonce=fields["Nonce"],
        version=fields["Version"],
        azero_id=azero_id,
        statement=statement,
        chain_name=chain_name,
        chain_id=fields.get("Chain ID"),
        issued_at=_optional_timestamp(fields, "Issued At"),
        expiration_time=_optional_timestamp(fields, "Expiration Time"),
        not_before=_optional_timestamp(fields, "Not Before"),
        request_id=fields.get("Request ID"),
        resources=resources,
    )


def parse_text(message: str) -> SiwsMessage:
    """Parse the human-readable wire form.

    Raises:
        InvalidMessageError: On any structural deviation or field failure.
    """
    try:
        return _message_from_text(message)
    except _PARSE_ERRORS as exc:
        raise _invalid(exc) from exc


# ---------------------------------------------------------------------------
# Unified entry point
# ---------------------------------------------------------------------------

def parse_message(message: str) -> SiwsMessage:
    """Parse either wire form.

    Input that decodes as JSON is handled by the JSON grammar only; the
    text grammar is tried only when JSON decoding fails.

    Raises:
        InvalidMessageError: If the message is valid in neither form.
    """
    try:
        data = json.loads(message)
    except RecursionError as exc:
        raise _invalid(exc) from exc
    except (ValueError, TypeError):
        return parse_text(message)

    try:
        return _message_from_json(data)
    except _PARSE_ERRORS as exc:
        raise _invalid(exc) from exc
