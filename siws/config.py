# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""SIWS configuration.

Normative constants are fixed by the message format. Configurable
defaults may be overridden via environment variables.
"""

import os

# =============================================================================
# NORMATIVE CONSTANTS (fixed by the message format)
# =============================================================================

CURRENT_VERSION: str = "1.0.0"
DEFAULT_CHAIN_NAME: str = "Substrate"
AZERO_ID_SUFFIXES: tuple[str, ...] = (".azero", ".tzero")

# Wallet extensions wrap raw payloads in these markers before signing.
BYTES_WRAP_PREFIX: bytes = b"<Bytes>"
BYTES_WRAP_SUFFIX: bytes = b"</Bytes>"

# =============================================================================
# CONFIGURABLE DEFAULTS
# =============================================================================


def _parse_supported_versions() -> set[str]:
    env_value = os.getenv("SIWS_SUPPORTED_VERSIONS", "")
    if env_value:
        return {v.strip() for v in env_value.split(",") if v.strip()}
    return {CURRENT_VERSION}


# Process-wide registry. Mutated only through register_version().
SUPPORTED_VERSIONS: set[str] = _parse_supported_versions()

DEFAULT_SS58_PREFIX: int = int(os.getenv("SIWS_DEFAULT_SS58_PREFIX", "42"))

# =============================================================================
# IDENTIFIER RESOLUTION
# =============================================================================

RESOLVER_URL: str = os.getenv("SIWS_RESOLVER_URL", "https://azero.id/api/v1/resolve")
RESOLVER_TIMEOUT_SECONDS: float = float(os.getenv("SIWS_RESOLVER_TIMEOUT", "5.0"))

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL: str = os.getenv("SIWS_LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("SIWS_LOG_FORMAT", "json")


def register_version(version: str) -> None:
    """Add *version* to the set of accepted message versions."""
    if not version or not version.strip():
        raise ValueError("version must be a non-empty string")
    SUPPORTED_VERSIONS.add(version.strip())


def is_supported_version(version: str) -> bool:
    return version in SUPPORTED_VERSIONS
