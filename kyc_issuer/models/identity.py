from __future__ import annotations

import re

IDENTITY_LENGTH = 32

_HEX_RE = re.compile(r"^[0-9a-f]{1,64}$")


def normalize_identity(raw: str) -> str:
    """Return the canonical ``0x`` + 64-hex-digit form of an account address.

    Short forms like ``0x1`` are left-padded, matching how ledgers print
    special addresses.  Raises ValueError for anything that is not hex.
    """
    value = raw.strip().lower()
    if value.startswith("0x"):
        value = value[2:]
    if not _HEX_RE.match(value):
        raise ValueError(f"invalid account identity: {raw!r}")
    return "0x" + value.rjust(IDENTITY_LENGTH * 2, "0")


def identity_bytes(identity: str) -> bytes:
    """Canonical 32-byte serialization used for key derivation."""
    return bytes.fromhex(normalize_identity(identity)[2:])
