"""Canonical message building and keyed digests for provider signatures.

Every provider signs the same way: its fields are sorted by name, joined as
``name=value`` pairs with ``&`` and run through HMAC-SHA256. Providers only
differ in how the digest is encoded.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from typing import Any, Mapping

from paycore.integrations.common import IntegrationMisconfiguredError


class SignatureEncoding:
    HEX_UPPER = "hex_upper"
    BASE64 = "base64"

    ALL = {HEX_UPPER, BASE64}


def _field_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def canonicalize(fields: Mapping[str, Any]) -> str:
    return "&".join(f"{name}={_field_value(fields[name])}" for name in sorted(fields))


def sign(secret_key: bytes | str, canonical_message: str | bytes, encoding: str) -> str:
    """HMAC-SHA256 of the message; bytes messages (raw webhook bodies) are signed as received."""
    if encoding not in SignatureEncoding.ALL:
        raise ValueError(f"unknown signature encoding: {encoding}")
    key = secret_key.encode("utf-8") if isinstance(secret_key, str) else bytes(secret_key)
    if isinstance(canonical_message, (bytes, bytearray)):
        message = bytes(canonical_message)
    else:
        message = (canonical_message or "").encode("utf-8")
    digest = hmac.new(key, message, hashlib.sha256).digest()
    if encoding == SignatureEncoding.BASE64:
        return base64.b64encode(digest).decode("ascii")
    return digest.hex().upper()


def secret_from_hex(secret_hex: str) -> bytes:
    """Decode a hex-encoded merchant secret into raw key bytes."""
    raw = (secret_hex or "").strip()
    if not raw:
        raise IntegrationMisconfiguredError("secret key is empty")
    try:
        return binascii.unhexlify(raw)
    except (binascii.Error, ValueError) as exc:
        raise IntegrationMisconfiguredError("secret key is not valid hex") from exc


def signatures_match(expected: str, received: str | None) -> bool:
    return hmac.compare_digest((expected or "").encode("utf-8"), (received or "").strip().encode("utf-8"))
