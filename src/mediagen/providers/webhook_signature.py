"""HMAC helpers for signing and verifying provider notifications."""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: str, body: bytes) -> str:
    """Return the hex HMAC-SHA256 of the raw request ``body``."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, header: str | None, body: bytes) -> bool:
    """Check ``header`` against the signature of ``body`` in constant time.

    ``body`` must be the bytes exactly as received: re-serializing parsed JSON
    can reorder keys or change whitespace and break the digest.
    """
    if not secret or not header:
        return False
    received = header.strip()
    if received.startswith(SIGNATURE_PREFIX):
        received = received[len(SIGNATURE_PREFIX):]
    expected = compute_signature(secret, body)
    return hmac.compare_digest(expected.encode("ascii"), received.lower().encode("ascii", "ignore"))
