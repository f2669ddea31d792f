"""
Cache key fingerprinting.

A key is the 64-bit BLAKE2b digest of model, prompt-template identity and
raw input text, stored as 8 big-endian bytes.  Keys are deterministic
across processes but carry no collision detection: two distinct inputs
sharing a digest would share a cache entry.
"""

import hashlib
from typing import Optional

KEY_SIZE = 8
_SEPARATOR = "\0"


def _digest64(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=KEY_SIZE).digest()


def template_identity(template: Optional[str]) -> int:
    """Numeric identity of a prompt template, ``0`` when none is set."""
    if template is None:
        return 0
    return int.from_bytes(_digest64(template.encode("utf-8")), "big")


def generate_key(text: str, model: str, template_id: int) -> bytes:
    """Fingerprint one request.

    Args:
        text: Raw input text, before template substitution.
        model: Provider model identifier.
        template_id: Value from :func:`template_identity`.

    Returns:
        An 8-byte big-endian key.
    """
    combined = _SEPARATOR.join((model, str(template_id), text))
    return _digest64(combined.encode("utf-8"))
