"""
Cache entry model and its byte codec.

An entry is stored as ``response|created_at|expires_at`` encoded as
UTF-8.  The two trailing fields are unix seconds.  Decoding splits from
the right, so the response text may itself contain ``|``.
"""

import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from writer_ai.exceptions import DeserializationError

SECONDS_PER_DAY = 24 * 60 * 60
FIELD_DELIMITER = "|"


def unix_now() -> int:
    """Current time in whole unix seconds."""
    return int(time.time())


def _parse_unsigned(value: str, name: str) -> int:
    if not value.isascii() or not value.isdigit():
        raise DeserializationError(f"Invalid {name} timestamp: {value!r}")
    return int(value)


class CacheEntry(BaseModel):
    """A single cached provider response.

    Entries are immutable: they are written once after a successful
    provider call and only ever read or deleted afterwards.

    Attributes:
        response: The cached response text.
        created_at: Unix seconds when the entry was stored.
        expires_at: Unix seconds after which the entry is stale.
    """

    model_config = ConfigDict(frozen=True)

    response: str
    created_at: int = Field(ge=0)
    expires_at: int = Field(ge=0)

    @classmethod
    def create(
        cls, response: str, ttl_days: int, now: Optional[int] = None
    ) -> "CacheEntry":
        """Build an entry that expires ``ttl_days`` after *now*."""
        created = unix_now() if now is None else now
        return cls(
            response=response,
            created_at=created,
            expires_at=created + ttl_days * SECONDS_PER_DAY,
        )

    def is_expired(self, now: Optional[int] = None) -> bool:
        """``True`` once ``expires_at`` lies strictly in the past."""
        current = unix_now() if now is None else now
        return self.expires_at < current

    def to_bytes(self) -> bytes:
        """Serialize to the delimiter-joined UTF-8 form."""
        return FIELD_DELIMITER.join(
            (self.response, str(self.created_at), str(self.expires_at))
        ).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "CacheEntry":
        """Decode bytes produced by :meth:`to_bytes`.

        Raises:
            DeserializationError: If the bytes are not UTF-8, do not hold
                three fields, or carry non-numeric timestamps.
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise DeserializationError(
                f"Cache entry must be bytes, got {type(data).__name__}"
            )
        try:
            text = bytes(data).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DeserializationError(
                f"Failed to deserialize cache entry: {exc}"
            ) from exc

        parts = text.rsplit(FIELD_DELIMITER, 2)
        if len(parts) != 3:
            raise DeserializationError("Invalid cache entry format")

        response, created_raw, expires_raw = parts
        return cls(
            response=response,
            created_at=_parse_unsigned(created_raw, "created_at"),
            expires_at=_parse_unsigned(expires_raw, "expires_at"),
        )
