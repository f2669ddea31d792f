"""
Tests for the cache entry model and its byte codec.
"""

import pytest
from pydantic import ValidationError

from writer_ai.cache.entry import SECONDS_PER_DAY, CacheEntry
from writer_ai.exceptions import DeserializationError, StorageError


class TestCacheEntry:
    """Tests for CacheEntry construction and expiry."""

    def test_create_sets_expiry(self) -> None:
        entry = CacheEntry.create("Hi there", ttl_days=30, now=1_000)
        assert entry.created_at == 1_000
        assert entry.expires_at == 1_000 + 30 * SECONDS_PER_DAY

    def test_not_expired_before_deadline(self) -> None:
        entry = CacheEntry.create("r", ttl_days=1, now=1_000)
        assert not entry.is_expired(now=1_000 + SECONDS_PER_DAY)

    def test_expired_after_deadline(self) -> None:
        entry = CacheEntry.create("r", ttl_days=1, now=1_000)
        assert entry.is_expired(now=1_001 + SECONDS_PER_DAY)

    def test_zero_ttl_expires_one_second_later(self) -> None:
        entry = CacheEntry.create("r", ttl_days=0, now=1_000)
        assert entry.expires_at == entry.created_at
        assert entry.is_expired(now=1_001)

    def test_entry_is_frozen(self) -> None:
        entry = CacheEntry.create("r", ttl_days=1, now=1_000)
        with pytest.raises(ValidationError):
            entry.response = "other"  # type: ignore[misc]

    def test_negative_timestamp_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CacheEntry(response="r", created_at=-1, expires_at=0)


class TestCodec:
    """Tests for to_bytes / from_bytes."""

    def test_wire_format(self) -> None:
        entry = CacheEntry(response="Hi there", created_at=10, expires_at=20)
        assert entry.to_bytes() == b"Hi there|10|20"

    def test_round_trip(self) -> None:
        entry = CacheEntry(response="Grüße, Welt", created_at=10, expires_at=20)
        assert CacheEntry.from_bytes(entry.to_bytes()) == entry

    def test_response_may_contain_delimiter(self) -> None:
        entry = CacheEntry(response="a | b || c|", created_at=5, expires_at=6)
        decoded = CacheEntry.from_bytes(entry.to_bytes())
        assert decoded.response == "a | b || c|"
        assert decoded.expires_at == 6

    def test_empty_response(self) -> None:
        decoded = CacheEntry.from_bytes(b"|1|2")
        assert decoded.response == ""

    def test_missing_fields(self) -> None:
        with pytest.raises(DeserializationError, match="Invalid cache entry format"):
            CacheEntry.from_bytes(b"just text")

    def test_non_numeric_timestamp(self) -> None:
        with pytest.raises(DeserializationError, match="expires_at"):
            CacheEntry.from_bytes(b"resp|10|soon")

    def test_signed_timestamp_rejected(self) -> None:
        with pytest.raises(DeserializationError, match="created_at"):
            CacheEntry.from_bytes(b"resp|-10|20")

    def test_invalid_utf8(self) -> None:
        with pytest.raises(DeserializationError):
            CacheEntry.from_bytes(b"\xff\xfe|1|2")

    def test_non_bytes_rejected(self) -> None:
        with pytest.raises(DeserializationError):
            CacheEntry.from_bytes("resp|1|2")  # type: ignore[arg-type]

    def test_deserialization_error_is_storage_error(self) -> None:
        with pytest.raises(StorageError):
            CacheEntry.from_bytes(b"")
