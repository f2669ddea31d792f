"""
Tests for the diskcache-backed response store.

Each test gets its own cache directory under ``tmp_path``.
"""

from pathlib import Path
from typing import Iterator

import pytest
from diskcache import Cache as DiskCache

from writer_ai.cache import CacheEntry, CacheStore, generate_key
from writer_ai.cache.entry import unix_now
from writer_ai.config import CacheSettings
from writer_ai.exceptions import StorageError


@pytest.fixture
def backend(tmp_path: Path) -> Iterator[DiskCache]:
    cache = DiskCache(str(tmp_path / "cache"))
    yield cache
    cache.close()


@pytest.fixture
def store(backend: DiskCache) -> CacheStore:
    return CacheStore(backend, CacheSettings(ttl_days=30))


def _key(text: str = "Hello world", model: str = "m1", template_id: int = 0) -> bytes:
    return generate_key(text, model, template_id)


class TestLookupAndStore:
    """Round trip, key sensitivity and overwrite semantics."""

    def test_round_trip(self, store: CacheStore) -> None:
        store.store(_key(), "Hi there")
        assert store.lookup(_key()) == "Hi there"

    def test_miss_on_unknown_key(self, store: CacheStore) -> None:
        assert store.lookup(_key("never stored")) is None

    def test_hello_world_scenario(self, store: CacheStore) -> None:
        store.store(_key("Hello world", "m1", 0), "Hi there")
        assert store.lookup(_key("Hello world", "m1", 0)) == "Hi there"
        assert store.lookup(_key("Hello world", "m2", 0)) is None

    @pytest.mark.parametrize(
        "text, model, template_id",
        [
            ("Hello World", "m1", 0),
            ("Hello world", "m2", 0),
            ("Hello world", "m1", 42),
        ],
    )
    def test_key_sensitivity(
        self, store: CacheStore, text: str, model: str, template_id: int
    ) -> None:
        store.store(_key(), "Hi there")
        assert store.lookup(_key(text, model, template_id)) is None

    def test_last_write_wins(self, store: CacheStore) -> None:
        store.store(_key(), "first")
        store.store(_key(), "second")
        assert store.lookup(_key()) == "second"

    def test_stored_bytes_use_wire_format(
        self, store: CacheStore, backend: DiskCache
    ) -> None:
        store.store(_key(), "a|b")
        entry = CacheEntry.from_bytes(backend[_key()])
        assert entry.response == "a|b"
        assert entry.expires_at - entry.created_at == 30 * 86400

    def test_explicit_ttl(self, store: CacheStore, backend: DiskCache) -> None:
        store.store(_key(), "r", ttl_days=2)
        entry = CacheEntry.from_bytes(backend[_key()])
        assert entry.expires_at - entry.created_at == 2 * 86400

    @pytest.mark.parametrize("ttl_days", [0.00001, "7"])
    def test_unusable_ttl_raises_storage_error(
        self, store: CacheStore, backend: DiskCache, ttl_days: object
    ) -> None:
        with pytest.raises(StorageError, match="cache entry"):
            store.store(_key(), "r", ttl_days=ttl_days)  # type: ignore[arg-type]
        assert _key() not in backend


class TestExpiry:
    def test_expired_entry_is_removed_on_lookup(
        self, store: CacheStore, backend: DiskCache
    ) -> None:
        backend[_key()] = CacheEntry(
            response="stale", created_at=100, expires_at=200
        ).to_bytes()
        assert store.lookup(_key()) is None
        assert _key() not in backend
        assert store.stats().expired == 1

    def test_zero_ttl(self, store: CacheStore, backend: DiskCache) -> None:
        store.store(_key(), "Hi there", ttl_days=0)
        entry = CacheEntry.from_bytes(backend[_key()])
        later = entry.created_at + 1
        assert entry.is_expired(now=later)
        assert store.lookup(_key(), now=later) is None
        assert _key() not in backend

    def test_fresh_entry_survives_lookup(
        self, store: CacheStore, backend: DiskCache
    ) -> None:
        store.store(_key(), "fresh")
        store.lookup(_key())
        assert _key() in backend


class TestCorruptEntries:
    @pytest.mark.parametrize("raw", [b"garbage", b"\xff\xfe|1|2", b"r|x|y"])
    def test_corrupt_entry_is_a_miss_and_kept(
        self, store: CacheStore, backend: DiskCache, raw: bytes
    ) -> None:
        backend[_key()] = raw
        assert store.lookup(_key()) is None
        assert backend[_key()] == raw


class TestDisabled:
    @pytest.fixture
    def disabled(self, backend: DiskCache) -> CacheStore:
        return CacheStore(backend, CacheSettings(enabled=False))

    def test_store_is_noop(self, disabled: CacheStore, backend: DiskCache) -> None:
        disabled.store(_key(), "Hi there")
        assert len(backend) == 0

    def test_lookup_always_misses(
        self, disabled: CacheStore, backend: DiskCache
    ) -> None:
        backend[_key()] = CacheEntry.create("Hi there", 30).to_bytes()
        assert disabled.lookup(_key()) is None

    def test_cleanup_returns_zero(
        self, disabled: CacheStore, backend: DiskCache
    ) -> None:
        backend[_key()] = CacheEntry(response="s", created_at=1, expires_at=2).to_bytes()
        assert disabled.cleanup_expired() == 0
        assert _key() in backend


class TestCleanup:
    def test_removes_only_expired(self, store: CacheStore, backend: DiskCache) -> None:
        now = unix_now()
        backend[_key("old")] = CacheEntry(
            response="old", created_at=1, expires_at=2
        ).to_bytes()
        backend[_key("new")] = CacheEntry.create("new", 1, now=now).to_bytes()
        backend[_key("bad")] = b"not an entry"

        assert store.cleanup_expired() == 1
        assert _key("old") not in backend
        assert _key("new") in backend
        assert _key("bad") in backend

    def test_explicit_now(self, store: CacheStore, backend: DiskCache) -> None:
        backend[_key()] = CacheEntry(response="r", created_at=10, expires_at=20).to_bytes()
        assert store.cleanup_expired(now=20) == 0
        assert store.cleanup_expired(now=21) == 1

    def test_clear_removes_everything(
        self, store: CacheStore, backend: DiskCache
    ) -> None:
        store.store(_key("a"), "1")
        store.store(_key("b"), "2")
        backend[_key("bad")] = b"junk"
        assert store.clear() == 3
        assert len(backend) == 0


class TestOpen:
    def test_open_creates_directory(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "cache"
        with CacheStore.open(path, CacheSettings()) as store:
            assert Path(store.directory) == path
            store.store(_key(), "Hi there")
            assert store.size == 1

    def test_open_sweeps_expired(self, tmp_path: Path) -> None:
        path = tmp_path / "cache"
        with DiskCache(str(path)) as raw:
            raw[_key("old")] = CacheEntry(
                response="old", created_at=1, expires_at=2
            ).to_bytes()
            raw[_key("new")] = CacheEntry.create("new", 1).to_bytes()

        with CacheStore.open(path, CacheSettings()) as store:
            assert store.size == 1

    def test_open_skips_sweep_when_disabled(self, tmp_path: Path) -> None:
        path = tmp_path / "cache"
        with DiskCache(str(path)) as raw:
            raw[_key()] = CacheEntry(response="old", created_at=1, expires_at=2).to_bytes()

        with CacheStore.open(path, CacheSettings(enabled=False)) as store:
            assert store.size == 1

    def test_open_failure_raises_storage_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StorageError):
            CacheStore.open(blocker, CacheSettings())


class TestStats:
    def test_counts_hits_and_misses(self, store: CacheStore) -> None:
        store.store(_key(), "r")
        store.lookup(_key())
        store.lookup(_key())
        store.lookup(_key("other"))
        stats = store.stats()
        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.hit_rate == pytest.approx(2 / 3)
        assert stats.entry_count == 1

    def test_empty_stats(self, store: CacheStore) -> None:
        stats = store.stats()
        assert stats.hit_rate == 0.0
        assert stats.entry_count == 0
