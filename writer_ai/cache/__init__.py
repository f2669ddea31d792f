"""Persistent response cache."""

from writer_ai.cache.entry import CacheEntry
from writer_ai.cache.fingerprint import generate_key, template_identity
from writer_ai.cache.store import CacheStats, CacheStore

__all__ = [
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "generate_key",
    "template_identity",
]
