"""
Cache-aside request pipeline.

Fingerprint the request, consult the response cache, call the provider on
a miss and store what it returns.  The cache is strictly an accelerator:
any :class:`StorageError` is logged and the request carries on as if the
cache were empty.  Provider failures are the terminal result.
"""

import asyncio
import logging
import time
from typing import Optional

import httpx
from pydantic import BaseModel

from writer_ai.cache.fingerprint import generate_key
from writer_ai.cache.store import CacheStore
from writer_ai.config import Settings, default_cache_dir
from writer_ai.exceptions import StorageError
from writer_ai.providers.base import ProviderAdapter, ProviderRequestContext
from writer_ai.providers.factory import build_adapter

logger = logging.getLogger(__name__)

SOFT_RESPONSE_LIMIT = 1000


class PipelineResult(BaseModel):
    """Outcome of one processed request.

    Attributes:
        response: Improved text.
        cache_hit: Whether the response came from the cache.
        latency_ms: End-to-end time spent in the pipeline.
    """

    response: str
    cache_hit: bool = False
    latency_ms: float = 0.0


class RequestPipeline:
    """Orchestrates fingerprint, cache lookup, provider call and store.

    Args:
        cache: Shared response cache.
        adapter: Provider adapter for the configured family.
        context: Default request context used when ``process`` is not
            given one.
    """

    def __init__(
        self,
        cache: CacheStore,
        adapter: ProviderAdapter,
        context: ProviderRequestContext,
    ) -> None:
        self.cache = cache
        self.adapter = adapter
        self.context = context

    async def process(
        self, text: str, context: Optional[ProviderRequestContext] = None
    ) -> PipelineResult:
        """Return the improved version of *text*.

        Raises:
            ProviderError: If the provider call fails on a cache miss.
        """
        ctx = context or self.context
        start = time.perf_counter()
        key = generate_key(text, ctx.model_name, ctx.template_id)

        if self.cache.enabled:
            try:
                cached = await asyncio.to_thread(self.cache.lookup, key)
            except StorageError as exc:
                logger.warning(
                    "Cache lookup failed, calling provider directly",
                    extra={"cache_key": key.hex(), "error": str(exc)},
                )
                cached = None
            if cached is not None:
                logger.info("Cache hit", extra={"cache_key": key.hex()})
                return PipelineResult(
                    response=cached,
                    cache_hit=True,
                    latency_ms=_elapsed_ms(start),
                )

        response = await self.adapter.send(text, ctx)

        if len(response) > SOFT_RESPONSE_LIMIT:
            logger.warning(
                "Unusually long LLM response",
                extra={"length": len(response), "soft_limit": SOFT_RESPONSE_LIMIT},
            )

        if self.cache.enabled:
            try:
                await asyncio.to_thread(self.cache.store, key, response)
            except StorageError as exc:
                logger.warning(
                    "Failed to cache response",
                    extra={"cache_key": key.hex(), "error": str(exc)},
                )

        latency_ms = _elapsed_ms(start)
        logger.info(
            "Request processed",
            extra={"cache_hit": False, "latency_ms": latency_ms},
        )
        return PipelineResult(response=response, latency_ms=latency_ms)

    async def probe(self) -> bool:
        return await self.adapter.probe(self.context)

    async def aclose(self) -> None:
        """Close the adapter's HTTP client (if owned) and the cache."""
        await self.adapter.aclose()
        self.cache.close()


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)


def build_pipeline(
    settings: Settings, client: Optional[httpx.AsyncClient] = None
) -> RequestPipeline:
    """Wire a pipeline from *settings*.

    Raises:
        StorageError: If the cache directory cannot be opened.
    """
    directory = settings.cache.directory or default_cache_dir()
    cache = CacheStore.open(directory, settings.cache)
    adapter = build_adapter(
        settings.llm.family, client, timeout_seconds=settings.llm.timeout_seconds
    )
    context = ProviderRequestContext.from_settings(settings.llm)
    logger.info(
        "Pipeline ready",
        extra={
            "provider_family": settings.llm.family.value,
            "model": settings.llm.model_name,
            "cache_enabled": settings.cache.enabled,
            "cache_dir": cache.directory,
        },
    )
    return RequestPipeline(cache, adapter, context)
