"""
Adapter selection by provider family.
"""

from typing import Dict, Optional, Type

import httpx

from writer_ai.providers.base import ProviderAdapter
from writer_ai.providers.family import ProviderFamily
from writer_ai.providers.ollama import OllamaAdapter
from writer_ai.providers.openai import OpenAIChatAdapter, OpenAIResponsesAdapter

_ADAPTERS: Dict[ProviderFamily, Type[ProviderAdapter]] = {
    ProviderFamily.OPENAI_RESPONSES: OpenAIResponsesAdapter,
    ProviderFamily.OPENAI_CHAT: OpenAIChatAdapter,
    ProviderFamily.OLLAMA: OllamaAdapter,
}


def build_adapter(
    family: ProviderFamily,
    client: Optional[httpx.AsyncClient] = None,
    timeout_seconds: float = 60.0,
) -> ProviderAdapter:
    """Create the adapter for *family*.

    Args:
        family: Resolved provider family.
        client: Shared HTTP client.  When omitted a new one is created
            and closed by the adapter's ``aclose``.
        timeout_seconds: Default timeout for a client created here.
    """
    adapter_cls = _ADAPTERS[family]
    if client is None:
        return adapter_cls(httpx.AsyncClient(timeout=timeout_seconds), owns_client=True)
    return adapter_cls(client)
