"""
Ollama adapter (``POST /api/chat``), no authentication.

Replies from ``/api/chat`` carry ``message.content``; a URL pointed at
``/api/generate`` answers with a top-level ``response`` instead, which is
accepted as the fallback shape.
"""

from typing import Any, Dict, Optional

from writer_ai.providers.base import (
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_P,
    Payload,
    ProviderAdapter,
    ProviderRequestContext,
    base_url,
    system_and_user,
)
from writer_ai.providers.family import ProviderFamily


def message_content(payload: Dict[str, Any]) -> Optional[str]:
    message = payload.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None


def generate_response(payload: Dict[str, Any]) -> Optional[str]:
    value = payload.get("response")
    return value if isinstance(value, str) else None


class OllamaAdapter(ProviderAdapter):
    family = ProviderFamily.OLLAMA
    strategies = (message_content, generate_response)

    def build_body(self, prompt: str, context: ProviderRequestContext) -> Payload:
        return {
            "model": context.model_name,
            "messages": system_and_user(prompt),
            "stream": False,
            "options": {
                "temperature": DEFAULT_TEMPERATURE,
                "top_p": DEFAULT_TOP_P,
                "num_predict": DEFAULT_MAX_OUTPUT_TOKENS,
            },
        }

    def build_headers(self, context: ProviderRequestContext) -> Dict[str, str]:
        return {}

    def probe_url(self, context: ProviderRequestContext) -> str:
        return f"{base_url(context.provider_url)}/api/tags"
