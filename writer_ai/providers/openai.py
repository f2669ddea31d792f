"""
OpenAI adapters: the structured Responses API and Chat Completions.

Both authenticate with a bearer key plus optional organization and
project headers.  They differ in request body shape and in where the
generated text sits in the reply.
"""

from typing import Any, Dict, Optional

from writer_ai.exceptions import MissingCredentialError
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

# ---------------------------------------------------------------------------
# Extraction strategies
# ---------------------------------------------------------------------------


def output_text(payload: Dict[str, Any]) -> Optional[str]:
    """Responses API convenience field ``output_text``."""
    value = payload.get("output_text")
    return value if isinstance(value, str) else None


def output_content_text(payload: Dict[str, Any]) -> Optional[str]:
    """First ``output[*].content[*].text`` of a Responses API reply."""
    output = payload.get("output")
    if not isinstance(output, list):
        return None
    for item in output:
        if not isinstance(item, dict) or not isinstance(item.get("content"), list):
            continue
        for part in item["content"]:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                return part["text"]
    return None


def choice_message_content(payload: Dict[str, Any]) -> Optional[str]:
    """``choices[0].message.content`` of a Chat Completions reply."""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict) or not isinstance(first.get("message"), dict):
        return None
    content = first["message"].get("content")
    return content if isinstance(content, str) else None


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


class _OpenAIAdapter(ProviderAdapter):
    def build_headers(self, context: ProviderRequestContext) -> Dict[str, str]:
        credentials = context.credentials
        if credentials is None or not credentials.api_key:
            raise MissingCredentialError(
                "Missing OpenAI API key. Set OPENAI_API_KEY or llm.api_key in the config file."
            )
        headers = {"Authorization": f"Bearer {credentials.api_key}"}
        if credentials.org_id:
            headers["OpenAI-Organization"] = credentials.org_id
        if credentials.project_id:
            headers["OpenAI-Project"] = credentials.project_id
        return headers

    def probe_url(self, context: ProviderRequestContext) -> str:
        return f"{base_url(context.provider_url)}/v1/models"


class OpenAIResponsesAdapter(_OpenAIAdapter):
    """``POST /v1/responses``."""

    family = ProviderFamily.OPENAI_RESPONSES
    strategies = (output_text, output_content_text)

    def build_body(self, prompt: str, context: ProviderRequestContext) -> Payload:
        return {
            "model": context.model_name,
            "input": system_and_user(prompt),
            "temperature": DEFAULT_TEMPERATURE,
            "top_p": DEFAULT_TOP_P,
            "max_output_tokens": DEFAULT_MAX_OUTPUT_TOKENS,
        }


class OpenAIChatAdapter(_OpenAIAdapter):
    """``POST /v1/chat/completions``."""

    family = ProviderFamily.OPENAI_CHAT
    strategies = (choice_message_content,)

    def build_body(self, prompt: str, context: ProviderRequestContext) -> Payload:
        return {
            "model": context.model_name,
            "messages": system_and_user(prompt),
            "temperature": DEFAULT_TEMPERATURE,
            "top_p": DEFAULT_TOP_P,
            "max_tokens": DEFAULT_MAX_OUTPUT_TOKENS,
        }
