"""
Provider family classification.

The family decides the request-body shape, the authentication scheme and
the ordered list of response extraction strategies.  It is resolved once
from the configured endpoint URL when settings are built.
"""

from enum import Enum


class ProviderFamily(str, Enum):
    """Closed set of supported provider wire formats."""

    OPENAI_RESPONSES = "openai_responses"
    OPENAI_CHAT = "openai_chat"
    OLLAMA = "ollama"

    @property
    def requires_api_key(self) -> bool:
        """Whether requests to this family need a bearer token."""
        return self is not ProviderFamily.OLLAMA


def classify_provider(url: str) -> ProviderFamily:
    """Map an endpoint URL to its provider family.

    Ollama is recognised by host (``ollama`` in the URL or the default
    ``localhost:11434`` port).  Any other URL speaks the OpenAI dialect:
    ``/chat/completions`` endpoints use the chat shape, everything else
    the structured Responses shape.

    Args:
        url: The configured provider endpoint.

    Returns:
        The matching :class:`ProviderFamily`.
    """
    lowered = url.lower()
    if "ollama" in lowered or "localhost:11434" in lowered:
        return ProviderFamily.OLLAMA
    if "/chat/completions" in lowered:
        return ProviderFamily.OPENAI_CHAT
    return ProviderFamily.OPENAI_RESPONSES
