"""
Writer AI exception hierarchy.

All custom exceptions inherit from WriterAIException so callers can
catch a single base type when they want a broad safety net.  Cache
errors derive from StorageError and are absorbed by the request
pipeline; provider errors derive from ProviderError and are the
terminal result of a request.
"""

from typing import Optional


class WriterAIException(Exception):
    """Base exception for all Writer AI errors."""


class ConfigurationError(WriterAIException, ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class StorageError(WriterAIException):
    """Raised when the response cache cannot be opened, read or written."""


class DeserializationError(StorageError):
    """Raised when a stored cache entry cannot be decoded."""


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class ProviderError(WriterAIException):
    """Raised when an LLM provider call fails."""


class MissingCredentialError(ProviderError):
    """Raised when a provider that requires an API key has none configured."""


class TransportError(ProviderError):
    """Raised when the provider cannot be reached (timeout, refused, DNS).

    The underlying ``httpx`` exception is chained as ``__cause__``.
    """


class UpstreamStatusError(ProviderError):
    """Raised when the provider answers with a non-success HTTP status.

    Attributes:
        status: HTTP status code returned by the provider.
        body: Response body, read best-effort for diagnostics.
    """

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"LLM API error (status {status}): {body}")
        self.status = status
        self.body = body


class UnrecognizedFormatError(ProviderError):
    """Raised when a successful response matches no known payload shape.

    Attributes:
        body: The raw serialized response body.
    """

    def __init__(self, body: str, reason: Optional[str] = None) -> None:
        message = "Unrecognized LLM response format"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(f"{message}. Received: {body}")
        self.body = body
