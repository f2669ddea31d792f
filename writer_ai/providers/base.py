"""
Provider adapter contract and the steps shared by every wire format.

An adapter turns ``(text, context)`` into one HTTP request and turns the
provider's reply back into plain text.  Subclasses supply the request body
shape, the auth headers and an ordered tuple of extraction strategies;
everything else (template substitution, override merging, transport and
status classification, truncation) lives here.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlsplit

import httpx

from writer_ai.cache.fingerprint import template_identity
from writer_ai.config import TEMPLATE_PLACEHOLDER, LlmSettings, freeze_params
from writer_ai.exceptions import (
    MissingCredentialError,
    TransportError,
    UnrecognizedFormatError,
    UpstreamStatusError,
)
from writer_ai.providers.family import ProviderFamily

logger = logging.getLogger(__name__)

MAX_RESPONSE_CHARS = 2000
TRUNCATION_MARKER = "... [truncated]"
PROBE_TIMEOUT_SECONDS = 5.0

SYSTEM_INSTRUCTION = (
    "You are a writing assistant. Correct the grammar, spelling and clarity "
    "of the user's text while keeping its meaning and tone. Reply with only "
    "the corrected text, without explanations, greetings or any other "
    "conversational filler."
)
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TOP_P = 1.0
DEFAULT_MAX_OUTPUT_TOKENS = 500

Payload = Dict[str, Any]
Extractor = Callable[[Any], Optional[str]]


@dataclass(frozen=True)
class Credentials:
    api_key: str
    org_id: Optional[str] = None
    project_id: Optional[str] = None


@dataclass(frozen=True)
class ProviderRequestContext:
    """Everything an adapter needs for one request.

    Attributes:
        model_name: Model identifier sent to the provider.
        provider_url: Endpoint the request is POSTed to.
        family: Wire format of the endpoint.
        prompt_template: Optional template containing ``{{input}}``.
        llm_params: Read-only overrides merged into the body by key.
        credentials: Bearer credentials, if configured.
        timeout_seconds: Per-call timeout.
    """

    model_name: str
    provider_url: str
    family: ProviderFamily
    prompt_template: Optional[str] = None
    llm_params: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    credentials: Optional[Credentials] = None
    timeout_seconds: float = 60.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "llm_params", freeze_params(self.llm_params))

    @property
    def template_id(self) -> int:
        return template_identity(self.prompt_template)

    @classmethod
    def from_settings(cls, llm: LlmSettings) -> "ProviderRequestContext":
        credentials = None
        if llm.api_key:
            credentials = Credentials(
                api_key=llm.api_key,
                org_id=llm.org_id or None,
                project_id=llm.project_id or None,
            )
        return cls(
            model_name=llm.model_name,
            provider_url=llm.url,
            family=llm.family,
            prompt_template=llm.prompt_template,
            llm_params=llm.params,
            credentials=credentials,
            timeout_seconds=llm.timeout_seconds,
        )


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def apply_template(text: str, template: Optional[str]) -> str:
    """Substitute *text* into *template*, or return it verbatim."""
    if template is None:
        return text
    return template.replace(TEMPLATE_PLACEHOLDER, text)


def merge_overrides(body: Payload, overrides: Mapping[str, Any]) -> Payload:
    """Overlay *overrides* onto *body* by top-level key."""
    merged = dict(body)
    merged.update(overrides)
    return merged


def extract_text(payload: Any, strategies: Sequence[Extractor]) -> Optional[str]:
    """Return the first strategy result that is not ``None``."""
    if not isinstance(payload, dict):
        return None
    for strategy in strategies:
        result = strategy(payload)
        if result is not None:
            return result
    return None


def finalize_response(text: str) -> str:
    """Trim, then cap at :data:`MAX_RESPONSE_CHARS` plus a marker."""
    trimmed = text.strip()
    if len(trimmed) <= MAX_RESPONSE_CHARS:
        return trimmed
    logger.info(
        "LLM response truncated",
        extra={"original_length": len(trimmed), "limit": MAX_RESPONSE_CHARS},
    )
    return trimmed[:MAX_RESPONSE_CHARS] + TRUNCATION_MARKER


def base_url(url: str) -> str:
    """``scheme://host[:port]`` of *url*."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def _read_error_body(response: httpx.Response) -> str:
    try:
        return response.text
    except (UnicodeDecodeError, httpx.HTTPError):
        return "Failed to read error body"


# ---------------------------------------------------------------------------
# Adapter base class
# ---------------------------------------------------------------------------


class ProviderAdapter(ABC):
    """Translate between the canonical prompt and one provider's wire format.

    Args:
        client: Shared async HTTP client.  The adapter does not own it
            unless ``owns_client`` is set.
        owns_client: Close *client* in :meth:`aclose`.
    """

    family: ClassVar[ProviderFamily]
    strategies: ClassVar[Sequence[Extractor]] = ()

    def __init__(self, client: httpx.AsyncClient, owns_client: bool = False) -> None:
        self._client = client
        self._owns_client = owns_client

    @abstractmethod
    def build_body(self, prompt: str, context: ProviderRequestContext) -> Payload:
        """Request body for *prompt* before overrides are applied."""

    @abstractmethod
    def build_headers(self, context: ProviderRequestContext) -> Dict[str, str]:
        """Request headers, including authentication.

        Raises:
            MissingCredentialError: If the provider needs a key and none
                is configured.
        """

    @abstractmethod
    def probe_url(self, context: ProviderRequestContext) -> str:
        """Cheap GET endpoint used by :meth:`probe`."""

    async def send(self, text: str, context: ProviderRequestContext) -> str:
        """Send *text* to the provider and return the improved text.

        Raises:
            MissingCredentialError: Auth required but no key configured.
            TransportError: The provider could not be reached.
            UpstreamStatusError: The provider returned a non-2xx status.
            UnrecognizedFormatError: The reply matched no known shape.
        """
        prompt = apply_template(text, context.prompt_template)
        body = merge_overrides(self.build_body(prompt, context), context.llm_params)
        headers = self.build_headers(context)

        logger.info(
            "Sending request to LLM",
            extra={"url": context.provider_url, "model": context.model_name},
        )
        logger.debug("LLM payload", extra={"payload": body})

        try:
            response = await self._client.post(
                context.provider_url,
                json=body,
                headers=headers,
                timeout=context.timeout_seconds,
            )
        except httpx.RequestError as exc:
            raise TransportError(f"LLM request failed: {exc!r}") from exc

        if not response.is_success:
            error_body = _read_error_body(response)
            logger.error(
                "LLM API returned error status",
                extra={"status": response.status_code, "body": error_body},
            )
            raise UpstreamStatusError(response.status_code, error_body)

        try:
            payload = response.json()
        except ValueError as exc:
            raise UnrecognizedFormatError(response.text, "body is not JSON") from exc

        logger.debug("Received LLM response", extra={"payload": payload})
        extracted = extract_text(payload, self.strategies)
        if extracted is None:
            raw = json.dumps(payload, default=str)
            logger.warning("LLM response format not recognized", extra={"body": raw})
            raise UnrecognizedFormatError(raw)

        return finalize_response(extracted)

    async def probe(self, context: ProviderRequestContext) -> bool:
        """Connectivity self-test.  Logs the outcome and never raises."""
        url = self.probe_url(context)
        try:
            headers = self.build_headers(context)
        except MissingCredentialError as exc:
            logger.warning("LLM API not usable", extra={"error": str(exc)})
            return False

        try:
            response = await self._client.get(
                url, headers=headers, timeout=PROBE_TIMEOUT_SECONDS
            )
        except httpx.RequestError as exc:
            logger.warning(
                "Failed to connect to LLM API",
                extra={
                    "url": url,
                    "error": repr(exc),
                    "timed_out": isinstance(exc, httpx.TimeoutException),
                },
            )
            return False

        if response.is_success:
            logger.info(
                "Connected to LLM API",
                extra={"url": url, "model": context.model_name},
            )
            return True

        logger.warning(
            "LLM API responded with error status",
            extra={
                "url": url,
                "status": response.status_code,
                "body": _read_error_body(response),
            },
        )
        return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def system_and_user(prompt: str) -> List[Dict[str, str]]:
    """Two-message conversation carrying the fixed instruction."""
    return [
        {"role": "system", "content": SYSTEM_INSTRUCTION},
        {"role": "user", "content": prompt},
    ]
