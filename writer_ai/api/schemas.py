"""
Pydantic request/response models for the Writer AI REST API.
"""

from pydantic import BaseModel, Field


class ProcessRequest(BaseModel):
    """Text to improve.

    Attributes:
        text: Raw user text, sent to the provider verbatim or through the
            configured prompt template.
    """

    text: str = Field(..., description="Text to improve")


class ProcessResponse(BaseModel):
    response: str = Field(..., description="Improved text")


class ErrorResponse(BaseModel):
    """Structured error body returned on every failure."""

    error: str
    message: str
    request_id: str


class HealthResponse(BaseModel):
    """Service health snapshot.

    Attributes:
        status: ``healthy`` or ``degraded`` (cache unreadable).
        version: Service version.
        provider_family: Wire format of the configured provider.
        model: Configured model name.
        cache_enabled: Whether the response cache is consulted.
        cache_entries: Entries currently stored, ``-1`` if unknown.
        uptime_seconds: Seconds since the app started.
    """

    status: str = "healthy"
    version: str
    provider_family: str
    model: str
    cache_enabled: bool
    cache_entries: int = -1
    uptime_seconds: float = 0.0
