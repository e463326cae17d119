"""
API Response Schemas.

Pydantic models for the JSON the relay produces. Relay request bodies are
deliberately not modelled here: the relay parses them by hand so that the
error contract (400 for a bad `input`, 500 for unparseable JSON) is exact,
rather than FastAPI's 422 validation response.

Models:
    ErrorBody: Every relay error response
    HealthResponse: GET /health

These schemas drive the OpenAPI documentation and serialize /health.
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    """
    Relay error response.

    Example Responses:
        {"error": "Method not allowed"}
        {"error": "Internal server error", "details": "timed out"}
    """
    error: str = Field(..., description="Human-readable error message")
    details: str | None = Field(
        default=None,
        description="Exception text, only present on internal errors",
    )


class HealthResponse(BaseModel):
    """
    Health check response.

    `credential_configured` reports presence only. A relay without a
    credential is still up; its relay requests fail with 500.
    """
    ok: bool = Field(True, description="Always true while the process serves requests")
    service: str = Field("speech-relay", description="Service name")
    version: str = Field(..., description="Package version")
    credential_configured: bool = Field(..., description="Whether an upstream credential is set")
    upstream: str = Field(..., description="Upstream base URL")


# OpenAPI `responses=` mapping shared by both relay routes.
RELAY_ERROR_RESPONSES = {
    400: {"model": ErrorBody, "description": "Missing or invalid required field"},
    405: {"model": ErrorBody, "description": "Method other than POST or OPTIONS"},
    500: {"model": ErrorBody, "description": "Credential missing or internal error"},
}
