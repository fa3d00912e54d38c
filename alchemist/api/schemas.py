"""
Request/response models for the HTTP API.
"""

from typing import Any

from pydantic import BaseModel, Field


class MergeRequest(BaseModel):
    """Body of ``POST /merge``. Presence is checked by the service, not here."""

    element1: str | None = Field(default=None, max_length=200)
    element2: str | None = Field(default=None, max_length=200)


class MergeResponse(BaseModel):
    result: str | None


class ErrorResponse(BaseModel):
    error: str
    details: str


class HealthResponse(BaseModel):
    status: str
    service: str
    stats: dict[str, Any]
