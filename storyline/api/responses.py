"""
Pydantic models for API responses.

Story payloads are shaped by the use-case presenters and returned as-is;
this module only holds responses that are specific to API concerns.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Response for health check endpoint."""

    status: str
    version: str
    timestamp: datetime


class ErrorBody(BaseModel):
    kind: str
    code: str
    message: str
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    error: ErrorBody


class CacheStatsResponse(BaseModel):
    enabled: bool
    available: bool
    ttl_seconds: int
    total_keys: int
    list_keys: int
