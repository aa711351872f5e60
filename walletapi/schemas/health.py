"""Pydantic models for health endpoints."""

from typing import Optional
from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Response model for service health checks."""

    status: str = "healthy"
    database: Optional[str] = None
    pricing_configured: Optional[bool] = None
    error: Optional[str] = None
