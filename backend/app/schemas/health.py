from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    uptime_seconds: float
    version: str


class ReadinessResponse(BaseModel):
    status: str
