from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error: str
    code: str
    retry_after: int | None = Field(default=None, alias="retryAfter")
    details: list[dict[str, Any]] | None = None
