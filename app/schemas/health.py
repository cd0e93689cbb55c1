"""Schema for the health check response."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    environment: Literal["dev", "prod"] = Field(description="APP_ENV of this process")
    database: Literal["connected", "disconnected"] = Field(
        description="Whether SELECT 1 succeeded on the configured database",
    )
