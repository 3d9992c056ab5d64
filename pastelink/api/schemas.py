from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


class PasteCreateRequest(BaseModel):
    """
    Shape of ``POST /api/pastes``.

    Types are strict so ``"5"``, ``5.0`` and ``true`` are rejected instead of
    coerced. Range and blank-content rules live in the service.
    """

    model_config = ConfigDict(extra="ignore")

    content: StrictStr = Field(..., description="Paste content")
    ttl_seconds: Optional[StrictInt] = Field(
        default=None,
        description="Seconds until the paste expires (>= 1)",
    )
    max_views: Optional[StrictInt] = Field(
        default=None,
        description="Maximum allowed views (>= 1)",
    )


class PasteCreatedResponse(BaseModel):
    id: str
    url: str


class PasteResponse(BaseModel):
    content: str
    remaining_views: Optional[int]
    expires_at: Optional[str]


class HealthResponse(BaseModel):
    ok: bool = True
    error: Optional[str] = None
