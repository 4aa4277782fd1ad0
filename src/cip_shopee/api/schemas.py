"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from pydantic import BaseModel, Field


# =============================================================================
# Base Schemas
# =============================================================================


class ErrorResponse(BaseModel):
    """Error response schema."""

    success: bool = False
    error: str
    detail: str | None = None


# =============================================================================
# Webhook Schemas
# =============================================================================


class WebhookPayload(BaseModel):
    """Shape of a Shopee push body (documentation only; bodies are read raw)."""

    code: int = Field(..., description="Push event code")
    shop_id: int | None = Field(default=None, description="Shop the push concerns")
    timestamp: int | None = Field(default=None, description="Epoch seconds")
    msg_id: str | None = Field(default=None, description="Unique delivery id")
    data: dict = Field(default_factory=dict, description="Event-specific data")


class QueueStatsSchema(BaseModel):
    """Per-shop queue statistics."""

    active_slots: int
    processing_shops: list[str] = Field(default_factory=list)
    pending_tasks: int
    max_depth_per_shop: int


class WebhookStatsResponse(BaseModel):
    """Webhook pipeline statistics."""

    success: bool = True
    processed: int
    failed: int
    duplicates: int
    queue: QueueStatsSchema


# =============================================================================
# Health Schemas
# =============================================================================


class ComponentHealthSchema(BaseModel):
    """Health of one dependency."""

    name: str
    status: str = Field(..., description="healthy, degraded or unhealthy")
    message: str | None = None


class HealthResponse(BaseModel):
    """Comprehensive health response."""

    status: str
    version: str
    uptime_seconds: float
    components: list[ComponentHealthSchema] = Field(default_factory=list)


class LivenessResponse(BaseModel):
    """Liveness probe response."""

    status: str = "alive"
    timestamp: str


class ReadinessResponse(BaseModel):
    """Readiness probe response."""

    status: str
    ready: bool
    checks: list[ComponentHealthSchema] = Field(default_factory=list)
