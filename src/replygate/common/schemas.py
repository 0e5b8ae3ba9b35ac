"""Shared Pydantic schemas for ReplyGate."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "replygate"


class ErrorResponse(BaseModel):
    """Body of non-quota failures, e.g. ``{"error": "generation_failed", ...}``."""

    error: str
    message: str
