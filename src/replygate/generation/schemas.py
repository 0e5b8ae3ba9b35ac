"""Pydantic schemas for the generate-response endpoint."""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    client_message: str = Field(..., min_length=10)
    query_type: Literal["refund_request", "shipping_delay", "product_howto", "general"]
    tone: Literal["professional", "friendly", "casual"] = "professional"


class UsageSnapshot(BaseModel):
    used: int
    limit: Optional[int] = None  # null = unlimited
    plan: str


class GenerateResponse(BaseModel):
    id: str
    response: str
    confidence: int
    generation_time: int  # ms
    usage: UsageSnapshot


class QuotaExceededResponse(BaseModel):
    error: str
    message: str
    upgrade_required: bool = True
    used: int
    limit: Optional[int] = None
    plan: str
