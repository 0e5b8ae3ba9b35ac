"""Pydantic schemas for usage and analytics endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UsageAnalytics(BaseModel):
    used: int
    limit: Optional[int] = None  # null = unlimited
    plan: str
    week_total: int
    weekly_limit: Optional[int] = None
    month_total: int
    monthly_limit: Optional[int] = None
    weekly_growth: int
    total_responses: int
    avg_confidence: float
    high_quality_count: int
    low_quality_count: int
    avg_generation_time: float  # seconds
    fastest_time: float  # seconds
    success_rate: float
    trial_days_left: Optional[int] = None
    join_date: str = "Recently"


class UsageStats(UsageAnalytics):
    """Analytics plus trial progression for the usage widget."""
    trial_end: Optional[datetime] = None
    trial_start_date: Optional[datetime] = None
    days_left: int = 0
    current_trial_day: int = 1


class WeeklyUsage(BaseModel):
    week_total: int
    weekly_limit: Optional[int] = None
    month_total: int
    monthly_limit: Optional[int] = None
    plan: str
    unlimited: bool


class DailyUsage(BaseModel):
    day: str
    date: str
    responses: int


class TemplateUsage(BaseModel):
    name: str
    query_type: str
    count: int


class HeatmapCell(BaseModel):
    hour: str
    activity: int


class ConfidenceMetrics(BaseModel):
    overall: float
    accuracy: float
    consistency: float
    improvement: float
    total_responses: int


class GenerationEventResponse(BaseModel):
    id: str
    client_message: str
    ai_response: str
    query_type: str
    tone: str
    confidence: int
    generation_time: int
    created_at: datetime

    model_config = {"from_attributes": True}
