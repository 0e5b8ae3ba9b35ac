"""Pydantic schemas for user endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class UserUpsert(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    plan: Optional[str] = Field(None, pattern=r"^(starter|pro|enterprise)$")
    trial_end: Optional[datetime] = None
    country: Optional[str] = Field(None, min_length=2, max_length=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class PlanChange(BaseModel):
    plan: str


class UserResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    plan: str
    plan_start_date: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    country: str
    currency: str
    created_at: datetime

    model_config = {"from_attributes": True}


class FeatureAccessResponse(BaseModel):
    feature: str
    plan: str
    allowed: bool
    upgrade_target: Optional[str] = None


class PlanLimitsResponse(BaseModel):
    daily: Optional[int] = None
    weekly: Optional[int] = None
    monthly: Optional[int] = None


class PlanResponse(BaseModel):
    id: str
    name: str
    price: float
    currency: str
    interval: str
    trial_days: Optional[int] = None
    team_members: Optional[int] = None
    allowed_features: list[str]
    limits: PlanLimitsResponse
