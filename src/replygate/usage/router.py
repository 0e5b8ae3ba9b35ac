"""Usage and analytics API router."""

from fastapi import APIRouter, Depends, HTTPException, Query

from replygate.common.exceptions import UserNotFoundError
from replygate.common.security import current_user_id
from replygate.plans.catalog import current_trial_day, trial_days_left
from replygate.usage.schemas import (
    ConfidenceMetrics,
    DailyUsage,
    GenerationEventResponse,
    HeatmapCell,
    TemplateUsage,
    UsageAnalytics,
    UsageStats,
    WeeklyUsage,
)

router = APIRouter()


def _get_service():
    from replygate.deps import get_usage_service
    return get_usage_service()


def _get_db():
    from replygate.deps import get_db
    return get_db()


@router.get("/usage/stats", response_model=UsageStats)
async def get_usage_stats(user_id: str = Depends(current_user_id)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            user = await svc.users.require_user(session, user_id)
            data = await svc.get_analytics(session, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    now = svc.now()
    return UsageStats(
        **data,
        trial_end=user.trial_end,
        trial_start_date=user.plan_start_date if user.plan == "starter" else None,
        days_left=trial_days_left(user.plan, user.trial_end, now),
        current_trial_day=current_trial_day(
            user.plan, user.plan_start_date, now, svc.settings.trial_days,
        ),
    )


@router.get("/usage/weekly", response_model=WeeklyUsage)
async def get_weekly_usage(user_id: str = Depends(current_user_id)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            return await svc.get_weekly_usage(session, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/analytics/overview", response_model=UsageAnalytics)
async def get_analytics_overview(user_id: str = Depends(current_user_id)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            return await svc.get_analytics(session, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/analytics/daily-usage", response_model=list[DailyUsage])
async def get_daily_usage(user_id: str = Depends(current_user_id)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            return await svc.get_daily_usage(session, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/analytics/templates", response_model=list[TemplateUsage])
async def get_template_usage(user_id: str = Depends(current_user_id)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            return await svc.get_template_usage(session, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/analytics/heatmap", response_model=list[HeatmapCell])
async def get_activity_heatmap(user_id: str = Depends(current_user_id)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            return await svc.get_activity_heatmap(session, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/analytics/confidence", response_model=ConfidenceMetrics)
async def get_confidence_metrics(user_id: str = Depends(current_user_id)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            return await svc.get_confidence_metrics(session, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/responses", response_model=list[GenerationEventResponse])
async def list_responses(
    limit: int | None = Query(None, ge=1, le=100),
    user_id: str = Depends(current_user_id),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            events = await svc.get_recent_responses(session, user_id, limit)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return [GenerationEventResponse.model_validate(e) for e in events]
