"""User and plan API router."""

from fastapi import APIRouter, Depends, HTTPException

from replygate.common.exceptions import InvalidPlanError, UserNotFoundError
from replygate.common.security import require_api_key
from replygate.plans.catalog import PLANS, can_access_feature, get_upgrade_target
from replygate.users.schemas import (
    FeatureAccessResponse,
    PlanChange,
    PlanLimitsResponse,
    PlanResponse,
    UserResponse,
    UserUpsert,
)

router = APIRouter()


def _get_service():
    from replygate.deps import get_user_service
    return get_user_service()


def _get_db():
    from replygate.deps import get_db
    return get_db()


@router.put("/users", response_model=UserResponse)
async def upsert_user(body: UserUpsert, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        user = await svc.upsert_user(
            session,
            email=body.email,
            plan=body.plan,
            trial_end=body.trial_end,
            first_name=body.first_name,
            last_name=body.last_name,
            country=body.country,
            currency=body.currency,
        )
        return UserResponse.model_validate(user)


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        user = await svc.get_user(session, user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        return UserResponse.model_validate(user)


@router.post("/users/{user_id}/plan", response_model=UserResponse)
async def change_plan(user_id: str, body: PlanChange, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            user = await svc.update_plan(session, user_id, body.plan)
            return UserResponse.model_validate(user)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except InvalidPlanError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.get("/users/{user_id}/features/{feature}", response_model=FeatureAccessResponse)
async def check_feature(user_id: str, feature: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        user = await svc.get_user(session, user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        allowed = can_access_feature(user.plan, feature, user.trial_end, svc.now())
        return FeatureAccessResponse(
            feature=feature,
            plan=user.plan,
            allowed=allowed,
            upgrade_target=None if allowed else get_upgrade_target(user.plan, feature),
        )


@router.get("/plans", response_model=list[PlanResponse])
async def list_plans(_=Depends(require_api_key)):
    from replygate.common.config import get_settings

    table = get_settings().plan_limit_table
    return [
        PlanResponse(
            id=plan_id,
            name=meta["name"],
            price=meta["price"],
            currency=meta["currency"],
            interval=meta["interval"],
            trial_days=meta["trial_days"],
            team_members=meta["team_members"],
            allowed_features=meta["allowed_features"],
            limits=PlanLimitsResponse(**table[plan_id].to_dict()),
        )
        for plan_id, meta in PLANS.items()
    ]
