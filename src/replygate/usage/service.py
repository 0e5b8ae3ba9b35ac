"""Usage service: count generations, gate new ones, and derive analytics."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import case, func, insert, literal, select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from replygate.common.config import ReplyGateSettings
from replygate.common.exceptions import UsageUnavailableError
from replygate.common.models import ensure_utc, generate_uuid
from replygate.generation.client import GenerationClient, GenerationRequest, GenerationResult
from replygate.plans.catalog import trial_days_left
from replygate.plans.limits import Limit, PlanLimits, is_trial_expired, resolve_entitlement
from replygate.usage import analytics
from replygate.usage.models import GenerationEventModel
from replygate.usage.windows import (
    days_back,
    local_now,
    previous_week,
    start_of_day,
    start_of_month,
    start_of_week,
)
from replygate.users.models import UserModel
from replygate.users.service import UserService

logger = logging.getLogger(__name__)

REASON_DAILY_LIMIT = "daily_limit"
REASON_TRIAL_EXPIRED = "trial_expired"

# SQLSTATE for a failed SERIALIZABLE transaction
SERIALIZATION_FAILURE = "40001"


def _is_serialization_failure(exc: DBAPIError) -> bool:
    code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    return code == SERIALIZATION_FAILURE


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of the quota gate. A rejection is a value, not an error."""

    allowed: bool
    used: int
    limit: Limit
    plan: str
    reason: Optional[str] = None

    @property
    def upgrade_required(self) -> bool:
        return not self.allowed


@dataclass(frozen=True)
class ConsumeResult:
    decision: QuotaDecision
    event: Optional[GenerationEventModel] = None
    generation: Optional[GenerationResult] = None

    @property
    def allowed(self) -> bool:
        return self.decision.allowed


class UsageService:
    """Metered generation usage: counting, gating and analytics."""

    def __init__(
        self,
        settings: ReplyGateSettings,
        users: UserService,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.users = users
        self._clock = clock or (lambda: local_now(settings.timezone))
        self._plan_table = settings.plan_limit_table

    def now(self) -> datetime:
        return self._clock()

    def limits_for(self, user: UserModel, now: datetime) -> PlanLimits:
        return resolve_entitlement(user.plan, user.trial_end, now, self._plan_table)

    # ── Counting ──

    async def count_since(
        self,
        session: AsyncSession,
        user_id: str,
        since: datetime,
        until: datetime | None = None,
    ) -> int:
        """Count a user's events with since <= created_at (< until)."""
        query = select(func.count(GenerationEventModel.id)).where(
            GenerationEventModel.user_id == user_id,
            GenerationEventModel.created_at >= since,
        )
        if until is not None:
            query = query.where(GenerationEventModel.created_at < until)
        try:
            result = await session.execute(query)
        except SQLAlchemyError as e:
            logger.exception("Failed to count usage for user %s", user_id)
            raise UsageUnavailableError() from e
        return result.scalar_one()

    async def count_today(self, session: AsyncSession, user_id: str, now: datetime | None = None) -> int:
        return await self.count_since(session, user_id, start_of_day(now or self.now()))

    async def count_this_week(self, session: AsyncSession, user_id: str, now: datetime | None = None) -> int:
        return await self.count_since(session, user_id, start_of_week(now or self.now()))

    async def count_this_month(self, session: AsyncSession, user_id: str, now: datetime | None = None) -> int:
        return await self.count_since(session, user_id, start_of_month(now or self.now()))

    # ── Gate ──

    async def check_quota(
        self,
        session: AsyncSession,
        user: UserModel,
        now: datetime | None = None,
    ) -> QuotaDecision:
        """Decide whether ``user`` may generate one more reply today. Read-only."""
        now = now or self.now()
        limit = self.limits_for(user, now).daily
        used = await self.count_today(session, user.id, now)
        if limit.permits(used):
            return QuotaDecision(allowed=True, used=used, limit=limit, plan=user.plan)

        reason = REASON_TRIAL_EXPIRED if is_trial_expired(user.trial_end, now) else REASON_DAILY_LIMIT
        logger.info(
            "Quota rejected for user %s: %s", user.id, reason,
            extra={"user_id": user.id, "plan": user.plan, "reason": reason,
                   "used": used, "limit": limit.as_int()},
        )
        return QuotaDecision(allowed=False, used=used, limit=limit, plan=user.plan, reason=reason)

    async def record_event(
        self,
        session: AsyncSession,
        user_id: str,
        request: GenerationRequest,
        result: GenerationResult,
        daily_limit: Limit,
        now: datetime | None = None,
    ) -> Optional[GenerationEventModel]:
        """Append one event, unless doing so would exceed ``daily_limit``.

        Limited windows use a single INSERT ... SELECT ... WHERE count < limit,
        so two requests racing for the last slot cannot both land. The insert
        is committed here; a serialization failure from a concurrent writer
        counts as losing the race. Returns None when the slot was gone.
        """
        now = now or self.now()
        created_at = now.astimezone(timezone.utc)
        values = {
            "id": generate_uuid(),
            "user_id": user_id,
            "client_message": request.client_message,
            "ai_response": result.text,
            "query_type": request.query_type,
            "tone": request.tone,
            "confidence": result.confidence,
            "generation_time": result.generation_time_ms,
            "created_at": created_at,
            "updated_at": created_at,
        }

        if daily_limit.is_unlimited:
            event = GenerationEventModel(**values)
            session.add(event)
            await session.flush()
            return event

        table = GenerationEventModel.__table__
        used_today = (
            select(func.count(GenerationEventModel.id))
            .where(
                GenerationEventModel.user_id == user_id,
                GenerationEventModel.created_at >= start_of_day(now),
            )
            .correlate(None)
            .scalar_subquery()
        )
        source = select(
            *[literal(value, table.c[name].type).label(name) for name, value in values.items()]
        ).where(used_today < daily_limit.as_int())

        try:
            res = await session.execute(insert(table).from_select(list(values), source))
            inserted = res.rowcount == 1
            if inserted:
                await session.commit()
        except DBAPIError as e:
            if not _is_serialization_failure(e):
                raise
            await session.rollback()
            inserted = False

        if not inserted:
            logger.warning(
                "Lost quota race for user %s; reply discarded", user_id,
                extra={"user_id": user_id, "reason": REASON_DAILY_LIMIT, "limit": daily_limit.as_int()},
            )
            return None
        return await session.get(GenerationEventModel, values["id"])

    async def check_and_consume(
        self,
        session: AsyncSession,
        user_id: str,
        request: GenerationRequest,
        generator: GenerationClient,
    ) -> ConsumeResult:
        """Gate, generate, then record.

        A generation failure propagates before anything is written, so it
        never consumes quota.
        """
        user = await self.users.require_user(session, user_id)
        now = self.now()
        decision = await self.check_quota(session, user, now)
        if not decision.allowed:
            return ConsumeResult(decision=decision)

        # no transaction stays open across the provider call
        await session.commit()
        generation = await generator.generate(request)

        event = await self.record_event(
            session, user.id, request, generation, decision.limit, now,
        )
        used = await self.count_today(session, user.id, now)
        if event is None:
            return ConsumeResult(
                decision=QuotaDecision(
                    allowed=False, used=used, limit=decision.limit,
                    plan=user.plan, reason=REASON_DAILY_LIMIT,
                ),
                generation=generation,
            )
        return ConsumeResult(
            decision=QuotaDecision(allowed=True, used=used, limit=decision.limit, plan=user.plan),
            event=event,
            generation=generation,
        )

    # ── Analytics ──

    async def get_analytics(self, session: AsyncSession, user_id: str) -> dict[str, Any]:
        """Usage bundle for the dashboard. Display only."""
        user = await self.users.require_user(session, user_id)
        now = self.now()
        limits = self.limits_for(user, now)

        today = await self.count_today(session, user.id, now)
        week = await self.count_this_week(session, user.id, now)
        month = await self.count_this_month(session, user.id, now)
        last_week = await self.count_since(session, user.id, *previous_week(now))

        ev = GenerationEventModel
        row = (await session.execute(
            select(
                func.count(ev.id).label("total"),
                func.avg(ev.confidence).label("avg_confidence"),
                func.sum(case((ev.confidence > analytics.HIGH_QUALITY_THRESHOLD, 1), else_=0)).label("high"),
                func.sum(case((ev.confidence < analytics.LOW_QUALITY_THRESHOLD, 1), else_=0)).label("low"),
                func.avg(ev.generation_time).label("avg_time"),
                func.min(ev.generation_time).label("min_time"),
            ).where(ev.user_id == user.id)
        )).one()

        total = row.total or 0
        low = row.low or 0
        join_date = ensure_utc(user.created_at).strftime("%B %Y") if user.created_at else "Recently"

        return {
            "used": today,
            "limit": limits.daily.as_int(),
            "plan": user.plan,
            "week_total": week,
            "weekly_limit": limits.weekly.as_int(),
            "month_total": month,
            "monthly_limit": limits.monthly.as_int(),
            "weekly_growth": analytics.weekly_growth(week, last_week),
            "total_responses": total,
            "avg_confidence": round(float(row.avg_confidence or 0), 2),
            "high_quality_count": row.high or 0,
            "low_quality_count": low,
            "avg_generation_time": float(row.avg_time or 0) / 1000,
            "fastest_time": float(row.min_time or 0) / 1000,
            "success_rate": analytics.success_rate(total, low),
            "trial_days_left": (
                trial_days_left(user.plan, user.trial_end, now)
                if user.plan == "starter" and user.trial_end else None
            ),
            "join_date": join_date,
        }

    async def get_weekly_usage(self, session: AsyncSession, user_id: str) -> dict[str, Any]:
        user = await self.users.require_user(session, user_id)
        now = self.now()
        limits = self.limits_for(user, now)
        return {
            "week_total": await self.count_this_week(session, user.id, now),
            "weekly_limit": limits.weekly.as_int(),
            "month_total": await self.count_this_month(session, user.id, now),
            "monthly_limit": limits.monthly.as_int(),
            "plan": user.plan,
            "unlimited": limits.weekly.is_unlimited and limits.monthly.is_unlimited,
        }

    async def _timestamps_since(
        self, session: AsyncSession, user_id: str, since: datetime | None = None,
    ) -> list[datetime]:
        query = select(GenerationEventModel.created_at).where(
            GenerationEventModel.user_id == user_id,
        )
        if since is not None:
            query = query.where(GenerationEventModel.created_at >= since)
        result = await session.execute(query)
        return [ensure_utc(ts) for ts in result.scalars().all()]

    async def get_daily_usage(self, session: AsyncSession, user_id: str, days: int = 7) -> list[dict]:
        await self.users.require_user(session, user_id)
        now = self.now()
        stamps = await self._timestamps_since(session, user_id, days_back(now, days - 1))
        return analytics.daily_buckets(stamps, now, days)

    async def get_activity_heatmap(self, session: AsyncSession, user_id: str) -> list[dict]:
        await self.users.require_user(session, user_id)
        stamps = await self._timestamps_since(session, user_id)
        return analytics.hourly_heatmap(stamps, self.now().tzinfo)

    async def get_template_usage(self, session: AsyncSession, user_id: str) -> list[dict]:
        await self.users.require_user(session, user_id)
        result = await session.execute(
            select(GenerationEventModel.query_type, func.count(GenerationEventModel.id))
            .where(GenerationEventModel.user_id == user_id)
            .group_by(GenerationEventModel.query_type)
        )
        return analytics.template_usage({qt: n for qt, n in result.all()})

    async def get_confidence_metrics(self, session: AsyncSession, user_id: str) -> dict[str, Any]:
        await self.users.require_user(session, user_id)
        result = await session.execute(
            select(GenerationEventModel.confidence)
            .where(GenerationEventModel.user_id == user_id)
            .order_by(GenerationEventModel.created_at.desc())
            .limit(self.settings.confidence_sample_size)
        )
        return analytics.confidence_metrics(list(result.scalars().all()))

    async def get_recent_responses(
        self, session: AsyncSession, user_id: str, limit: int | None = None,
    ) -> list[GenerationEventModel]:
        await self.users.require_user(session, user_id)
        result = await session.execute(
            select(GenerationEventModel)
            .where(GenerationEventModel.user_id == user_id)
            .order_by(GenerationEventModel.created_at.desc())
            .limit(limit or self.settings.default_history_limit)
        )
        return list(result.scalars().all())
