"""User service: upsert, lookup and plan changes."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from replygate.common.config import ReplyGateSettings
from replygate.common.exceptions import InvalidPlanError, UserNotFoundError
from replygate.plans.catalog import is_known_plan
from replygate.usage.windows import local_now
from replygate.users.models import UserModel

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = ("first_name", "last_name", "country", "currency")


class UserService:
    """User account and plan operations."""

    def __init__(
        self,
        settings: ReplyGateSettings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self._clock = clock or (lambda: local_now(settings.timezone))

    def now(self) -> datetime:
        return self._clock()

    async def get_user(self, session: AsyncSession, user_id: str) -> Optional[UserModel]:
        return await session.get(UserModel, user_id)

    async def require_user(self, session: AsyncSession, user_id: str) -> UserModel:
        user = await self.get_user(session, user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    async def get_by_email(self, session: AsyncSession, email: str) -> Optional[UserModel]:
        result = await session.execute(
            select(UserModel).where(UserModel.email == email)
        )
        return result.scalar_one_or_none()

    def _trial_for(self, plan: str, now: datetime) -> datetime | None:
        """Trial end for a user starting ``plan`` at ``now``; paid plans have none."""
        if plan == "starter":
            return now + timedelta(days=self.settings.trial_days)
        return None

    def _switch_plan(self, user: UserModel, plan: str, now: datetime) -> None:
        user.plan = plan
        user.plan_start_date = now
        user.trial_end = self._trial_for(plan, now)

    async def upsert_user(
        self,
        session: AsyncSession,
        email: str,
        plan: str | None = None,
        trial_end: datetime | None = None,
        **profile,
    ) -> UserModel:
        """Create a user on first sight, otherwise refresh profile fields.

        New users start on ``plan`` (starter by default); only starter gets a
        trial of ``settings.trial_days``. For existing users a plan change
        follows the same rules as update_plan, and a paid plan never keeps a
        trial. An explicit ``trial_end`` always wins.
        """
        if plan is not None and not is_known_plan(plan):
            raise InvalidPlanError(f"Unknown plan: {plan}")
        plan = plan.lower() if plan is not None else None

        now = self.now().astimezone(timezone.utc)
        user = await self.get_by_email(session, email)
        if user is None:
            plan = plan or "starter"
            user = UserModel(
                email=email,
                plan=plan,
                plan_start_date=now,
                trial_end=trial_end or self._trial_for(plan, now),
                **{k: v for k, v in profile.items() if k in _PROFILE_FIELDS and v is not None},
            )
            session.add(user)
            await session.flush()
            logger.info("Created user %s on plan %s", user.id, user.plan)
            return user

        for field in _PROFILE_FIELDS:
            if profile.get(field) is not None:
                setattr(user, field, profile[field])
        if plan is not None and plan != user.plan:
            self._switch_plan(user, plan, now)
            logger.info("User %s moved to plan %s", user.id, user.plan)
        elif user.plan != "starter":
            user.trial_end = None
        if trial_end is not None:
            user.trial_end = trial_end
        await session.flush()
        return user

    async def update_plan(
        self, session: AsyncSession, user_id: str, plan: str,
    ) -> UserModel:
        """Switch a user's plan.

        Paid plans end the trial; moving back to starter starts a new one.
        """
        if not is_known_plan(plan):
            raise InvalidPlanError(f"Unknown plan: {plan}")

        user = await self.require_user(session, user_id)
        self._switch_plan(user, plan.lower(), self.now().astimezone(timezone.utc))
        await session.flush()
        logger.info("User %s moved to plan %s", user.id, user.plan)
        return user
