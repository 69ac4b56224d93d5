"""
Rate Gate

Two independent pre-flight checks evaluated before a check-in workflow may
start:

1. Submission limit: fixed window, CHECK_IN_SUBMISSIONS_PER_DAY per user per
   calendar day (UTC), counted in Redis.
2. Generation quota: meal + workout plans created in the trailing cycle,
   capped at PLAN_GENERATIONS_PER_CYCLE. The cycle length is re-read from
   system_config on every call.

Denials raise RateLimitExceededError with a retry hint in seconds.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from core.config import settings
from core.database import utcnow
from core.exceptions import RateLimitExceededError
from core.rate_limit import FixedWindowRateLimiter, RateLimitPolicy, rate_limiter
from models import MealPlan, WorkoutPlan
from services.system_config import get_check_in_frequency_days

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class SubmissionCheck:
    allowed: bool
    retry_after: Optional[float] = None


@dataclass(frozen=True)
class QuotaCheck:
    allowed: bool
    used: int
    limit: int
    cycle_days: int
    retry_after: Optional[float] = None


class RateGate:
    def __init__(
        self,
        limiter: Optional[FixedWindowRateLimiter] = None,
        submissions_per_day: Optional[int] = None,
        generations_per_cycle: Optional[int] = None,
    ):
        self.limiter = limiter or rate_limiter
        self.submission_policy = RateLimitPolicy(
            name="submit_check_in",
            rate=submissions_per_day or settings.CHECK_IN_SUBMISSIONS_PER_DAY,
            period=DAY_SECONDS,
        )
        self.generations_per_cycle = generations_per_cycle or settings.PLAN_GENERATIONS_PER_CYCLE

    def check_submission(self, user_id: str, now: Optional[float] = None) -> SubmissionCheck:
        """Consume one submission slot; denied attempts consume nothing."""
        result = self.limiter.limit(user_id, self.submission_policy, now=now)
        if result.ok:
            return SubmissionCheck(allowed=True)
        return SubmissionCheck(allowed=False, retry_after=result.retry_after)

    def check_generation_quota(self, db: Session, user_id: str, now: Optional[datetime] = None) -> QuotaCheck:
        now = now or utcnow()
        cycle_days = get_check_in_frequency_days(db)
        since = now - timedelta(days=cycle_days)

        created = []
        for model in (MealPlan, WorkoutPlan):
            created.extend(
                row[0]
                for row in db.query(model.created_at)
                .filter(model.user_id == user_id, model.created_at >= since)
                .all()
            )

        used = len(created)
        if used < self.generations_per_cycle:
            return QuotaCheck(allowed=True, used=used, limit=self.generations_per_cycle, cycle_days=cycle_days)

        # Slots free up as the oldest counted plans age out of the window.
        created.sort()
        freeing = created[used - self.generations_per_cycle]
        retry_after = max((freeing + timedelta(days=cycle_days) - now).total_seconds(), 1.0)
        return QuotaCheck(
            allowed=False,
            used=used,
            limit=self.generations_per_cycle,
            cycle_days=cycle_days,
            retry_after=retry_after,
        )

    def enforce_quota(self, db: Session, user_id: str, now: Optional[datetime] = None) -> QuotaCheck:
        quota = self.check_generation_quota(db, user_id, now=now)
        if not quota.allowed:
            logger.info(
                f"Generation quota denied for user {user_id}",
                extra={"extra_fields": {"used": quota.used, "cycle_days": quota.cycle_days}},
            )
            raise RateLimitExceededError(
                "Plan generation limit reached for this cycle",
                retry_after=quota.retry_after,
                error_code="PLAN_QUOTA_EXCEEDED",
            )
        return quota

    def enforce(self, db: Session, user_id: str, now: Optional[float] = None) -> None:
        """Submission limit first, then generation quota. Raises on denial."""
        now = time.time() if now is None else now
        submission = self.check_submission(user_id, now=now)
        if not submission.allowed:
            seconds = int(submission.retry_after or 0) or 1
            raise RateLimitExceededError(
                f"Too many check-ins, try again in {seconds}s",
                retry_after=submission.retry_after,
                error_code="CHECK_IN_RATE_LIMITED",
            )
        self.enforce_quota(db, user_id, now=datetime.fromtimestamp(now, timezone.utc).replace(tzinfo=None))


rate_gate = RateGate()
