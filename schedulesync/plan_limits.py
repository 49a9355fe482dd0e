"""
Plan limits for the AI scheduling assistant.
"""

from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from .models import User

# Monthly AI queries per plan (None means unlimited)
PLAN_LIMITS = {"free": 10, "pro": None, "team": None}


def get_ai_query_limit(plan: Optional[str]) -> Optional[int]:
    """Monthly AI query limit for a plan. Unknown or missing plans get the free limit."""
    if not plan:
        return PLAN_LIMITS["free"]
    return PLAN_LIMITS.get(plan.lower(), PLAN_LIMITS["free"])


def check_and_reset_monthly_counter(user: User, db: Session, now: Optional[datetime] = None) -> None:
    """Reset the AI query counter once the monthly reset date has passed"""
    now = now or datetime.utcnow()

    if user.ai_queries_reset_at is None:
        user.ai_queries_reset_at = now + relativedelta(months=1)
        db.commit()
        return

    if now >= user.ai_queries_reset_at:
        user.ai_queries_used = 0
        while user.ai_queries_reset_at <= now:
            user.ai_queries_reset_at = user.ai_queries_reset_at + relativedelta(months=1)
        db.commit()


def can_use_ai(user: User, db: Session) -> tuple:
    """
    Check if the user has AI queries left this month.
    Returns (allowed, error_message).
    """
    check_and_reset_monthly_counter(user, db)

    limit = get_ai_query_limit(user.plan)
    if limit is None:
        return (True, None)

    used = user.ai_queries_used or 0
    if used < limit:
        return (True, None)

    return (
        False,
        f"You've used {used}/{limit} AI queries this month. Upgrade to Pro for unlimited queries.",
    )


def increment_ai_query_count(user: User, db: Session) -> None:
    """Count one assistant query against the user's monthly allowance"""
    user.ai_queries_used = (user.ai_queries_used or 0) + 1
    db.commit()


def get_ai_usage(user: User, db: Session) -> dict:
    check_and_reset_monthly_counter(user, db)
    limit = get_ai_query_limit(user.plan)
    used = user.ai_queries_used or 0
    return {
        "plan": user.plan or "free",
        "limit": limit,  # None for unlimited
        "used": used,
        "remaining": None if limit is None else max(0, limit - used),
        "reset_date": user.ai_queries_reset_at.isoformat() if user.ai_queries_reset_at else None,
    }
