"""AI assistant router - chat scheduling endpoints"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import AI_RATE_LIMIT_PER_MINUTE
from ...database import get_db
from ...models import User
from ...plan_limits import can_use_ai, increment_ai_query_count
from ...rate_limiter import create_rate_limiter
from ...shared.validators import email_domain
from ..scheduling.service import BookingBlockedError, BookingService
from .schemas import AssistantResponse, ConfirmBookingRequest, ScheduleRequest, SuggestRequest
from .service import AssistantService, serialize_booking

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["AI Assistant"])

ai_rate_limit = create_rate_limiter(
    limit=AI_RATE_LIMIT_PER_MINUTE, window_seconds=60, key_prefix="ai_schedule"
)

DISPOSABLE_DOMAINS = {"tempmail.com", "10minutemail.com", "guerrillamail.com", "throwaway.email"}


def get_now() -> datetime:
    """Clock dependency, overridden in tests"""
    return datetime.now()


@router.post("/schedule", response_model=AssistantResponse)
async def schedule(
    data: ScheduleRequest,
    _: None = Depends(ai_rate_limit),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Answer one chat message: detect intent, run the handler, count the query"""
    allowed, error_message = can_use_ai(current_user, db)
    if not allowed:
        logger.warning(f"🚫 AI query limit reached for user {current_user.id}")
        raise HTTPException(
            status_code=403,
            detail={"error": "AI query limit reached", "message": error_message, "upgrade_required": True},
        )

    try:
        response = AssistantService(db, current_user, now).handle(data.message)
        increment_ai_query_count(current_user, db)
        return response
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ AI scheduling error for user {current_user.id}: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to process request"})


@router.post("/schedule/confirm")
async def confirm_booking(
    data: ConfirmBookingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create the booking proposed in chat after running the user's scheduling rules"""
    email = str(data.attendee_email).lower()
    if email_domain(email) in DISPOSABLE_DOMAINS:
        raise HTTPException(
            status_code=400,
            detail="Temporary email addresses are not allowed. Please use a permanent email address.",
        )

    candidate = data.model_dump()
    candidate.update(
        user_id=current_user.id,
        attendee_email=email,
        title=data.title or "Meeting",
        attendee_name=data.attendee_name or email.split("@", 1)[0],
    )

    try:
        booking, result = BookingService(db).create_with_rules(current_user, candidate)
    except BookingBlockedError as e:
        return JSONResponse(
            status_code=403,
            content={"success": False, "error": "Booking blocked", "reason": e.reason},
        )
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ AI booking confirmation error for user {current_user.id}: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to process request"})

    response = {"success": True, "booking": serialize_booking(booking)}
    if result.applied_rules:
        response["applied_rules"] = [r.model_dump() for r in result.applied_rules]
    if result.auto_approved:
        response["auto_approved"] = True
    return response


@router.post("/suggest")
async def suggest(data: SuggestRequest, current_user: User = Depends(get_current_user)):
    """Proactive suggestions are not generated yet"""
    return {"suggestions": []}
