"""Scheduling service - Business logic for rules and rule-checked bookings"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Booking, SchedulingRule, User
from ...shared.validators import parse_datetime
from .repository import BookingRepository, SchedulingRuleRepository
from .rule_parser import parse_rule_text
from .rules_engine import apply_scheduling_rules, load_active_rules
from .schemas import (
    NUMERIC_ACTION_BOUNDS,
    NUMERIC_TRIGGER_BOUNDS,
    RuleResult,
    SchedulingRuleCreate,
    SchedulingRuleUpdate,
    numeric_value_error,
)

logger = logging.getLogger(__name__)

BOOKING_COLUMNS = (
    "title",
    "attendee_name",
    "attendee_email",
    "notes",
    "duration",
    "status",
    "team_id",
    "location",
    "priority",
    "buffer_minutes",
    "requires_approval",
    "notification_type",
    "template_id",
)


class BookingBlockedError(Exception):
    """Raised when a scheduling rule blocks a booking"""

    def __init__(self, reason: str, result: RuleResult):
        super().__init__(reason)
        self.reason = reason
        self.result = result


class SchedulingRuleService:
    """Service layer for scheduling rule CRUD"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRuleRepository()

    def get_rules(self, user: User) -> list[SchedulingRule]:
        return self.repo.get_rules(self.db, user.id)

    def get_rule(self, rule_id: int, user: User) -> SchedulingRule:
        rule = self.repo.get_rule_by_id(self.db, rule_id, user.id)
        if not rule:
            raise HTTPException(status_code=404, detail="Rule not found")
        return rule

    def create_rule(self, data: SchedulingRuleCreate, user: User) -> SchedulingRule:
        logger.info(f"📥 Creating scheduling rule '{data.name}' for user_id: {user.id}")
        return self.repo.create_rule(self.db, user.id, **data.model_dump())

    def create_rule_from_text(self, rule_text: str, user: User) -> SchedulingRule:
        parsed = parse_rule_text(rule_text)
        if not parsed:
            raise HTTPException(
                status_code=400,
                detail="Couldn't understand that rule. Try e.g. 'block bookings from spam.com'",
            )
        logger.info(f"New scheduling rule created from text: \"{rule_text}\"")
        return self.repo.create_rule(self.db, user.id, **parsed.model_dump())

    def update_rule(self, rule_id: int, data: SchedulingRuleUpdate, user: User) -> SchedulingRule:
        rule = self.get_rule(rule_id, user)
        updates = data.model_dump(exclude_unset=True)
        # Values are checked against the rule as it will look after the update
        merged = {
            key: updates.get(key, getattr(rule, key))
            for key in ("trigger_type", "trigger_value", "action_type", "action_value")
        }
        error = numeric_value_error(
            merged["trigger_type"], merged["trigger_value"], NUMERIC_TRIGGER_BOUNDS
        ) or numeric_value_error(merged["action_type"], merged["action_value"], NUMERIC_ACTION_BOUNDS)
        if error:
            raise HTTPException(status_code=422, detail=error)
        return self.repo.update_rule(self.db, rule, **updates)

    def toggle_rule(self, rule_id: int, user: User) -> SchedulingRule:
        rule = self.get_rule(rule_id, user)
        rule.is_active = not rule.is_active
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def delete_rule(self, rule_id: int, user: User) -> dict:
        rule = self.get_rule(rule_id, user)
        self.repo.delete_rule(self.db, rule)
        return {"success": True}


class BookingService:
    """Creates bookings after running the owner's scheduling rules"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    def create_with_rules(self, user: User, candidate: dict) -> tuple[Booking, RuleResult]:
        """
        Run the rule engine over a booking candidate and persist the result.

        Raises BookingBlockedError when a rule blocks the booking.
        """
        rules = load_active_rules(self.db, user.id)
        result = apply_scheduling_rules(rules, candidate)

        if result.blocked:
            logger.warning(f"🚫 Booking for user {user.id} blocked: {result.block_reason}")
            raise BookingBlockedError(result.block_reason, result)

        data = result.modified_data
        start = parse_datetime(data.get("start_time"))
        if start is None:
            raise HTTPException(status_code=400, detail="Invalid start_time")

        end = parse_datetime(data.get("end_time"))
        duration: Optional[int] = data.get("duration")
        # An explicit or rule-set duration wins over the requested end time
        if duration:
            end = start + timedelta(minutes=int(duration))
        if end is None or end <= start:
            end = start + timedelta(minutes=30)
        duration = int((end - start).total_seconds() // 60)

        fields = {key: data.get(key) for key in BOOKING_COLUMNS if data.get(key) is not None}
        fields.update(start_time=start, end_time=end, duration=duration)
        fields.setdefault("status", "confirmed")

        booking = self.repo.create_booking(self.db, user.id, **fields)
        logger.info(f"✅ Booking {booking.id} created for user {user.id} (status={booking.status})")
        return booking, result
