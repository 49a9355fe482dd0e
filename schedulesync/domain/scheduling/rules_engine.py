"""
Scheduling rules engine.

Runs a user's condition -> action rules against a booking candidate before it
is persisted. Rules are scanned in (priority DESC, created_at ASC) order; every
matching rule's action is applied to a running copy of the booking, and the
first matching block stops the scan.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import SchedulingRule
from ...shared.validators import email_domain, parse_datetime, parse_leading_int
from .schemas import AppliedRule, BlockCheck, RuleResult

logger = logging.getLogger(__name__)

DAY_NAMES = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]
DEFAULT_DURATION = 30

NUMERIC_TRIGGERS = ("time_before", "time_after", "duration_greater", "duration_less")
# Smallest usable value per numeric action
NUMERIC_ACTIONS = {"set_duration": 1, "set_buffer": 0}


def _is_truthy(value: Any) -> bool:
    return value is True or (isinstance(value, str) and value.strip().lower() == "true")


def _sort_key(rule: SchedulingRule):
    return (-(rule.priority or 0), rule.created_at or datetime.min)


def order_rules(rules: Iterable[SchedulingRule]) -> list[SchedulingRule]:
    """Active rules in evaluation order"""
    return sorted((r for r in rules if r.is_active is not False), key=_sort_key)


def load_active_rules(db: Session, user_id: int) -> list[SchedulingRule]:
    """Fetch a user's active rules ordered by priority desc, then creation asc"""
    return (
        db.query(SchedulingRule)
        .filter(SchedulingRule.user_id == user_id, SchedulingRule.is_active.is_(True))
        .order_by(SchedulingRule.priority.desc(), SchedulingRule.created_at.asc())
        .all()
    )


class BookingFacts:
    """Values derived once from a booking candidate for trigger matching"""

    def __init__(self, booking: dict):
        self.email = (booking.get("attendee_email") or "").lower()
        self.domain = email_domain(self.email)
        title = (booking.get("title") or "").lower()
        notes = (booking.get("notes") or "").lower()
        self.text = f"{title} {notes} {self.email}".lower()
        self.duration = booking.get("duration") or DEFAULT_DURATION

        start = parse_datetime(booking.get("start_time"))
        self.hour: Optional[int] = start.hour if start else None
        # 0 = Sunday ... 6 = Saturday
        self.weekday: Optional[int] = (start.weekday() + 1) % 7 if start else None


def _matches_day(trigger_value: str, weekday: int) -> bool:
    for day in (d.strip() for d in trigger_value.lower().split(",")):
        if not day:
            continue
        if day.isdigit():
            if int(day) == weekday:
                return True
        elif DAY_NAMES[weekday] == day:
            return True
    return False


def rule_matches(rule: SchedulingRule, facts: BookingFacts) -> bool:
    trigger_type = rule.trigger_type
    value = (rule.trigger_value or "").strip()

    if trigger_type == "domain":
        return facts.domain == value.lower()
    if trigger_type == "keyword":
        return value.lower() in facts.text
    if trigger_type == "email":
        return facts.email == value.lower()
    if trigger_type == "day_of_week":
        return facts.weekday is not None and _matches_day(value, facts.weekday)
    if trigger_type in NUMERIC_TRIGGERS:
        limit = parse_leading_int(value)
        if limit is None:
            logger.warning(f"⚠️ Rule {rule.id} has a non-numeric {trigger_type} value: {value!r}")
            return False
        if trigger_type == "time_before":
            return facts.hour is not None and facts.hour < limit
        if trigger_type == "time_after":
            return facts.hour is not None and facts.hour >= limit
        if trigger_type == "duration_greater":
            return facts.duration > limit
        return facts.duration < limit
    if trigger_type == "all":
        return True

    logger.warning(f"⚠️ Unknown trigger type: {trigger_type}")
    return False


def apply_rule_action(booking: dict, rule: SchedulingRule) -> dict:
    """
    Apply a single rule's action to a copy of the booking.

    Returns {"data", "applied", "blocked", "auto_approved", "reason"}; `applied`
    is False when the action value cannot be used.
    """
    result = {
        "data": dict(booking),
        "applied": True,
        "blocked": False,
        "auto_approved": False,
        "reason": None,
    }
    data = result["data"]
    action_type = rule.action_type
    value = rule.action_value

    amount = parse_leading_int(value)
    if action_type in NUMERIC_ACTIONS and (amount is None or amount < NUMERIC_ACTIONS[action_type]):
        logger.warning(f"⚠️ Rule {rule.id} has an unusable {action_type} value: {value!r}")
        result["applied"] = False
        return result

    if action_type == "set_duration":
        data["duration"] = amount
    elif action_type == "auto_approve":
        result["auto_approved"] = _is_truthy(value)
        if result["auto_approved"]:
            data["status"] = "confirmed"
    elif action_type == "block":
        if _is_truthy(value):
            result["blocked"] = True
            result["reason"] = rule.block_message or f"Booking blocked by rule: {rule.name}"
    elif action_type == "set_priority":
        data["priority"] = value
    elif action_type == "set_location":
        data["location"] = value
    elif action_type == "set_buffer":
        data["buffer_minutes"] = amount
    elif action_type == "add_note":
        data["notes"] = f"{data['notes']}\n[Auto] {value}" if data.get("notes") else f"[Auto] {value}"
    elif action_type == "set_title_prefix":
        data["title"] = f"{value} {data.get('title') or 'Meeting'}"
    elif action_type == "require_approval":
        data["status"] = "pending_approval"
        data["requires_approval"] = True
    elif action_type == "send_notification":
        data["send_extra_notification"] = True
        data["notification_type"] = value
    else:
        logger.warning(f"⚠️ Unknown action type: {action_type}")

    return result


def apply_scheduling_rules(rules: Iterable[SchedulingRule], booking: dict) -> RuleResult:
    """
    Evaluate rules against a booking candidate.

    Never raises: if anything goes wrong the booking is returned unmodified and
    unblocked so a broken rule cannot stop scheduling.
    """
    original = dict(booking)

    try:
        ordered = order_rules(rules)
        facts = BookingFacts(booking)
        modified = dict(booking)
        applied: list[AppliedRule] = []
        blocked = False
        block_reason = None
        auto_approved = False

        for rule in ordered:
            if not rule_matches(rule, facts):
                continue

            outcome = apply_rule_action(modified, rule)
            if not outcome["applied"]:
                continue
            applied.append(
                AppliedRule(
                    id=rule.id,
                    name=rule.name,
                    trigger=f"{rule.trigger_type}: {rule.trigger_value}",
                    action=f"{rule.action_type}: {rule.action_value}",
                )
            )

            if outcome["blocked"]:
                blocked = True
                block_reason = outcome["reason"]
                break

            if outcome["auto_approved"]:
                auto_approved = True

            modified = outcome["data"]

        if applied:
            logger.info(
                f"📋 Applied {len(applied)} scheduling rule(s) to booking: "
                f"{', '.join(r.name for r in applied)}"
            )

        return RuleResult(
            original_data=original,
            modified_data=modified,
            applied_rules=applied,
            blocked=blocked,
            block_reason=block_reason,
            auto_approved=auto_approved,
        )
    except Exception as e:
        logger.error(f"❌ Error applying scheduling rules: {e}")
        return RuleResult(original_data=original, modified_data=dict(original))


def should_block_booking(db: Session, user_id: int, attendee_email: str) -> BlockCheck:
    """Pre-flight check against block rules keyed by domain or exact email"""
    try:
        email = (attendee_email or "").lower()
        domain = email_domain(email)

        rule = (
            db.query(SchedulingRule)
            .filter(
                SchedulingRule.user_id == user_id,
                SchedulingRule.is_active.is_(True),
                SchedulingRule.action_type == "block",
                func.lower(SchedulingRule.action_value) == "true",
                or_(
                    (SchedulingRule.trigger_type == "domain")
                    & (func.lower(SchedulingRule.trigger_value) == domain),
                    (SchedulingRule.trigger_type == "email")
                    & (func.lower(SchedulingRule.trigger_value) == email),
                ),
            )
            .first()
        )

        if rule:
            return BlockCheck(
                blocked=True,
                reason=rule.block_message or f"Bookings from {domain or email} are not accepted",
            )
        return BlockCheck(blocked=False)
    except Exception as e:
        logger.error(f"❌ Error checking block rules: {e}")
        return BlockCheck(blocked=False)
