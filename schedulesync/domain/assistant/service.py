"""Assistant service - intent handlers and the confirmation state machine"""

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...config import FRONTEND_URL, QUICK_LINK_TTL_HOURS
from ...models import Booking, EmailTemplate, EventType, MagicLink, Team, TeamMember, User
from ...plan_limits import get_ai_usage
from ...shared.validators import parse_datetime
from ..scheduling.availability_service import get_user_available_slots
from ..scheduling.repository import BookingRepository, SchedulingRuleRepository
from ..scheduling.rule_parser import parse_rule_text
from ..scheduling.rules_engine import should_block_booking
from ..scheduling.schemas import ACTION_TYPES, TRIGGER_TYPES
from .intents import detect_intent
from .parsers import (
    entity_extractor,
    format_date,
    format_time,
    parse_booking_details,
    parse_meeting_reference,
)
from .pending_actions import CONFIRMABLE_ACTIONS, PendingActionRepository
from .schemas import MeetingReference

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 5

HELP_MESSAGE = (
    "I can help you:\n"
    "• Book meetings: \"Book a demo with sarah@acme.com tomorrow at 2pm\"\n"
    "• Check availability: \"When am I free on Friday?\"\n"
    "• See upcoming meetings: \"What's coming up?\"\n"
    "• Cancel or reschedule: \"Move my call with John to Monday at 3pm\"\n"
    "• Manage rules: \"Block bookings from spam.com\"\n"
    "• Share links: \"What's my booking link?\""
)

RULE_EXAMPLES = (
    "Try something like:\n"
    "• \"Block bookings from spam.com\"\n"
    "• \"No meetings on Fridays\"\n"
    "• \"Auto-approve meetings from acme.com\"\n"
    "• \"Add 15 minute buffer between meetings\"\n"
    "• \"rule: domain=acme.com -> set_duration=45\""
)


def _reply(type_: str, message: str, data: Optional[dict] = None) -> dict:
    response = {"type": type_, "message": message}
    if data is not None:
        response["data"] = data
    return response


def _when(moment: datetime) -> str:
    return f"{format_date(moment.date())} at {format_time(moment.hour, moment.minute)}"


def serialize_booking(booking: Booking) -> dict:
    return {
        "id": booking.id,
        "title": booking.title,
        "attendee_name": booking.attendee_name,
        "attendee_email": booking.attendee_email,
        "start_time": booking.start_time.isoformat() if booking.start_time else None,
        "end_time": booking.end_time.isoformat() if booking.end_time else None,
        "duration": booking.duration,
        "status": booking.status,
    }


def _describe(booking: Booking) -> str:
    who = booking.attendee_name or booking.attendee_email or "your guest"
    return f"**{booking.title or 'Meeting'}** with {who} on {_when(booking.start_time)}"


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class AssistantService:
    """
    Answers one chat message for one user.

    `handle` routes the detected intent to a handler; every handler returns a
    `{type, message, data?}` dict. Multi-turn flows keep their state in
    ai_pending_actions so any worker can pick up the next message.
    """

    def __init__(self, db: Session, user: User, now: Optional[datetime] = None):
        self.db = db
        self.user = user
        self.now = now or datetime.now()
        self.bookings = BookingRepository()
        self.rules = SchedulingRuleRepository()
        self.pending = PendingActionRepository()

    def handle(self, message: str) -> dict:
        intent = detect_intent(message)
        logger.info(f"🤖 AI intent for user {self.user.id}: {intent}")
        handler = getattr(self, f"handle_{intent}", self.handle_general)
        return handler(message)

    # ------------------------------------------------------------------
    # Cancel / reschedule
    # ------------------------------------------------------------------

    def _find_referenced(self, reference: MeetingReference) -> list[Booking]:
        start = end = None
        if reference.date:
            start, end = _day_bounds(reference.date.date)

        matches = self.bookings.find_matching(
            self.db,
            self.user.id,
            self.now,
            email=reference.email,
            name=None if reference.email else reference.name,
            start=start,
            end=end,
            limit=MAX_CANDIDATES * 4,
        )
        if reference.time:
            matches = [
                b
                for b in matches
                if (b.start_time.hour, b.start_time.minute)
                == (reference.time.hours, reference.time.minutes)
            ]
        return matches[:MAX_CANDIDATES]

    def _new_start(self, booking: Booking, reference: MeetingReference) -> Optional[datetime]:
        if not reference.new_date and not reference.new_time:
            return None
        new_day = reference.new_date.date if reference.new_date else booking.start_time.date()
        if reference.new_time:
            hours, minutes = reference.new_time.hours, reference.new_time.minutes
        else:
            hours, minutes = booking.start_time.hour, booking.start_time.minute
        return datetime.combine(new_day, time(hours, minutes))

    def _ask_confirm_cancel(self, booking: Booking) -> dict:
        self.pending.upsert(self.db, self.user.id, "cancel", {"booking_id": booking.id}, self.now)
        return _reply(
            "confirm_cancel",
            f"Cancel {_describe(booking)}? Reply **yes** to confirm or **no** to keep it.",
            {"booking": serialize_booking(booking)},
        )

    def _ask_confirm_reschedule(self, booking: Booking, new_start: datetime) -> dict:
        length = booking.end_time - booking.start_time
        new_end = new_start + length
        self.pending.upsert(
            self.db,
            self.user.id,
            "reschedule",
            {
                "booking_id": booking.id,
                "new_start_time": new_start.isoformat(),
                "new_end_time": new_end.isoformat(),
            },
            self.now,
        )
        return _reply(
            "confirm_reschedule",
            f"Move {_describe(booking)} to **{_when(new_start)}**? Reply **yes** to confirm or **no** to keep it.",
            {
                "booking": serialize_booking(booking),
                "new_start_time": new_start.isoformat(),
                "new_end_time": new_end.isoformat(),
            },
        )

    def _ask_which(
        self, intent: str, candidates: list[Booking], reference: Optional[MeetingReference] = None
    ) -> dict:
        self.pending.upsert(
            self.db,
            self.user.id,
            "select_meeting",
            {
                "intent": intent,
                "booking_ids": [b.id for b in candidates],
                "reference": reference.model_dump(mode="json") if reference else None,
            },
            self.now,
        )
        lines = [f"{i}. {_describe(b)}" for i, b in enumerate(candidates, start=1)]
        verb = "cancel" if intent == "cancel" else "reschedule"
        return _reply(
            "disambiguate",
            f"I found {len(candidates)} meetings. Which one should I {verb}? Reply with a number.\n\n"
            + "\n".join(lines),
            {"bookings": [serialize_booking(b) for b in candidates]},
        )

    def handle_cancel(self, message: str) -> dict:
        reference = parse_meeting_reference(message, self.now)
        candidates = self._find_referenced(reference)

        if not candidates:
            return _reply("info", "I couldn't find an upcoming meeting matching that.")
        if len(candidates) > 1:
            return self._ask_which("cancel", candidates)
        return self._ask_confirm_cancel(candidates[0])

    def handle_reschedule(self, message: str) -> dict:
        reference = parse_meeting_reference(message, self.now)
        candidates = self._find_referenced(reference)

        if not candidates:
            return _reply("info", "I couldn't find an upcoming meeting matching that.")

        if len(candidates) > 1:
            return self._ask_which("reschedule", candidates, reference)
        return self._reschedule_to(candidates[0], reference)

    def _reschedule_to(self, booking: Booking, reference: MeetingReference) -> dict:
        new_start = self._new_start(booking, reference)
        if new_start is None:
            return _reply(
                "clarification",
                f"When should I move {_describe(booking)} to? Try \"to Monday at 3pm\".",
                {"booking": serialize_booking(booking)},
            )
        if new_start <= self.now:
            return _reply("error", "That time is in the past. Please choose a future time.")
        return self._ask_confirm_reschedule(booking, new_start)

    def _select_meeting(self, action, message: str) -> dict:
        booking_ids = action.action_data.get("booking_ids") or []
        choice = self._choice_number(message)
        if choice is None or not 1 <= choice <= len(booking_ids):
            return _reply(
                "clarification", f"Please reply with a number between 1 and {len(booking_ids)}."
            )

        booking = self.bookings.get_booking(self.db, booking_ids[choice - 1], self.user.id)
        self.pending.delete(self.db, action)
        if not booking or booking.status == "cancelled":
            return _reply("info", "That meeting is no longer available.")

        if action.action_data.get("intent") == "cancel":
            return self._ask_confirm_cancel(booking)

        reference = MeetingReference.model_validate(action.action_data.get("reference") or {})
        return self._reschedule_to(booking, reference)

    def handle_confirm_yes(self, message: str) -> dict:
        action = self.pending.get_latest_live(self.db, self.user.id, CONFIRMABLE_ACTIONS, self.now)
        if not action:
            return _reply("info", "I'm not sure what you're confirming. What would you like to do?")

        data = action.action_data or {}
        booking = self.bookings.get_booking(self.db, data.get("booking_id"), self.user.id)
        self.pending.delete(self.db, action)
        if not booking or booking.status == "cancelled":
            return _reply("info", "That meeting no longer exists or was already cancelled.")

        if action.action_type == "cancel":
            booking.status = "cancelled"
            self.db.commit()
            logger.info(f"✅ Booking {booking.id} cancelled via assistant")
            return _reply(
                "success",
                f"Done. {_describe(booking)} has been cancelled.",
                {"booking": serialize_booking(booking)},
            )

        new_start = parse_datetime(data.get("new_start_time"))
        length = booking.end_time - booking.start_time
        booking.start_time = new_start
        booking.end_time = new_start + length
        self.db.commit()
        logger.info(f"✅ Booking {booking.id} rescheduled to {new_start.isoformat()} via assistant")
        return _reply(
            "success",
            f"Done. Rescheduled to {_describe(booking)}.",
            {"booking": serialize_booking(booking)},
        )

    def handle_confirm_no(self, message: str) -> dict:
        removed = self.pending.delete_for_user(
            self.db, self.user.id, CONFIRMABLE_ACTIONS + ("select_meeting", "template_choice"), self.now
        )
        if not removed:
            return _reply("info", "I'm not sure what you're confirming. What would you like to do?")
        return _reply("info", "Okay, I won't make any changes.")

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    @staticmethod
    def _choice_number(message: str) -> Optional[int]:
        match = re.search(r"\d+", message)
        return int(match.group()) if match else None

    def _booking_preview(self, details) -> dict:
        end = details.start_time + timedelta(minutes=details.duration)
        return {
            "title": details.title,
            "start_time": details.start_time.isoformat(),
            "end_time": end.isoformat(),
            "attendee_email": details.email,
            "attendee_name": details.name,
            "duration": details.duration,
            "notes": None,
            "template_id": None,
        }

    def _confirm_booking(self, preview: dict) -> dict:
        start = parse_datetime(preview["start_time"])
        message = (
            f"I'll schedule **\"{preview['title']}\"** on **{_when(start)}** "
            f"for **{preview['duration']} minutes**.\n\nShall I confirm this booking?"
        )
        end = parse_datetime(preview["end_time"])
        nearby = self.bookings.find_matching(
            self.db, self.user.id, self.now, start=start - timedelta(days=1), end=end
        )
        conflicts = [b for b in nearby if b.start_time < end and b.end_time > start]
        if conflicts:
            message += f"\n\n⚠️ This overlaps with {_describe(conflicts[0])}."
        return _reply("confirm_booking", message, {"booking": preview})

    def handle_book_meeting(self, message: str) -> dict:
        details = parse_booking_details(message, self.now)

        missing = details.missing_fields()
        if missing:
            questions = {
                "email": "who the meeting is with (an email address)",
                "date": "which day",
                "time": "what time",
            }
            asks = " and ".join(questions[field] for field in missing)
            return _reply(
                "clarification",
                f"Happy to book that. Could you tell me {asks}?",
                {"parsed": details.model_dump(mode="json")},
            )

        if details.start_time <= self.now:
            return _reply("error", "That time is in the past. Please choose a future time.")

        block = should_block_booking(self.db, self.user.id, details.email)
        if block.blocked:
            return _reply("warning", f"I can't book that: {block.reason}")

        preview = self._booking_preview(details)

        templates = (
            self.db.query(EmailTemplate)
            .filter(EmailTemplate.user_id == self.user.id, EmailTemplate.is_active.is_(True))
            .order_by(EmailTemplate.id.asc())
            .all()
        )
        if not templates:
            return self._confirm_booking(preview)

        self.pending.upsert(
            self.db,
            self.user.id,
            "template_choice",
            {"booking": preview, "template_ids": [t.id for t in templates]},
            self.now,
        )
        lines = [f"{i}. {t.name}" for i, t in enumerate(templates, start=1)]
        return _reply(
            "template_choice",
            "Which email template should I use? Reply with a number (0 for none).\n\n"
            + "\n".join(lines),
            {
                "booking": preview,
                "templates": [{"id": t.id, "name": t.name} for t in templates],
            },
        )

    def handle_template_choice(self, message: str) -> dict:
        selection = self.pending.get_live(self.db, self.user.id, "select_meeting", self.now)
        if selection:
            return self._select_meeting(selection, message)

        action = self.pending.get_live(self.db, self.user.id, "template_choice", self.now)
        if not action:
            return _reply("info", "I'm not sure what you're choosing. What would you like to do?")

        template_ids = action.action_data.get("template_ids") or []
        choice = self._choice_number(message)
        if "no template" in message.lower() or "without" in message.lower():
            choice = 0
        if choice is None or not 0 <= choice <= len(template_ids):
            return _reply(
                "clarification",
                f"Please reply with a number between 0 and {len(template_ids)}.",
            )

        preview = dict(action.action_data.get("booking") or {})
        preview["template_id"] = template_ids[choice - 1] if choice else None
        self.pending.delete(self.db, action)
        return self._confirm_booking(preview)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def handle_check_availability(self, message: str) -> dict:
        details = parse_booking_details(message, self.now)
        day = details.date.date if details.date else self.now.date()
        slots = get_user_available_slots(self.db, self.user, day, self.now)

        if not slots:
            return _reply(
                "availability",
                f"You have no open slots on {format_date(day)}.",
                {"date": day.isoformat(), "slots": []},
            )

        preview = ", ".join(
            format_time(parse_datetime(s["start"]).hour, parse_datetime(s["start"]).minute)
            for s in slots[:6]
        )
        more = f" and {len(slots) - 6} more" if len(slots) > 6 else ""
        return _reply(
            "availability",
            f"On {format_date(day)} you're free at {preview}{more}.",
            {"date": day.isoformat(), "slots": slots},
        )

    def handle_find_meetings(self, message: str) -> dict:
        email = entity_extractor.extract_email(message)
        name = None if email else entity_extractor.extract_name(message)
        if not email and not name:
            return _reply("clarification", "Who should I look for? Give me a name or an email address.")

        matches = self.bookings.find_matching(
            self.db, self.user.id, self.now, email=email, name=name, upcoming_only=False
        )
        who = email or name
        if not matches:
            return _reply("meetings", f"I couldn't find any meetings with {who}.", {"bookings": []})

        lines = [f"• {_describe(b)}" + (" (cancelled)" if b.status == "cancelled" else "") for b in matches]
        return _reply(
            "meetings",
            f"Meetings with {who}:\n" + "\n".join(lines),
            {"bookings": [serialize_booking(b) for b in matches]},
        )

    def handle_upcoming(self, message: str) -> dict:
        details = parse_booking_details(message, self.now)
        if details.date:
            start, end = _day_bounds(details.date.date)
            matches = self.bookings.find_matching(self.db, self.user.id, self.now, start=start, end=end)
            label = f"on {details.date.date_str}"
        else:
            matches = self.bookings.get_upcoming(self.db, self.user.id, self.now)
            label = "coming up"

        if not matches:
            return _reply("meetings", f"You have no meetings {label}.", {"bookings": []})

        lines = [f"• {_describe(b)}" for b in matches]
        return _reply(
            "meetings",
            f"Your meetings {label}:\n" + "\n".join(lines),
            {"bookings": [serialize_booking(b) for b in matches]},
        )

    def handle_analytics(self, message: str) -> dict:
        month_start = datetime.combine(self.now.date().replace(day=1), time.min)
        week_start = datetime.combine(self.now.date() - timedelta(days=self.now.weekday()), time.min)
        stats = {
            "this_month": self.bookings.count(self.db, self.user.id, since=month_start),
            "this_week": self.bookings.count(self.db, self.user.id, since=week_start),
            "upcoming": self.bookings.count(self.db, self.user.id, after=self.now, status="confirmed"),
            "cancelled_this_month": self.bookings.count(
                self.db, self.user.id, since=month_start, status="cancelled"
            ),
        }
        return _reply(
            "analytics",
            f"📊 This month: **{stats['this_month']}** meetings "
            f"({stats['cancelled_this_month']} cancelled). "
            f"This week: **{stats['this_week']}**. Upcoming: **{stats['upcoming']}**.",
            stats,
        )

    def handle_plan_info(self, message: str) -> dict:
        usage = get_ai_usage(self.user, self.db)
        if usage["limit"] is None:
            text = f"You're on the **{usage['plan']}** plan with unlimited AI queries."
        else:
            text = (
                f"You're on the **{usage['plan']}** plan: {usage['used']}/{usage['limit']} AI queries "
                f"used this month ({usage['remaining']} left)."
            )
        return _reply("plan", text, usage)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def handle_show_rules(self, message: str) -> dict:
        rules = self.rules.get_rules(self.db, self.user.id)
        if not rules:
            return _reply("rules", "You don't have any scheduling rules yet.\n\n" + RULE_EXAMPLES, {"rules": []})

        lines = [
            f"{i}. {r.name}" + ("" if r.is_active else " (paused)")
            for i, r in enumerate(rules, start=1)
        ]
        return _reply(
            "rules",
            "Your scheduling rules:\n" + "\n".join(lines),
            {
                "rules": [
                    {
                        "id": r.id,
                        "name": r.name,
                        "trigger_type": r.trigger_type,
                        "trigger_value": r.trigger_value,
                        "action_type": r.action_type,
                        "action_value": r.action_value,
                        "is_active": r.is_active,
                    }
                    for r in rules
                ]
            },
        )

    def handle_create_rule(self, message: str) -> dict:
        parsed = parse_rule_text(message)
        if not parsed:
            return _reply("clarification", "I couldn't turn that into a rule.\n\n" + RULE_EXAMPLES)

        rule = self.rules.create_rule(self.db, self.user.id, **parsed.model_dump())
        logger.info(f"✅ Rule {rule.id} created from chat for user {self.user.id}")
        return _reply(
            "rule_created",
            f"✅ Rule created: **{rule.name}**",
            {"rule": {"id": rule.id, **parsed.model_dump()}},
        )

    def handle_explain_rules(self, message: str) -> dict:
        return _reply(
            "info",
            "Scheduling rules run on every new booking, highest priority first. Each rule has a "
            f"trigger ({', '.join(TRIGGER_TYPES)}) and an action ({', '.join(ACTION_TYPES)}). "
            "A matching block rule stops the booking and no later rules run.\n\n" + RULE_EXAMPLES,
        )

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def handle_get_link(self, message: str) -> dict:
        if not self.user.username:
            return _reply("info", "You haven't picked a booking page username yet. Set one in your settings.")

        base = f"{FRONTEND_URL}/{self.user.username}"
        event_types = (
            self.db.query(EventType)
            .filter(EventType.user_id == self.user.id, EventType.is_active.is_(True))
            .order_by(EventType.id.asc())
            .all()
        )
        links = [
            {"title": e.title, "duration": e.duration, "url": f"{base}/{e.slug}"} for e in event_types
        ]
        text = f"Your booking link: {base}"
        if links:
            text += "\n\n" + "\n".join(f"• {link['title']} ({link['duration']} min): {link['url']}" for link in links)
        return _reply("link", text, {"url": base, "event_types": links})

    def handle_create_quick_link(self, message: str) -> dict:
        duration = entity_extractor.extract_duration(message) or 30
        title = entity_extractor.extract_meeting_type(message) or "Quick Meeting"
        link = MagicLink(
            user_id=self.user.id,
            duration=duration,
            title=title,
            expires_at=self.now + timedelta(hours=QUICK_LINK_TTL_HOURS),
        )
        self.db.add(link)
        self.db.commit()
        self.db.refresh(link)

        url = f"{FRONTEND_URL}/quick/{link.token}"
        return _reply(
            "quick_link",
            f"🔗 Here's a single-use {duration}-minute link (valid for {QUICK_LINK_TTL_HOURS} hours): {url}",
            {"url": url, "token": link.token, "duration": duration, "expires_at": link.expires_at.isoformat()},
        )

    def handle_team_links(self, message: str) -> dict:
        teams = (
            self.db.query(Team)
            .outerjoin(TeamMember, TeamMember.team_id == Team.id)
            .filter(or_(Team.owner_id == self.user.id, TeamMember.user_id == self.user.id))
            .filter(Team.is_active.is_(True))
            .distinct()
            .order_by(Team.id.asc())
            .all()
        )
        if not teams:
            return _reply("team_links", "You're not part of any team yet.", {"teams": []})

        items = [
            {"id": t.id, "name": t.name, "url": f"{FRONTEND_URL}/team/{t.slug}" if t.slug else None}
            for t in teams
        ]
        lines = [f"• {t['name']}: {t['url'] or 'no public link yet'}" for t in items]
        return _reply("team_links", "Your team booking links:\n" + "\n".join(lines), {"teams": items})

    def handle_general(self, message: str) -> dict:
        return _reply("clarification", HELP_MESSAGE)
