"""Tests for the scheduling rules engine."""

from datetime import datetime, timedelta

import pytest

from schedulesync.domain.scheduling.rules_engine import (
    apply_scheduling_rules,
    load_active_rules,
    order_rules,
    should_block_booking,
)
from schedulesync.models import SchedulingRule

CREATED = datetime(2026, 1, 1, 12, 0)


def rule(trigger_type, trigger_value, action_type, action_value, **fields) -> SchedulingRule:
    """Unsaved rule; the engine only reads attributes."""
    fields.setdefault("id", None)
    fields.setdefault("name", f"{trigger_type} -> {action_type}")
    fields.setdefault("priority", 0)
    fields.setdefault("is_active", True)
    fields.setdefault("created_at", CREATED)
    return SchedulingRule(
        trigger_type=trigger_type,
        trigger_value=trigger_value,
        action_type=action_type,
        action_value=action_value,
        **fields,
    )


@pytest.fixture
def booking():
    # Wednesday 4 March 2026, 14:00
    return {
        "title": "Intro call",
        "notes": "",
        "attendee_email": "Jane@Acme.com",
        "attendee_name": "Jane",
        "start_time": "2026-03-04T14:00:00",
        "duration": 30,
    }


class TestTriggers:
    @pytest.mark.parametrize(
        "trigger_type, trigger_value",
        [
            ("domain", "acme.com"),
            ("email", "jane@acme.com"),
            ("keyword", "intro"),
            ("time_after", "14"),
            ("time_after", "14:00"),
            ("time_before", "15"),
            ("day_of_week", "wednesday"),
            ("day_of_week", "3"),
            ("day_of_week", "monday, Wednesday"),
            ("duration_greater", "15"),
            ("duration_less", "45"),
            ("all", None),
        ],
    )
    def test_matching_triggers(self, booking, trigger_type, trigger_value):
        result = apply_scheduling_rules([rule(trigger_type, trigger_value, "set_priority", "high")], booking)
        assert result.modified_data["priority"] == "high"
        assert len(result.applied_rules) == 1

    @pytest.mark.parametrize(
        "trigger_type, trigger_value",
        [
            ("domain", "other.com"),
            ("email", "john@acme.com"),
            ("keyword", "demo"),
            ("time_after", "15"),
            ("time_after", "17:00"),
            ("time_before", "14"),
            ("day_of_week", "friday"),
            ("duration_greater", "30"),
            ("duration_less", "30"),
        ],
    )
    def test_non_matching_triggers(self, booking, trigger_type, trigger_value):
        result = apply_scheduling_rules([rule(trigger_type, trigger_value, "set_priority", "high")], booking)
        assert "priority" not in result.modified_data
        assert result.applied_rules == []

    def test_unknown_trigger_does_nothing(self, booking):
        result = apply_scheduling_rules([rule("moon_phase", "full", "set_priority", "high")], booking)
        assert result.applied_rules == []


class TestActions:
    def test_duration_and_note_compose(self, booking):
        rules = [
            rule("domain", "acme.com", "set_duration", "45"),
            rule("all", None, "add_note", "hi"),
        ]
        result = apply_scheduling_rules(rules, booking)
        assert result.modified_data["duration"] == 45
        assert result.modified_data["notes"] == "[Auto] hi"
        assert len(result.applied_rules) == 2

    def test_note_is_appended_on_new_line(self, booking):
        booking["notes"] = "bring slides"
        result = apply_scheduling_rules([rule("all", None, "add_note", "VIP")], booking)
        assert result.modified_data["notes"] == "bring slides\n[Auto] VIP"

    def test_title_prefix(self, booking):
        result = apply_scheduling_rules([rule("all", None, "set_title_prefix", "[Acme]")], booking)
        assert result.modified_data["title"] == "[Acme] Intro call"

    def test_require_approval(self, booking):
        result = apply_scheduling_rules([rule("all", None, "require_approval", "true")], booking)
        assert result.modified_data["status"] == "pending_approval"
        assert result.modified_data["requires_approval"] is True

    def test_auto_approve(self, booking):
        result = apply_scheduling_rules([rule("domain", "acme.com", "auto_approve", "true")], booking)
        assert result.auto_approved is True
        assert result.modified_data["status"] == "confirmed"

    def test_auto_approve_false_is_ignored(self, booking):
        result = apply_scheduling_rules([rule("all", None, "auto_approve", "false")], booking)
        assert result.auto_approved is False
        assert "status" not in result.modified_data

    def test_location_buffer_and_notification(self, booking):
        rules = [
            rule("all", None, "set_location", "Zoom"),
            rule("all", None, "set_buffer", "15"),
            rule("all", None, "send_notification", "sms"),
        ]
        data = apply_scheduling_rules(rules, booking).modified_data
        assert data["location"] == "Zoom"
        assert data["buffer_minutes"] == 15
        assert data["send_extra_notification"] is True
        assert data["notification_type"] == "sms"

    def test_original_data_is_untouched(self, booking):
        result = apply_scheduling_rules([rule("all", None, "set_duration", "60")], booking)
        assert result.original_data["duration"] == 30
        assert booking["duration"] == 30


class TestBlocking:
    def test_block_uses_default_reason(self, booking):
        result = apply_scheduling_rules(
            [rule("domain", "acme.com", "block", "true", name="No Acme")], booking
        )
        assert result.blocked is True
        assert result.block_reason == "Booking blocked by rule: No Acme"

    def test_block_message_overrides_reason(self, booking):
        result = apply_scheduling_rules(
            [rule("all", None, "block", "true", block_message="Fully booked")], booking
        )
        assert result.block_reason == "Fully booked"

    def test_block_false_does_not_block(self, booking):
        result = apply_scheduling_rules([rule("all", None, "block", "false")], booking)
        assert result.blocked is False

    def test_higher_priority_block_stops_lower_rules(self, booking):
        rules = [
            rule("domain", "acme.com", "set_duration", "45", priority=1),
            rule("domain", "acme.com", "block", "true", priority=10),
        ]
        result = apply_scheduling_rules(rules, booking)
        assert result.blocked is True
        assert result.modified_data["duration"] == 30
        assert [r.action for r in result.applied_rules] == ["block: true"]


class TestOrdering:
    def test_priority_then_creation(self):
        older = rule("all", None, "add_note", "older", name="older", created_at=CREATED)
        newer = rule(
            "all", None, "add_note", "newer", name="newer", created_at=CREATED + timedelta(days=1)
        )
        urgent = rule("all", None, "add_note", "urgent", name="urgent", priority=5)
        assert [r.name for r in order_rules([newer, older, urgent])] == ["urgent", "older", "newer"]

    def test_inactive_rules_are_skipped(self, booking):
        result = apply_scheduling_rules(
            [rule("all", None, "block", "true", is_active=False)], booking
        )
        assert result.blocked is False

    def test_errors_fail_open(self, booking):
        result = apply_scheduling_rules([rule("all", None, "set_duration", "forty")], booking)
        assert result.blocked is False
        assert result.modified_data == result.original_data
        assert result.applied_rules == []

    @pytest.mark.parametrize("trigger_value", ["17:00", "soon"])
    def test_bad_time_rule_does_not_disable_block(self, booking, trigger_value):
        rules = [
            rule("time_after", trigger_value, "set_priority", "high", priority=5),
            rule("domain", "acme.com", "block", "true", priority=1),
        ]
        result = apply_scheduling_rules(rules, booking)
        assert result.blocked is True
        assert [r.action for r in result.applied_rules] == ["block: true"]

    def test_unusable_action_value_skips_only_that_rule(self, booking):
        rules = [
            rule("all", None, "set_buffer", "abc", priority=5),
            rule("all", None, "set_duration", "45 minutes", priority=3),
            rule("all", None, "add_note", "hi", priority=1),
        ]
        result = apply_scheduling_rules(rules, booking)
        assert "buffer_minutes" not in result.modified_data
        assert result.modified_data["duration"] == 45
        assert result.modified_data["notes"] == "[Auto] hi"
        assert len(result.applied_rules) == 2


class TestDatabaseHelpers:
    def test_load_active_rules_orders_and_filters(self, db, user, make_rule):
        make_rule("all", None, "add_note", "low", name="low", priority=0)
        make_rule("all", None, "add_note", "high", name="high", priority=9)
        make_rule("all", None, "add_note", "off", name="off", is_active=False)
        assert [r.name for r in load_active_rules(db, user.id)] == ["high", "low"]

    def test_should_block_by_domain(self, db, user, make_rule):
        make_rule("domain", "spam.com", "block", "true", block_message="No spam")
        check = should_block_booking(db, user.id, "Bob@Spam.com")
        assert check.blocked is True
        assert check.reason == "No spam"

    def test_should_block_by_email(self, db, user, make_rule):
        make_rule("email", "bob@example.com", "block", "true")
        assert should_block_booking(db, user.id, "bob@example.com").blocked is True
        assert should_block_booking(db, user.id, "alice@example.com").blocked is False

    def test_inactive_block_rule_is_ignored(self, db, user, make_rule):
        make_rule("domain", "spam.com", "block", "true", is_active=False)
        assert should_block_booking(db, user.id, "bob@spam.com").blocked is False
