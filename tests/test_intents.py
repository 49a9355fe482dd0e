"""Tests for chat intent detection."""

import pytest

from schedulesync.domain.assistant.intents import INTENT_PATTERNS, INTENTS, detect_intent


class TestDetectIntent:
    @pytest.mark.parametrize(
        "message, intent",
        [
            ("Cancel my meeting with john@acme.com", "cancel"),
            ("please call off the demo tomorrow", "cancel"),
            ("Reschedule my call with Ana", "reschedule"),
            ("Move my meeting with john@acme.com to Friday at 3pm", "reschedule"),
            ("When am I free on Friday?", "check_availability"),
            ("What's my availability tomorrow", "check_availability"),
            ("Find meetings with sarah@acme.com", "find_meetings"),
            ("How many meetings did I have this month?", "analytics"),
            ("Show me my rules", "show_rules"),
            ("rule: domain=acme.com -> set_duration=45", "create_rule"),
            ("Create a new rule", "create_rule"),
            ("Block bookings from spam.com", "create_rule"),
            ("No meetings on Fridays", "create_rule"),
            ("Auto-approve meetings from acme.com", "create_rule"),
            ("Add 15 minute buffer between meetings", "create_rule"),
            ("How do rules work?", "explain_rules"),
            ("What's my booking link?", "get_link"),
            ("What's coming up this week?", "upcoming"),
            ("Show my upcoming meetings", "upcoming"),
            ("Create a quick link for a 15 min call", "create_quick_link"),
            ("Show my team links", "team_links"),
            ("What plan am I on?", "plan_info"),
            ("Book a demo with sarah@acme.com tomorrow at 2pm", "book_meeting"),
            ("Schedule a call with John on Monday", "book_meeting"),
            ("2", "template_choice"),
            ("use template 3", "template_choice"),
            ("yes", "confirm_yes"),
            ("Yes please, go ahead", "confirm_yes"),
            ("no", "confirm_no"),
            ("cancel", "confirm_no"),
            ("never mind", "confirm_no"),
            ("hello there", "general"),
        ],
    )
    def test_examples(self, message, intent):
        assert detect_intent(message) == intent

    def test_empty_message_is_general(self):
        assert detect_intent("") == "general"
        assert detect_intent(None) == "general"

    def test_deterministic(self):
        message = "Move my meeting with john@acme.com to Friday at 3pm"
        assert len({detect_intent(message) for _ in range(20)}) == 1

    def test_cancel_wins_over_booking_words(self):
        assert detect_intent("cancel the meeting I booked with Sam") == "cancel"

    def test_block_rule_wins_over_booking(self):
        assert detect_intent("block all bookings from spam.com") == "create_rule"

    def test_quick_link_is_not_the_booking_link(self):
        assert detect_intent("send me a one-time link") == "create_quick_link"


class TestIntentTable:
    def test_order(self):
        tags = [tag for _, tag in INTENT_PATTERNS]
        assert tags[0] == "cancel"
        assert tags[-2:] == ["confirm_yes", "confirm_no"]
        assert tags.index("book_meeting") < tags.index("template_choice")

    def test_general_is_last(self):
        assert INTENTS[-1] == "general"
