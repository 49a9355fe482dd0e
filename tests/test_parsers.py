"""Tests for date, time and entity extraction."""

from datetime import date, datetime

import pytest

from schedulesync.domain.assistant.parsers import (
    DateParser,
    EntityExtractor,
    TimeParser,
    combine,
    format_time,
    parse_booking_details,
    parse_meeting_reference,
    parse_natural_date,
    parse_natural_time,
)

# Monday
NOW = datetime(2026, 3, 2, 9, 0)


@pytest.fixture
def dates():
    return DateParser()


@pytest.fixture
def times():
    return TimeParser()


@pytest.fixture
def entities():
    return EntityExtractor()


# ─────────────────────────────────────────────────────────────────────────────
# DateParser
# ─────────────────────────────────────────────────────────────────────────────

class TestDateKeywords:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("today please", date(2026, 3, 2)),
            ("tomorrow", date(2026, 3, 3)),
            ("the day after tomorrow", date(2026, 3, 4)),
        ],
    )
    def test_keywords(self, dates, text, expected):
        assert dates.parse(text, NOW).date == expected

    def test_relative_days(self, dates):
        assert dates.parse("in 3 days", NOW).date == date(2026, 3, 5)

    def test_relative_weeks_in_words(self, dates):
        assert dates.parse("in two weeks", NOW).date == date(2026, 3, 16)

    def test_next_week_is_next_monday(self, dates):
        assert dates.parse("sometime next week", NOW).date == date(2026, 3, 9)

    def test_end_of_week_is_friday(self, dates):
        assert dates.parse("by end of the week", NOW).date == date(2026, 3, 6)

    def test_unrecognised_returns_none(self, dates):
        assert dates.parse("whenever suits you", NOW) is None


class TestWeekdays:
    def test_plain_weekday_is_nearest_future(self, dates):
        assert dates.parse("Friday", NOW).date == date(2026, 3, 6)

    def test_same_weekday_as_today_is_a_week_out(self, dates):
        assert dates.parse("monday", NOW).date == date(2026, 3, 9)

    def test_this_weekday_matches_plain(self, dates):
        assert dates.parse("this friday", NOW).date == dates.parse("friday", NOW).date

    def test_next_weekday_adds_a_week(self, dates):
        plain = dates.parse("friday", NOW).date
        upcoming = dates.parse("next friday", NOW).date
        assert (upcoming - plain).days == 7
        assert (upcoming - NOW.date()).days > 7

    def test_date_str(self, dates):
        assert dates.parse("friday", NOW).date_str == "Friday, March 6"


class TestCalendarDates:
    def test_month_name_and_day(self, dates):
        assert dates.parse("March 15", NOW).date == date(2026, 3, 15)

    def test_day_of_month(self, dates):
        assert dates.parse("the 15th of April", NOW).date == date(2026, 4, 15)

    def test_past_date_rolls_to_next_year(self, dates):
        assert dates.parse("Jan 5", NOW).date == date(2027, 1, 5)

    def test_explicit_year_is_kept(self, dates):
        assert dates.parse("December 1, 2027", NOW).date == date(2027, 12, 1)

    def test_invalid_day_returns_none(self, dates):
        assert dates.parse("February 30", NOW) is None

    def test_slash_date(self, dates):
        assert dates.parse("3/20", NOW).date == date(2026, 3, 20)

    def test_slash_date_with_year(self, dates):
        assert dates.parse("12/25/2027", NOW).date == date(2027, 12, 25)

    def test_past_slash_date_rolls_over(self, dates):
        assert dates.parse("1/15", NOW).date == date(2027, 1, 15)


# ─────────────────────────────────────────────────────────────────────────────
# TimeParser
# ─────────────────────────────────────────────────────────────────────────────

class TestTimeParser:
    @pytest.mark.parametrize(
        "text, hours, minutes",
        [
            ("3pm", 15, 0),
            ("at 10:30am", 10, 30),
            ("12pm", 12, 0),
            ("12am", 0, 0),
            ("2 p.m.", 14, 0),
            ("14:30", 14, 30),
            ("3:30", 15, 30),
            ("at 3", 15, 0),
            ("at 9", 9, 0),
            ("noon", 12, 0),
            ("midnight", 0, 0),
            ("in the morning", 9, 0),
            ("afternoon", 14, 0),
            ("evening", 17, 0),
        ],
    )
    def test_times(self, times, text, hours, minutes):
        parsed = times.parse(text)
        assert (parsed.hours, parsed.minutes) == (hours, minutes)

    def test_time_str(self, times):
        assert times.parse("3pm").time_str == "3:00 PM"

    def test_durations_are_not_times(self, times):
        assert times.parse("for 30 min") is None

    def test_relative_dates_are_not_times(self, times):
        assert times.parse("in 3 days") is None

    def test_format_time_midnight(self):
        assert format_time(0, 5) == "12:05 AM"


# ─────────────────────────────────────────────────────────────────────────────
# EntityExtractor
# ─────────────────────────────────────────────────────────────────────────────

class TestEntityExtractor:
    def test_email_is_lowercased(self, entities):
        assert entities.extract_email("email Sarah@Acme.com now") == "sarah@acme.com"

    def test_all_emails(self, entities):
        assert entities.extract_emails("a@x.io and b@y.io") == ["a@x.io", "b@y.io"]

    @pytest.mark.parametrize(
        "text, minutes",
        [
            ("45 min", 45),
            ("a 30-minute call", 30),
            ("1 hour", 60),
            ("2 hours", 120),
            ("half an hour", 30),
        ],
    )
    def test_duration(self, entities, text, minutes):
        assert entities.extract_duration(text) == minutes

    def test_no_duration(self, entities):
        assert entities.extract_duration("tomorrow at 3") is None

    @pytest.mark.parametrize(
        "text, label",
        [
            ("a quick sales call", "Sales Call"),
            ("product demo", "Demo"),
            ("project kick-off", "Kickoff"),
            ("follow up chat", "Follow-up"),
        ],
    )
    def test_meeting_type(self, entities, text, label):
        assert entities.extract_meeting_type(text) == label

    def test_first_listed_meeting_type_wins(self, entities):
        assert entities.extract_meeting_type("interview after the demo") == "Demo"

    def test_name_after_with(self, entities):
        assert entities.extract_name("meet with Sarah Connor tomorrow") == "Sarah Connor"

    def test_lowercase_name_is_capitalised(self, entities):
        assert entities.extract_name("call with john tomorrow") == "John"

    def test_email_is_not_a_name(self, entities):
        assert entities.extract_name("meeting with john@acme.com") is None

    def test_pronoun_is_not_a_name(self, entities):
        assert entities.extract_name("can you meet with me") is None


# ─────────────────────────────────────────────────────────────────────────────
# Composite parsing
# ─────────────────────────────────────────────────────────────────────────────

class TestModuleHelpers:
    def test_combine(self):
        parsed_date = parse_natural_date("on Friday", NOW)
        parsed_time = parse_natural_time("at 3:30pm")
        assert combine(parsed_date, parsed_time) == datetime(2026, 3, 6, 15, 30)

    def test_combine_needs_both(self):
        assert combine(parse_natural_date("tomorrow", NOW), None) is None
        assert parse_natural_time("no time here") is None


class TestParseBookingDetails:
    def test_full_request(self):
        details = parse_booking_details(
            "Book a demo with sarah@acme.com tomorrow at 2pm for 45 minutes", NOW
        )
        assert details.email == "sarah@acme.com"
        assert details.name == "Sarah"
        assert details.start_time == datetime(2026, 3, 3, 14, 0)
        assert details.duration == 45
        assert details.meeting_type == "Demo"
        assert details.title == "Demo with Sarah"
        assert details.missing_fields() == []

    def test_defaults_and_missing_fields(self):
        details = parse_booking_details("schedule a meeting", NOW)
        assert details.duration == 30
        assert details.title == "Meeting"
        assert details.start_time is None
        assert details.missing_fields() == ["email", "date", "time"]


class TestParseMeetingReference:
    def test_cancel_reference(self):
        ref = parse_meeting_reference("Cancel my meeting with john@acme.com", NOW)
        assert ref.email == "john@acme.com"
        assert ref.new_date is None and ref.new_time is None

    def test_reschedule_target_after_to(self):
        ref = parse_meeting_reference("Move my meeting with john@acme.com to Friday at 3pm", NOW)
        assert ref.email == "john@acme.com"
        assert ref.date is None
        assert ref.new_date.date == date(2026, 3, 6)
        assert ref.new_time.hours == 15

    def test_reference_date_and_new_date_are_separate(self):
        ref = parse_meeting_reference("Reschedule my call with Ana on Friday to Monday at 10am", NOW)
        assert ref.name == "Ana"
        assert ref.date.date == date(2026, 3, 6)
        assert ref.new_date.date == date(2026, 3, 9)
        assert (ref.new_time.hours, ref.new_time.minutes) == (10, 0)

    def test_to_inside_email_is_not_a_split(self):
        ref = parse_meeting_reference("Move my meeting with ana@acme.to to Friday at 3pm", NOW)
        assert ref.email == "ana@acme.to"
        assert ref.new_date.date == date(2026, 3, 6)
        assert (ref.new_time.hours, ref.new_time.minutes) == (15, 0)
