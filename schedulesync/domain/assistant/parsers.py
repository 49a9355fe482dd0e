"""
Date, time and entity extraction for chat scheduling commands.

Each extractor is a small class with a narrow `parse`/`extract` surface so the
patterns can be tested on their own. Nothing here raises on unrecognised
input; a miss is `None` and the caller decides what to ask next.
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional

from ...shared.validators import EMAIL_PATTERN
from .schemas import BookingDetails, MeetingReference, ParsedDate, ParsedTime

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

NUMBER_WORDS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}

MONTH_NAMES = "|".join(sorted(MONTHS, key=len, reverse=True))

RELATIVE_OFFSET = re.compile(
    r"\bin\s+(\d+|" + "|".join(NUMBER_WORDS) + r")\s+(day|week)s?\b", re.I
)
WEEKDAY_PATTERN = re.compile(r"\b(?:(next|this)\s+)?(" + "|".join(WEEKDAYS) + r")\b", re.I)
MONTH_DAY = re.compile(
    r"\b(" + MONTH_NAMES + r")\.?\s+(\d{1,2})(?:st|nd|rd|th)?(?:,?\s+(\d{4}))?\b", re.I
)
DAY_MONTH = re.compile(
    r"\b(\d{1,2})(?:st|nd|rd|th)?\s+(?:of\s+)?(" + MONTH_NAMES + r")\b(?:,?\s+(\d{4}))?", re.I
)
SLASH_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2}|\d{4}))?\b")

MERIDIEM_TIME = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(a\.?m\.?|p\.?m\.?)(?![a-z])", re.I)
CLOCK_TIME = re.compile(r"\b(\d{1,2}):(\d{2})\b")
AT_HOUR = re.compile(r"\bat\s+(\d{1,2})\b(?!\s*[/:])", re.I)

NAMED_TIMES = [
    ("noon", 12, 0),
    ("midday", 12, 0),
    ("midnight", 0, 0),
    ("morning", 9, 0),
    ("afternoon", 14, 0),
    ("evening", 17, 0),
]

DURATION_PATTERN = re.compile(
    r"(\d+)\s*-?\s*(minutes|minute|mins|min|hours|hour|hrs|hr)\b", re.I
)

# Ordered: first keyword found wins
MEETING_TYPES = [
    ("sales call", "Sales Call"),
    ("sales", "Sales Call"),
    ("demo", "Demo"),
    ("interview", "Interview"),
    ("consultation", "Consultation"),
    ("consult", "Consultation"),
    ("discovery", "Discovery Call"),
    ("intro", "Intro Call"),
    ("onboarding", "Onboarding"),
    ("kickoff", "Kickoff"),
    ("kick-off", "Kickoff"),
    ("follow-up", "Follow-up"),
    ("follow up", "Follow-up"),
    ("followup", "Follow-up"),
    ("coaching", "Coaching Session"),
    ("support", "Support Call"),
]

NAME_STOPWORDS = {
    "my", "me", "the", "a", "an", "him", "her", "them", "us", "on", "at", "for", "to",
    "today", "tomorrow", "next", "this", "in", "about", "regarding", "from",
} | set(WEEKDAYS)

WITH_NAME = re.compile(r"\bwith\s+([A-Za-z][A-Za-z'-]*)(?:\s+([A-Z][A-Za-z'-]*))?")
RESCHEDULE_SPLIT = re.compile(r"\b(?:to|till|until)\b", re.I)


def format_date(value: date) -> str:
    return f"{value.strftime('%A, %B')} {value.day}"


def format_time(hours: int, minutes: int) -> str:
    suffix = "PM" if hours >= 12 else "AM"
    display = hours % 12 or 12
    return f"{display}:{minutes:02d} {suffix}"


def _parsed_date(value: date) -> ParsedDate:
    return ParsedDate(date=value, date_str=format_date(value))


def _parsed_time(hours: int, minutes: int) -> ParsedTime:
    return ParsedTime(hours=hours, minutes=minutes, time_str=format_time(hours, minutes))


def _days_until(today: date, weekday: int) -> int:
    """Days to the next occurrence of `weekday` (0=Monday); today counts as a week away"""
    return (weekday - today.weekday()) % 7 or 7


class DateParser:
    """Resolve natural-language dates relative to `now`"""

    def parse(self, text: str, now: datetime) -> Optional[ParsedDate]:
        if not text:
            return None
        lower = text.lower()
        today = now.date()

        for resolver in (
            self._keyword,
            self._relative_offset,
            self._next_week,
            self._end_of_week,
            self._weekday,
            self._month_day,
            self._slash_date,
        ):
            resolved = resolver(lower, today)
            if resolved is not None:
                return _parsed_date(resolved)
        return None

    def _keyword(self, lower: str, today: date) -> Optional[date]:
        if re.search(r"\bday after tomorrow\b", lower):
            return today + timedelta(days=2)
        if re.search(r"\btomorrow\b", lower):
            return today + timedelta(days=1)
        if re.search(r"\b(today|tonight)\b", lower):
            return today
        return None

    def _relative_offset(self, lower: str, today: date) -> Optional[date]:
        match = RELATIVE_OFFSET.search(lower)
        if not match:
            return None
        amount = match.group(1)
        count = int(amount) if amount.isdigit() else NUMBER_WORDS[amount]
        unit_days = 7 if match.group(2) == "week" else 1
        return today + timedelta(days=count * unit_days)

    def _next_week(self, lower: str, today: date) -> Optional[date]:
        if re.search(r"\bnext week\b", lower):
            return today + timedelta(days=_days_until(today, 0))
        return None

    def _end_of_week(self, lower: str, today: date) -> Optional[date]:
        if re.search(r"\bend of (?:the |this )?week\b", lower):
            return today + timedelta(days=_days_until(today, 4))
        return None

    def _weekday(self, lower: str, today: date) -> Optional[date]:
        match = WEEKDAY_PATTERN.search(lower)
        if not match:
            return None
        days = _days_until(today, WEEKDAYS.index(match.group(2)))
        if match.group(1) == "next":
            days += 7
        return today + timedelta(days=days)

    def _resolve(self, today: date, month: int, day: int, year: Optional[str]) -> Optional[date]:
        if year:
            year_value = int(year)
            if year_value < 100:
                year_value += 2000
            try:
                return date(year_value, month, day)
            except ValueError:
                return None

        try:
            candidate = date(today.year, month, day)
        except ValueError:
            candidate = None
        if candidate is not None and candidate >= today:
            return candidate
        try:
            return date(today.year + 1, month, day)
        except ValueError:
            return None

    def _month_day(self, lower: str, today: date) -> Optional[date]:
        match = MONTH_DAY.search(lower)
        if match:
            return self._resolve(today, MONTHS[match.group(1)], int(match.group(2)), match.group(3))
        match = DAY_MONTH.search(lower)
        if match:
            return self._resolve(today, MONTHS[match.group(2)], int(match.group(1)), match.group(3))
        return None

    def _slash_date(self, lower: str, today: date) -> Optional[date]:
        match = SLASH_DATE.search(lower)
        if not match:
            return None
        return self._resolve(today, int(match.group(1)), int(match.group(2)), match.group(3))


class TimeParser:
    """Resolve clock times and named day periods"""

    def parse(self, text: str) -> Optional[ParsedTime]:
        if not text:
            return None
        lower = text.lower()

        match = MERIDIEM_TIME.search(lower)
        if match:
            hours = int(match.group(1))
            minutes = int(match.group(2) or 0)
            if 1 <= hours <= 12 and minutes < 60:
                is_pm = match.group(3).startswith("p")
                if is_pm and hours != 12:
                    hours += 12
                elif not is_pm and hours == 12:
                    hours = 0
                return _parsed_time(hours, minutes)

        match = CLOCK_TIME.search(lower)
        if match:
            hours = int(match.group(1))
            minutes = int(match.group(2))
            if hours < 24 and minutes < 60:
                return _parsed_time(self._assume_afternoon(hours), minutes)

        match = AT_HOUR.search(lower)
        if match:
            hours = int(match.group(1))
            if hours < 24:
                return _parsed_time(self._assume_afternoon(hours), 0)

        for word, hours, minutes in NAMED_TIMES:
            if re.search(rf"\b{word}\b", lower):
                return _parsed_time(hours, minutes)

        return None

    @staticmethod
    def _assume_afternoon(hours: int) -> int:
        # Nobody books at 3 in the morning
        if 1 <= hours < 8:
            return hours + 12
        return hours


class EntityExtractor:
    """Emails, durations, meeting types and attendee names"""

    def extract_email(self, text: str) -> Optional[str]:
        match = EMAIL_PATTERN.search(text or "")
        return match.group(0).lower() if match else None

    def extract_emails(self, text: str) -> list[str]:
        return [m.lower() for m in EMAIL_PATTERN.findall(text or "")]

    def extract_duration(self, text: str) -> Optional[int]:
        lower = (text or "").lower()
        match = DURATION_PATTERN.search(lower)
        if match:
            amount = int(match.group(1))
            return amount * 60 if match.group(2).startswith(("hour", "hr")) else amount
        if re.search(r"\bhalf an hour\b", lower):
            return 30
        if re.search(r"\ban hour\b", lower):
            return 60
        return None

    def extract_meeting_type(self, text: str) -> Optional[str]:
        lower = (text or "").lower()
        for keyword, label in MEETING_TYPES:
            if keyword in lower:
                return label
        return None

    def extract_name(self, text: str) -> Optional[str]:
        """Name from a "with <Name>" phrase, skipping emails and date words"""
        for match in WITH_NAME.finditer(text or ""):
            first = match.group(1)
            if first.lower() in NAME_STOPWORDS:
                continue
            end = match.end(1)
            if end < len(text) and text[end] == "@":
                continue
            parts = [first]
            if match.group(2) and match.group(2).lower() not in NAME_STOPWORDS:
                parts.append(match.group(2))
            return " ".join(p.capitalize() for p in parts)
        return None


date_parser = DateParser()
time_parser = TimeParser()
entity_extractor = EntityExtractor()


def parse_natural_date(text: str, now: Optional[datetime] = None) -> Optional[ParsedDate]:
    return date_parser.parse(text, now or datetime.now())


def parse_natural_time(text: str) -> Optional[ParsedTime]:
    return time_parser.parse(text)


def combine(parsed_date: Optional[ParsedDate], parsed_time: Optional[ParsedTime]) -> Optional[datetime]:
    if not parsed_date or not parsed_time:
        return None
    return datetime(
        parsed_date.date.year,
        parsed_date.date.month,
        parsed_date.date.day,
        parsed_time.hours,
        parsed_time.minutes,
    )


def _name_from_email(email: str) -> str:
    local = email.split("@", 1)[0]
    return " ".join(part.capitalize() for part in re.split(r"[._-]+", local) if part)


def parse_booking_details(message: str, now: Optional[datetime] = None) -> BookingDetails:
    now = now or datetime.now()
    email = entity_extractor.extract_email(message)
    name = entity_extractor.extract_name(message)
    if not name and email:
        name = _name_from_email(email)

    parsed_date = date_parser.parse(message, now)
    parsed_time = time_parser.parse(message)
    meeting_type = entity_extractor.extract_meeting_type(message)

    title = meeting_type or "Meeting"
    if name or email:
        title = f"{title} with {name or email}"

    return BookingDetails(
        email=email,
        name=name,
        date=parsed_date,
        time=parsed_time,
        start_time=combine(parsed_date, parsed_time),
        duration=entity_extractor.extract_duration(message) or 30,
        meeting_type=meeting_type,
        title=title,
    )


def parse_meeting_reference(message: str, now: Optional[datetime] = None) -> MeetingReference:
    """
    Identify the meeting a cancel/reschedule message refers to.

    For reschedules the text after the last "to"/"until" is read as the new
    date and time: "move my call with Ana on Friday to Monday at 3pm".
    """
    now = now or datetime.now()
    reference_part, new_part = message, ""

    emails = [m.span() for m in EMAIL_PATTERN.finditer(message)]
    splits = [
        m
        for m in RESCHEDULE_SPLIT.finditer(message)
        if not any(start <= m.start() < end for start, end in emails)
    ]
    if splits:
        last = splits[-1]
        candidate_new = message[last.end():]
        if date_parser.parse(candidate_new, now) or time_parser.parse(candidate_new):
            reference_part, new_part = message[: last.start()], candidate_new

    return MeetingReference(
        email=entity_extractor.extract_email(reference_part),
        name=entity_extractor.extract_name(reference_part),
        date=date_parser.parse(reference_part, now),
        time=time_parser.parse(reference_part),
        new_date=date_parser.parse(new_part, now) if new_part else None,
        new_time=time_parser.parse(new_part) if new_part else None,
    )
