"""Turn natural-language rule descriptions into structured scheduling rules"""

import re
from typing import Optional

from ...shared.validators import EMAIL_PATTERN
from .schemas import (
    ACTION_TYPES,
    NUMERIC_ACTION_BOUNDS,
    NUMERIC_TRIGGER_BOUNDS,
    TRIGGER_TYPES,
    ParsedRule,
    numeric_value_error,
)

DAY_NAMES = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]

EXPLICIT_RULE = re.compile(r"^\s*(?:create\s+|add\s+|new\s+)?rule\s*:\s*(.+?)\s*->\s*(.+?)\s*$", re.I)
DOMAIN_PATTERN = re.compile(r"(?:@|\bfrom\s+|\bfor\s+)([a-z0-9-]+(?:\.[a-z0-9-]+)+)\b", re.I)
MINUTES_PATTERN = re.compile(r"(\d+)\s*(?:min|mins|minute|minutes)\b", re.I)
HOUR_PATTERN = re.compile(r"\b(before|after)\s+(\d{1,2})(?::\d{2})?\s*(am|pm)?\b", re.I)


def _split_pair(text: str) -> tuple[str, Optional[str]]:
    if "=" in text:
        key, value = text.split("=", 1)
        return key.strip().lower(), value.strip().strip("'\"") or None
    return text.strip().lower(), None


def parse_explicit_rule(text: str) -> Optional[ParsedRule]:
    """`rule: <trigger_type>=<value> -> <action_type>=<value>`"""
    match = EXPLICIT_RULE.match(text)
    if not match:
        return None

    trigger_type, trigger_value = _split_pair(match.group(1))
    action_type, action_value = _split_pair(match.group(2))
    if trigger_type not in TRIGGER_TYPES or action_type not in ACTION_TYPES:
        return None
    if numeric_value_error(trigger_type, trigger_value, NUMERIC_TRIGGER_BOUNDS):
        return None
    if numeric_value_error(action_type, action_value, NUMERIC_ACTION_BOUNDS):
        return None
    if action_type in ("block", "auto_approve") and action_value is None:
        action_value = "true"

    return ParsedRule(
        name=f"{action_type.replace('_', ' ').title()} when {trigger_type} = {trigger_value or 'any'}",
        trigger_type=trigger_type,
        trigger_value=trigger_value,
        action_type=action_type,
        action_value=action_value,
    )


def _target(text: str) -> tuple[str, Optional[str]]:
    """Email or domain the rule applies to, falling back to every booking"""
    email = EMAIL_PATTERN.search(text)
    if email:
        return "email", email.group(0).lower()
    domain = DOMAIN_PATTERN.search(text)
    if domain:
        return "domain", domain.group(1).lower()
    return "all", None


def _to_hour(hours: int, meridiem: Optional[str]) -> int:
    meridiem = (meridiem or "").lower()
    if meridiem == "pm" and hours < 12:
        return hours + 12
    if meridiem == "am" and hours == 12:
        return 0
    if not meridiem and hours < 8:
        return hours + 12
    return hours


def _days(lower: str) -> list[str]:
    if "weekend" in lower:
        return ["saturday", "sunday"]
    return [d for d in DAY_NAMES if re.search(rf"\b{d}s?\b", lower)]


def _label(trigger_type: str, trigger_value: Optional[str]) -> str:
    return trigger_value if trigger_type != "all" else "all bookings"


def parse_rule_text(text: str) -> Optional[ParsedRule]:
    """
    Parse a rule description such as "block bookings from spam.com" or
    "add 15 min buffer after meetings". Returns None when nothing is recognised.
    """
    if not text or not text.strip():
        return None

    explicit = parse_explicit_rule(text)
    if explicit:
        return explicit

    lower = text.lower()
    trigger_type, trigger_value = _target(text)

    if "buffer" in lower or "gap" in lower:
        minutes = MINUTES_PATTERN.search(lower)
        if minutes:
            return ParsedRule(
                name=f"{minutes.group(1)} min buffer",
                trigger_type=trigger_type,
                trigger_value=trigger_value,
                action_type="set_buffer",
                action_value=minutes.group(1),
            )

    if re.search(r"\bauto[- ]?(approve|confirm|accept)", lower):
        return ParsedRule(
            name=f"Auto-approve {_label(trigger_type, trigger_value)}",
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            action_type="auto_approve",
            action_value="true",
        )

    if re.search(r"\brequires?\s+approval\b|\bneeds?\s+approval\b", lower):
        return ParsedRule(
            name=f"Require approval for {_label(trigger_type, trigger_value)}",
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            action_type="require_approval",
            action_value="true",
        )

    if re.search(r"\bvip\b|\bhigh priority\b|\bpriority\b|\bimportant\b", lower) and trigger_value:
        return ParsedRule(
            name=f"Prioritize {trigger_value}",
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            action_type="set_priority",
            action_value="high",
        )

    prefix = re.search(r"\bprefix\b.*?\bwith\s+['\"]?([^'\"]+?)['\"]?\s*$", text, re.I)
    if prefix:
        return ParsedRule(
            name=f"Prefix titles with {prefix.group(1)}",
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            action_type="set_title_prefix",
            action_value=prefix.group(1),
        )

    location = re.search(r"\blocation\s+(?:to|as|=)\s+['\"]?([^'\"]+?)['\"]?\s*$", text, re.I)
    if location:
        return ParsedRule(
            name=f"Set location to {location.group(1)}",
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            action_type="set_location",
            action_value=location.group(1),
        )

    note = re.search(r"\badd\s+(?:a\s+)?note\s*:?\s*['\"]?([^'\"]+?)['\"]?\s*$", text, re.I)
    if note:
        return ParsedRule(
            name="Add note",
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            action_type="add_note",
            action_value=note.group(1),
        )

    minutes = MINUTES_PATTERN.search(lower)
    if minutes and trigger_type != "all" and re.search(r"\b(should|be|last|set|make)\b", lower):
        return ParsedRule(
            name=f"{minutes.group(1)} min meetings for {trigger_value}",
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            action_type="set_duration",
            action_value=minutes.group(1),
        )

    blocking = re.search(r"\bno\s+(meetings|bookings|calls)\b|\bblock\b|\breject\b|\bdecline\b", lower)
    if not blocking:
        return None

    hour = HOUR_PATTERN.search(lower)
    if hour:
        direction = hour.group(1).lower()
        value = _to_hour(int(hour.group(2)), hour.group(3))
        return ParsedRule(
            name=f"No meetings {direction} {value}:00",
            trigger_type="time_before" if direction == "before" else "time_after",
            trigger_value=str(value),
            action_type="block",
            action_value="true",
        )

    days = _days(lower)
    if days:
        return ParsedRule(
            name=f"No meetings on {', '.join(d.title() for d in days)}",
            trigger_type="day_of_week",
            trigger_value=",".join(days),
            action_type="block",
            action_value="true",
        )

    if trigger_value:
        return ParsedRule(
            name=f"Block {trigger_value}",
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            action_type="block",
            action_value="true",
        )

    return None
