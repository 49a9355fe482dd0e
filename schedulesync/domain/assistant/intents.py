"""
Intent detection for chat scheduling commands.

INTENT_PATTERNS is evaluated top to bottom and the first matching predicate
wins, so the order below is part of the behaviour: destructive commands are
recognised before generic booking verbs, and short confirmations last.
"""

import re
from typing import Callable

MEETING_NOUN = r"\b(meetings?|bookings?|calls?|appointments?|events?|sessions?|demos?|interviews?|syncs?)\b"
LINK_NOUN = r"\b(links?|url|page)\b"


def _has(pattern: str) -> Callable[[str], bool]:
    compiled = re.compile(pattern, re.I)
    return lambda text: bool(compiled.search(text))


def _all(*predicates: Callable[[str], bool]) -> Callable[[str], bool]:
    return lambda text: all(p(text) for p in predicates)


def _any(*predicates: Callable[[str], bool]) -> Callable[[str], bool]:
    return lambda text: any(p(text) for p in predicates)


def _none(*predicates: Callable[[str], bool]) -> Callable[[str], bool]:
    return lambda text: not any(p(text) for p in predicates)


refers_to_meeting = _any(_has(MEETING_NOUN), _has(r"\bwith\b"), _has(r"@"))

is_cancel = _all(
    _has(r"\b(cancel|call off|delete|remove)\b"),
    refers_to_meeting,
)

is_reschedule = _any(
    _has(r"\bre-?schedul"),
    _has(r"\brebook\b"),
    _all(_has(r"\b(move|push|postpone|shift|change)\b"), refers_to_meeting),
)

is_check_availability = _has(
    r"\b(availability|available|free slots?|open slots?|free time|am i free|when am i free|"
    r"what times? (?:are|is) (?:open|free))\b"
)

is_find_meetings = _any(
    _has(r"\b(find|search|look ?up|show|list)\b.*\b(meetings?|bookings?|calls?)\s+(with|from)\b"),
    _has(r"\bwhen (is|was|did i have) my (meeting|call)\b"),
    _has(r"\b(history|meetings I had) with\b"),
)

is_analytics = _any(
    _has(r"\b(stats|statistics|analytics|insights?|metrics|trends?|summary)\b"),
    _has(r"\bhow many (meetings|bookings|calls)\b"),
)

is_show_rules = _any(
    _has(r"\b(show|list|view|see|display)\b.*\brules?\b"),
    _has(r"\bwhat are my rules\b"),
    _has(r"^\s*my rules\s*\??\s*$"),
)

is_create_rule_explicit = _any(
    _has(r"^\s*(create |add |new )?rule\s*:"),
    _has(r"\b(create|add|make|set up|new)\s+(a\s+)?(new\s+)?(scheduling\s+)?rule\b"),
)

# Keep in step with the phrases rule_parser understands
is_create_rule_natural = _any(
    _all(_has(r"\b(block|blacklist|reject|decline)\b"), _has(r"(@|\bfrom\b|\bdomain\b|\bbookings\b|\bmeetings\b)")),
    _has(r"\bno (meetings|bookings|calls)\s+(on|before|after|during)\b"),
    _has(r"\bauto[- ]?(approve|confirm|accept)"),
    _has(r"\b\d+\s*(-\s*)?(min|minute)s?\s+(buffer|gap)\b"),
    _has(r"\b(buffer|gap)\b.*\b(before|after|between)\b"),
    _has(r"\brequire[s]? approval\b"),
    _has(r"\bmark\b.*\bas\s+(vip|high priority|important)\b"),
    _has(r"\bprefix\b.*\bwith\b"),
)

is_explain_rules = _any(
    _has(r"\b(how|what|why)\b.*\brules?\b"),
    _has(r"\bexplain\b.*\brules?\b"),
)

is_special_link = _has(r"\b(quick|single[- ]use|one[- ]time|magic|team)\b")

is_get_link = _all(
    _has(LINK_NOUN),
    _any(
        _has(r"\b(my|booking|scheduling)\s+(booking\s+)?(link|url|page)\b"),
        _has(r"\b(get|share|send|give|what'?s|where'?s|copy)\b"),
    ),
    _none(is_special_link, _has(r"\b(create|generate|make)\b")),
)

is_upcoming = _any(
    _has(r"\b(upcoming|coming up)\b"),
    _has(r"\bnext (meeting|call|booking)\b"),
    _has(r"\bwhat'?s on my (calendar|schedule|agenda)\b"),
    _has(r"\b(my )?(schedule|agenda|calendar) (for )?(today|tomorrow|this week)\b"),
    _has(r"\bwhat (meetings|calls) do i have\b"),
    _has(r"\bmeetings (today|tomorrow|this week)\b"),
)

is_create_quick_link = _any(
    _has(r"\b(quick|single[- ]use|one[- ]time|magic)\s+(booking\s+)?link\b"),
    _all(_has(r"\b(create|generate|make)\b"), _has(LINK_NOUN), _none(_has(r"\bteam\b"))),
)

is_team_links = _any(
    _has(r"\bteam\b.*\b(links?|booking pages?)\b"),
    _has(r"\bround[- ]robin\b"),
)

is_plan_info = _has(
    r"\b(my plan|which plan|what plan|subscription|usage|queries left|how many queries|upgrade)\b"
)

is_book_meeting = _any(
    _all(_has(r"\b(book|schedule|set up|arrange|organi[sz]e|create|add)\b"), _has(MEETING_NOUN)),
    _all(_has(r"\b(book|schedule)\b"), _has(r"(@|\bwith\b)")),
    _has(r"\bmeet with\b"),
)

is_template_choice = _any(
    _has(r"^\s*(template|option|number|#)?\s*#?\d{1,2}\s*\.?\s*$"),
    _has(r"\b(use|pick|choose|select)\b.*\btemplate\b"),
    _has(r"^\s*(no template|skip template|without (a )?template)\s*$"),
)

is_confirm_yes = _has(
    r"^\s*(yes|yeah|yep|yup|sure|ok|okay|confirm|confirmed|do it|go ahead|please do|"
    r"absolutely|correct|sounds good)\b"
)

is_confirm_no = _has(
    r"^\s*(no|nope|nah|cancel|never ?mind|don'?t|stop|abort|forget it)\b"
)

INTENT_PATTERNS: list[tuple[Callable[[str], bool], str]] = [
    (is_cancel, "cancel"),
    (is_reschedule, "reschedule"),
    (is_check_availability, "check_availability"),
    (is_find_meetings, "find_meetings"),
    (is_analytics, "analytics"),
    (is_show_rules, "show_rules"),
    (is_create_rule_explicit, "create_rule"),
    (is_create_rule_natural, "create_rule"),
    (is_explain_rules, "explain_rules"),
    (is_get_link, "get_link"),
    (is_upcoming, "upcoming"),
    (is_create_quick_link, "create_quick_link"),
    (is_team_links, "team_links"),
    (is_plan_info, "plan_info"),
    (is_book_meeting, "book_meeting"),
    (is_template_choice, "template_choice"),
    (is_confirm_yes, "confirm_yes"),
    (is_confirm_no, "confirm_no"),
]

INTENTS = tuple(dict.fromkeys(tag for _, tag in INTENT_PATTERNS)) + ("general",)


def detect_intent(message: str) -> str:
    """Classify a chat message. Never raises; unknown input is "general"."""
    text = (message or "").strip()
    if not text:
        return "general"
    for predicate, tag in INTENT_PATTERNS:
        if predicate(text):
            return tag
    return "general"
