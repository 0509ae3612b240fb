"""
Weekly report payload + week parsing.

All validation is local and happens before any read-modify-write, so a bad
payload never reaches the lifecycle engine's conditional updates. Counts are
never clamped: out-of-range values are rejected with field-level details.

Usage:
    payload = parse_payload(request_json["data"])
    week = normalize_week("2024-W10")      # -> "2024-W10"
    week = normalize_week("2024-03-06")    # -> "2024-W10"
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from cith.core.exceptions import ValidationError
from cith.models.report import MEETING_MODES, PAYLOAD_COLUMNS

COUNT_FIELDS = (
    "male",
    "female",
    "children",
    "offerings",
    "numberOfTestimonies",
    "numberOfFirstTimers",
    "firstTimersFollowedUp",
    "firstTimersConvertedToCITH",
)

# Counters that can never exceed the number of first timers
FIRST_TIMER_BOUNDED = ("firstTimersFollowedUp", "firstTimersConvertedToCITH")

MAX_REMARKS_LENGTH = 2000

_ISO_WEEK_RE = re.compile(r"^(\d{4})-W(\d{2})$")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class ReportPayload:
    male: int
    female: int
    children: int
    offerings: int
    numberOfTestimonies: int
    numberOfFirstTimers: int
    firstTimersFollowedUp: int
    firstTimersConvertedToCITH: int
    modeOfMeeting: str
    remarks: str = ""

    def to_columns(self) -> dict:
        """Map to WeeklyReport column names."""
        return {column: getattr(self, key) for key, column in PAYLOAD_COLUMNS.items()}


def parse_payload(data) -> ReportPayload:
    """Validate a camelCase payload dict and return a ``ReportPayload``.

    Raises:
        ValidationError: with ``details`` keyed by payload field.
    """
    if not isinstance(data, dict):
        raise ValidationError("Report data must be an object", details={"data": "must be an object"})

    errors = {}
    values = {}
    for field in COUNT_FIELDS:
        raw = data.get(field)
        if raw is None:
            errors[field] = "required"
        elif isinstance(raw, bool) or not isinstance(raw, int):
            errors[field] = "must be an integer"
        elif raw < 0:
            errors[field] = "must be >= 0"
        else:
            values[field] = raw

    mode = data.get("modeOfMeeting")
    if mode not in MEETING_MODES:
        errors["modeOfMeeting"] = f"must be one of {list(MEETING_MODES)}"

    remarks = data.get("remarks") or ""
    if not isinstance(remarks, str):
        errors["remarks"] = "must be a string"
    elif len(remarks) > MAX_REMARKS_LENGTH:
        errors["remarks"] = f"must be at most {MAX_REMARKS_LENGTH} characters"

    first_timers = values.get("numberOfFirstTimers")
    if first_timers is not None:
        for field in FIRST_TIMER_BOUNDED:
            if field in values and values[field] > first_timers:
                errors[field] = "cannot exceed numberOfFirstTimers"

    if errors:
        raise ValidationError("Invalid report data", details=errors)

    return ReportPayload(modeOfMeeting=mode, remarks=remarks.strip(), **values)


def normalize_week(value) -> str:
    """Return the ISO week key (``YYYY-Www``) for a week string or ISO date."""
    if isinstance(value, date):
        year, week, _ = value.isocalendar()
        return f"{year:04d}-W{week:02d}"
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("week is required", details={"week": "required"})

    value = value.strip()
    match = _ISO_WEEK_RE.match(value)
    if match:
        year, week = int(match.group(1)), int(match.group(2))
        try:
            date.fromisocalendar(year, week, 1)
        except ValueError:
            raise ValidationError(f"Invalid ISO week '{value}'", details={"week": "no such ISO week"}) from None
        return f"{year:04d}-W{week:02d}"

    invalid = ValidationError(f"Invalid week '{value}'", details={"week": "expected YYYY-Www or YYYY-MM-DD"})
    if not _ISO_DATE_RE.match(value):
        raise invalid
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        raise invalid from None
    return normalize_week(parsed)
