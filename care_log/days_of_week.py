"""Weekday applicability of duties (the `days_of_week` JSON column)."""

import json
from datetime import date

LONG_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


def _decode(days_of_week):
    if isinstance(days_of_week, str):
        try:
            return json.loads(days_of_week)
        except ValueError:
            return days_of_week
    return days_of_week


def weekday_keys(day: date) -> tuple[int, str, str]:
    """Return (index with Sunday=0, long name, one-letter name) for a calendar day."""
    idx = (day.weekday() + 1) % 7
    long_name = LONG_NAMES[idx]
    return idx, long_name, long_name[0]


def has_day_constraint(days_of_week) -> bool:
    """True when a non-empty weekday constraint is present."""
    if not days_of_week:
        return False
    if isinstance(days_of_week, str):
        text = days_of_week.strip()
        if not text:
            return False
        try:
            days_of_week = json.loads(text)
        except ValueError:
            # Present but not JSON: still a constraint
            return True
    if isinstance(days_of_week, (list, dict)):
        return len(days_of_week) > 0
    return True


def duty_applies_to_day(days_of_week, day: date) -> bool:
    """Check whether a duty scheduled on `days_of_week` applies to `day`.

    Lists are matched against long ("mon"), upper ("MON") and one-letter ("m")
    names. Objects are matched on keys set to true: the weekday index as a
    string ("0" is Sunday) or any of the name forms, including "Mon".
    Anything else, or no constraint at all, applies every day.
    """
    if not days_of_week:
        return True

    value = _decode(days_of_week)
    idx, long_name, letter = weekday_keys(day)

    if isinstance(value, list):
        names = {str(x).strip().lower() for x in value}
        return long_name in names or letter in names

    if isinstance(value, dict):
        for key in (str(idx), long_name, long_name.upper(), long_name.capitalize(),
                    letter, letter.upper()):
            if value.get(key) is True:
                return True
        return False

    return True
