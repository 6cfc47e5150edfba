"""Status workflow for daily logs and the completion domain of task logs."""

from enum import Enum

from care_log.errors import StatusTransitionError, ValidationError


class DailyLogStatus(Enum):
    """Lifecycle of a daily log. Only DRAFT -> SUBMITTED is allowed."""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"


class SaveAction(Enum):
    """What the caller asks for when saving a day."""
    SAVE_DRAFT = "SAVE_DRAFT"
    SUBMIT = "SUBMIT"


class CompletionStatus(Enum):
    """How a DSP reports a duty was completed."""
    INDEPENDENT = "INDEPENDENT"
    VERBAL_PROMPT = "VERBAL_PROMPT"
    PHYSICAL_ASSIST = "PHYSICAL_ASSIST"
    REFUSED = "REFUSED"


DEFAULT_COMPLETION = CompletionStatus.INDEPENDENT

# Status each action moves a log to
ACTION_TARGETS = {
    SaveAction.SAVE_DRAFT: DailyLogStatus.DRAFT,
    SaveAction.SUBMIT: DailyLogStatus.SUBMITTED,
}

ALLOWED_TRANSITIONS = {
    DailyLogStatus.DRAFT: {DailyLogStatus.DRAFT, DailyLogStatus.SUBMITTED},
    DailyLogStatus.SUBMITTED: {DailyLogStatus.SUBMITTED},
}


def parse_action(value) -> SaveAction:
    if isinstance(value, SaveAction):
        return value
    try:
        return SaveAction(str(value or "").strip().upper())
    except ValueError:
        raise ValidationError("action must be SAVE_DRAFT or SUBMIT", {"action": value})


def parse_status(value) -> DailyLogStatus:
    if isinstance(value, DailyLogStatus):
        return value
    try:
        return DailyLogStatus(str(value or "").strip().upper())
    except ValueError:
        raise ValidationError("status must be DRAFT or SUBMITTED", {"status": value})


def parse_status_list(raw) -> list[DailyLogStatus]:
    """Parse a comma list (or iterable) of statuses, silently skipping unknown values."""
    if not raw:
        return []
    parts = raw.split(",") if isinstance(raw, str) else raw
    statuses = []
    for part in parts:
        name = part.value if isinstance(part, DailyLogStatus) else str(part).strip().upper()
        if name in DailyLogStatus.__members__ and DailyLogStatus(name) not in statuses:
            statuses.append(DailyLogStatus(name))
    return statuses


def parse_completion(value) -> CompletionStatus | None:
    """Normalise a completion status. Blank means the default; unknown returns None."""
    if isinstance(value, CompletionStatus):
        return value
    text = str(value or "").strip().upper()
    if not text:
        return DEFAULT_COMPLETION
    try:
        return CompletionStatus(text)
    except ValueError:
        return None


def get_next_status(current: DailyLogStatus, requested: DailyLogStatus) -> DailyLogStatus:
    """Return the status a log ends in, or raise if the move would go backwards."""
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise StatusTransitionError(
            f"Daily log is already {current.value} and cannot return to {requested.value}",
            {"current": current.value, "requested": requested.value},
        )
    return requested


def status_for_action(action: SaveAction) -> DailyLogStatus:
    return ACTION_TARGETS[action]
