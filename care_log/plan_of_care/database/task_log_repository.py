"""Task log repository: validates submitted tasks and replaces a daily log's task rows."""

import logging
import uuid
from dataclasses import dataclass

from care_log.dates import to_storage, utc_now
from care_log.errors import InvalidDutyReferenceError, ValidationError
from care_log.status_machine import (
    CompletionStatus,
    SaveAction,
    parse_action,
    parse_completion,
    status_for_action,
)

from .connection import transaction
from .daily_log_repository import DailyLog, DailyLogRepository, apply_status
from .poc_repository import PocRepository

logger = logging.getLogger(__name__)

# Hyphen look-alikes that autocorrect and re-encoding put into ids
DASH_VARIANTS = "\u2010\u2011\u2012\u2013\u2014\u2015\u2212\ufe58\ufe63\uff0d"
_DASH_TABLE = str.maketrans({ch: "-" for ch in DASH_VARIANTS})


def normalize_hyphen(value) -> str:
    """Trim an id and replace any dash variant with a plain '-'."""
    return str(value or "").strip().translate(_DASH_TABLE)


@dataclass
class TaskEntry:
    duty_id: str
    completion_status: CompletionStatus | str | None = None
    note: str | None = None


def prepare_entries(entries) -> list[TaskEntry]:
    """Normalise ids and statuses, drop blank ids, and keep the first entry per duty.

    Raises ValidationError for an empty result or unknown completion statuses.
    """
    prepared: list[TaskEntry] = []
    seen = set()
    bad_status = []

    for entry in entries or []:
        if isinstance(entry, dict):
            entry = TaskEntry(
                duty_id=entry.get("duty_id") or entry.get("pocDutyId") or entry.get("dutyId"),
                completion_status=entry.get("completion_status", entry.get("completionStatus")),
                note=entry.get("note"),
            )
        duty_id = normalize_hyphen(entry.duty_id)
        if not duty_id or duty_id in seen:
            continue
        seen.add(duty_id)

        completion = parse_completion(entry.completion_status)
        if completion is None:
            bad_status.append(duty_id)
            continue
        note = str(entry.note) if entry.note else None
        prepared.append(TaskEntry(duty_id=duty_id, completion_status=completion, note=note))

    if bad_status:
        raise ValidationError(
            "completionStatus must be one of " + ", ".join(c.value for c in CompletionStatus),
            {"pocDutyIds": bad_status},
        )
    if not prepared:
        raise ValidationError("tasks must include at least 1 valid pocDutyId")
    return prepared


class TaskLogRepository:
    """Repository for the task rows of daily logs."""

    def __init__(self, daily_logs: DailyLogRepository | None = None, pocs: PocRepository | None = None):
        self.daily_logs = daily_logs or DailyLogRepository()
        self.pocs = pocs or PocRepository()

    def validate(self, poc_id: str, entries, conn=None) -> list[TaskEntry]:
        """Prepare entries and check every duty belongs to the POC, without writing."""
        prepared = prepare_entries(entries)
        valid_ids = self.pocs.duty_ids(poc_id, conn=conn)
        invalid = [e.duty_id for e in prepared if e.duty_id not in valid_ids]
        if invalid:
            raise InvalidDutyReferenceError(poc_id, invalid)
        return prepared

    def replace(
        self,
        daily_log_id: str,
        poc_id: str,
        entries,
        action: SaveAction | str = SaveAction.SAVE_DRAFT,
    ) -> DailyLog:
        """Replace every task row of a daily log and apply the action's status.

        Validation, the delete, the inserts and the status change share one
        transaction; on any error the log is left exactly as it was.
        """
        action = parse_action(action)
        now = to_storage(utc_now())
        completed_at = now if action == SaveAction.SUBMIT else None

        with transaction() as conn:
            prepared = self.validate(poc_id, entries, conn=conn)
            apply_status(conn, daily_log_id, status_for_action(action), now)

            conn.execute("DELETE FROM poc_daily_task_log WHERE daily_log_id = ?", (daily_log_id,))
            for entry in prepared:
                conn.execute(
                    """INSERT INTO poc_daily_task_log
                       (id, daily_log_id, poc_duty_id, completion_status,
                        completed_at, note, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        str(uuid.uuid4()), daily_log_id, entry.duty_id,
                        entry.completion_status.value, completed_at, entry.note, now, now,
                    ),
                )

        logger.info("Replaced tasks of daily log %s with %d entries (%s)",
                    daily_log_id, len(prepared), action.value)
        return self.daily_logs.get(daily_log_id)
