"""POC and duty repository, including the active-POC lookup for a calendar day."""

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import date

from care_log.dates import day_bounds, day_to_storage, storage_to_day, to_storage, utc_now
from care_log.days_of_week import duty_applies_to_day
from care_log.errors import DutyConflictError, MissingFieldError, NotFoundError

from .connection import get_connection, transaction

logger = logging.getLogger(__name__)


@dataclass
class Duty:
    id: str
    poc_id: str
    duty: str
    category: str | None = None
    task_no: int = 0
    minutes: int | None = None
    as_needed: bool = False
    times_week_min: int | None = None
    times_week_max: int | None = None
    days_of_week: list | dict | str | None = None
    instruction: str | None = None
    sort_order: int = 0


@dataclass
class Poc:
    id: str
    individual_id: str
    poc_number: str
    start_date: date
    stop_date: date | None = None
    shift: str = "All"
    note: str | None = None
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    duties: list[Duty] = field(default_factory=list)


class PocRepository:
    """Repository for plans of care and their duties."""

    # Header fields update() accepts
    POC_FIELDS = ["poc_number", "start_date", "stop_date", "shift", "note"]

    def find_active(self, individual_id: str, day: date) -> Poc | None:
        """Find the POC covering `day` for an individual.

        When several POCs overlap the day, the one that started most recently
        wins (then the most recently created), so the answer is stable.
        """
        start, end = day_bounds(day)
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(
            """SELECT * FROM poc
               WHERE individual_id = ?
                 AND start_date <= ?
                 AND (stop_date IS NULL OR stop_date >= ?)
               ORDER BY start_date DESC, created_at DESC, id DESC
               LIMIT 1""",
            (individual_id, to_storage(end), to_storage(start)),
        )
        row = cursor.fetchone()
        if not row:
            conn.close()
            return None

        poc = self._row_to_poc(row)
        poc.duties = self._load_duties(cursor, poc.id)
        conn.close()
        return poc

    def get(self, poc_id: str) -> Poc | None:
        """Get a POC by ID, with its duties."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM poc WHERE id = ?", (poc_id,))
        row = cursor.fetchone()
        if not row:
            conn.close()
            return None

        poc = self._row_to_poc(row)
        poc.duties = self._load_duties(cursor, poc.id)
        conn.close()
        return poc

    def list_for_individual(self, individual_id: str) -> list[Poc]:
        """All POCs of an individual, newest first."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(
            "SELECT * FROM poc WHERE individual_id = ? ORDER BY created_at DESC, id DESC",
            (individual_id,),
        )
        pocs = [self._row_to_poc(row) for row in cursor.fetchall()]
        for poc in pocs:
            poc.duties = self._load_duties(cursor, poc.id)
        conn.close()
        return pocs

    def create(self, poc: Poc, duties: list[Duty] | None = None) -> Poc:
        """Create a POC and its duties in one transaction."""
        missing = [
            name for name in ("individual_id", "poc_number", "start_date")
            if not getattr(poc, name)
        ]
        if missing:
            raise MissingFieldError(missing)

        poc.id = poc.id or str(uuid.uuid4())
        now = to_storage(utc_now())
        duties = list(duties or poc.duties or [])

        with transaction() as conn:
            conn.execute(
                """INSERT INTO poc
                   (id, individual_id, poc_number, start_date, stop_date,
                    shift, note, created_by, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    poc.id, poc.individual_id, poc.poc_number,
                    day_to_storage(poc.start_date),
                    day_to_storage(poc.stop_date) if poc.stop_date else None,
                    poc.shift or "All", poc.note, poc.created_by, now, now,
                ),
            )
            self._insert_duties(conn, poc.id, duties, now)

        logger.info("Created POC %s (%s) for %s with %d duties",
                    poc.id, poc.poc_number, poc.individual_id, len(duties))
        return self.get(poc.id)

    def update(self, poc_id: str, changes: dict, duties: list[Duty] | None = None) -> Poc:
        """Update header fields and, when `duties` is given, replace the duty list."""
        now = to_storage(utc_now())

        with transaction() as conn:
            row = conn.execute("SELECT id FROM poc WHERE id = ?", (poc_id,)).fetchone()
            if not row:
                raise NotFoundError("POC not found", {"pocId": poc_id})

            valid_updates = {}
            for name, value in changes.items():
                if name not in self.POC_FIELDS:
                    continue
                if name in ("start_date", "stop_date"):
                    value = day_to_storage(value) if value else None
                    if name == "start_date" and value is None:
                        continue
                valid_updates[name] = value

            set_clause = ", ".join(f"{name} = ?" for name in valid_updates)
            set_clause = f"{set_clause}, updated_at = ?" if set_clause else "updated_at = ?"
            conn.execute(
                f"UPDATE poc SET {set_clause} WHERE id = ?",
                list(valid_updates.values()) + [now, poc_id],
            )

            if duties is not None:
                conn.execute("DELETE FROM poc_duty WHERE poc_id = ?", (poc_id,))
                self._insert_duties(conn, poc_id, duties, now)

        return self.get(poc_id)

    def delete(self, poc_id: str) -> bool:
        """Delete a POC and its duties. Daily logs that reference it are kept."""
        with transaction() as conn:
            conn.execute("DELETE FROM poc_duty WHERE poc_id = ?", (poc_id,))
            cursor = conn.execute("DELETE FROM poc WHERE id = ?", (poc_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("Deleted POC %s", poc_id)
        return deleted

    def duties_for(self, poc_id: str, day: date | None = None) -> list[Duty]:
        """Duties of a POC in presentation order, optionally only those scheduled on `day`."""
        conn = get_connection()
        duties = self._load_duties(conn.cursor(), poc_id)
        conn.close()
        if day is None:
            return duties
        return [d for d in duties if duty_applies_to_day(d.days_of_week, day)]

    def duty_ids(self, poc_id: str, conn: sqlite3.Connection | None = None) -> set[str]:
        """IDs of the duties belonging to a POC."""
        own_conn = conn is None
        if own_conn:
            conn = get_connection()
        rows = conn.execute("SELECT id FROM poc_duty WHERE poc_id = ?", (poc_id,)).fetchall()
        if own_conn:
            conn.close()
        return {row["id"] for row in rows}

    # Private helpers

    def _load_duties(self, cursor, poc_id: str) -> list[Duty]:
        cursor.execute(
            """SELECT * FROM poc_duty WHERE poc_id = ?
               ORDER BY sort_order, task_no, id""",
            (poc_id,),
        )
        return [self._row_to_duty(row) for row in cursor.fetchall()]

    def _insert_duties(self, conn, poc_id: str, duties: list[Duty], now: str) -> None:
        """Insert duties, generating missing ids.

        Raises DutyConflictError (nothing inserted) when a supplied id is
        repeated in the list or already belongs to a duty in the database.
        """
        ids = [duty.id or str(uuid.uuid4()) for duty in duties]
        self._check_duty_ids(conn, poc_id, ids)

        for duty_id, duty in zip(ids, duties):
            conn.execute(
                """INSERT INTO poc_duty
                   (id, poc_id, category, task_no, duty, minutes, as_needed,
                    times_week_min, times_week_max, days_of_week, instruction,
                    sort_order, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    duty_id,
                    poc_id,
                    duty.category,
                    duty.task_no or 0,
                    duty.duty,
                    duty.minutes,
                    int(bool(duty.as_needed)),
                    duty.times_week_min,
                    duty.times_week_max,
                    json.dumps(duty.days_of_week) if duty.days_of_week is not None else None,
                    duty.instruction,
                    duty.sort_order or 0,
                    now,
                    now,
                ),
            )

    def _check_duty_ids(self, conn, poc_id: str, ids: list[str]) -> None:
        seen = set()
        conflicts = []
        for duty_id in ids:
            if duty_id in seen and duty_id not in conflicts:
                conflicts.append(duty_id)
            seen.add(duty_id)

        if ids:
            placeholders = ", ".join("?" for _ in ids)
            rows = conn.execute(
                f"SELECT id FROM poc_duty WHERE id IN ({placeholders})", ids
            ).fetchall()
            taken = {row["id"] for row in rows}
            for duty_id in ids:
                if duty_id in taken and duty_id not in conflicts:
                    conflicts.append(duty_id)

        if conflicts:
            raise DutyConflictError(poc_id, conflicts)

    def _row_to_poc(self, row) -> Poc:
        """Convert a database row to a Poc object."""
        return Poc(
            id=row["id"],
            individual_id=row["individual_id"],
            poc_number=row["poc_number"],
            start_date=storage_to_day(row["start_date"]),
            stop_date=storage_to_day(row["stop_date"]),
            shift=row["shift"],
            note=row["note"],
            created_by=row["created_by"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_duty(self, row) -> Duty:
        """Convert a database row to a Duty object."""
        days = row["days_of_week"]
        if days:
            try:
                days = json.loads(days)
            except ValueError:
                # Legacy free text, kept as-is
                days = str(days)
        return Duty(
            id=row["id"],
            poc_id=row["poc_id"],
            duty=row["duty"],
            category=row["category"],
            task_no=row["task_no"] or 0,
            minutes=row["minutes"],
            as_needed=bool(row["as_needed"]),
            times_week_min=row["times_week_min"],
            times_week_max=row["times_week_max"],
            days_of_week=days,
            instruction=row["instruction"],
            sort_order=row["sort_order"] or 0,
        )
