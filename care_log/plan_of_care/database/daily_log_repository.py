"""Daily log repository: one worksheet row per (POC, DSP, day)."""

import logging
import math
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import NamedTuple

from care_log import config
from care_log.dates import parse_day, to_storage, utc_now
from care_log.errors import NotFoundError
from care_log.status_machine import (
    CompletionStatus,
    DailyLogStatus,
    get_next_status,
    parse_status_list,
)

from .capabilities import ColumnCatalog, build_insert, default_catalog
from .connection import get_connection, transaction

logger = logging.getLogger(__name__)

TABLE = "poc_daily_log"

# Logical optional field -> physical column spellings seen in deployed schemas
OPTIONAL_COLUMNS = {
    "created_by": ("created_by", "createdby"),
}

DEFAULT_PAGE_SIZE = 25
MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 200


@dataclass
class TaskLog:
    id: str
    daily_log_id: str
    poc_duty_id: str
    completion_status: CompletionStatus = CompletionStatus.INDEPENDENT
    completed_at: str | None = None
    note: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class DailyLog:
    id: str
    poc_id: str
    individual_id: str
    date: str
    dsp_id: str | None = None
    status: DailyLogStatus = DailyLogStatus.DRAFT
    submitted_at: str | None = None
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    tasks: list[TaskLog] = field(default_factory=list)
    task_count: int | None = None


@dataclass
class DailyLogFilters:
    poc_id: str | None = None
    individual_id: str | None = None
    dsp_id: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    statuses: list[DailyLogStatus] = field(default_factory=list)


@dataclass
class DailyLogPage:
    items: list[DailyLog]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.page_size))


class FindOrCreateResult(NamedTuple):
    id: str
    created: bool


def clamp_page_size(page_size) -> int:
    if page_size is None or page_size == "":
        return DEFAULT_PAGE_SIZE
    return max(MIN_PAGE_SIZE, min(int(page_size), MAX_PAGE_SIZE))


def apply_status(
    conn: sqlite3.Connection,
    daily_log_id: str,
    requested: DailyLogStatus,
    now: str,
    submitted_at: str | None = None,
) -> DailyLogStatus:
    """Move a log to `requested` inside the caller's transaction.

    submitted_at is stamped on the first submission (with `submitted_at` when
    given, else `now`) and never changed after.
    """
    row = conn.execute(
        f"SELECT status, submitted_at FROM {TABLE} WHERE id = ?", (daily_log_id,)
    ).fetchone()
    if not row:
        raise NotFoundError("Daily log not found", {"dailyLogId": daily_log_id})

    new_status = get_next_status(DailyLogStatus(row["status"]), requested)
    stamped = row["submitted_at"]
    if new_status == DailyLogStatus.SUBMITTED and not stamped:
        stamped = submitted_at or now

    conn.execute(
        f"UPDATE {TABLE} SET status = ?, submitted_at = ?, updated_at = ? WHERE id = ?",
        (new_status.value, stamped, now, daily_log_id),
    )
    return new_status


class DailyLogRepository:
    """Repository for daily logs."""

    def __init__(self, catalog: ColumnCatalog | None = None):
        self.catalog = catalog or default_catalog()

    def find_or_create(
        self,
        poc_id: str,
        individual_id: str,
        dsp_id: str | None,
        day: date | str,
        created_by: str | None = None,
    ) -> FindOrCreateResult:
        """Return the log for (poc_id, dsp_id, day), creating a DRAFT one if needed.

        The unique index decides races: if a concurrent insert wins, its row
        is re-read and returned with created=False.
        """
        day_str = parse_day(day).isoformat()
        dsp_id = dsp_id or None

        existing = self._find_id(poc_id, dsp_id, day_str)
        if existing:
            return FindOrCreateResult(existing, False)

        now = to_storage(utc_now())
        log_id = str(uuid.uuid4())
        columns = self.catalog.columns_of("main", TABLE)
        statement = build_insert(
            TABLE,
            {
                "id": log_id,
                "poc_id": poc_id,
                "individual_id": individual_id,
                "dsp_id": dsp_id,
                "date": day_str,
                "status": DailyLogStatus.DRAFT.value,
                "submitted_at": None,
                "created_at": now,
                "updated_at": now,
            },
            {"created_by": created_by or config.DEFAULT_CREATED_BY},
            OPTIONAL_COLUMNS,
            columns,
        )
        for skipped in statement.skipped:
            logger.debug("Column for %s not present on %s, not written", skipped, TABLE)

        conn = get_connection()
        try:
            conn.execute(statement.sql, statement.params)
            conn.commit()
        except sqlite3.IntegrityError:
            conn.rollback()
            winner = self._find_id(poc_id, dsp_id, day_str)
            if not winner:
                raise
            logger.info("Daily log for %s/%s/%s created concurrently, using %s",
                        poc_id, dsp_id, day_str, winner)
            return FindOrCreateResult(winner, False)
        finally:
            conn.close()

        logger.info("Created daily log %s for POC %s, DSP %s on %s", log_id, poc_id, dsp_id, day_str)
        return FindOrCreateResult(log_id, True)

    def get(self, daily_log_id: str, with_tasks: bool = True) -> DailyLog | None:
        """Get a daily log by ID."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(f"SELECT * FROM {TABLE} WHERE id = ?", (daily_log_id,))
        row = cursor.fetchone()
        if not row:
            conn.close()
            return None

        log = self._row_to_log(row)
        if with_tasks:
            log.tasks = self._load_tasks(cursor, log.id)
            log.task_count = len(log.tasks)
        conn.close()
        return log

    def find_for_day(
        self,
        poc_id: str,
        individual_id: str,
        day: date | str,
        dsp_id: str | None = None,
    ) -> DailyLog | None:
        """The most recently updated log of a POC for an individual's day (optionally one DSP's)."""
        query = f"SELECT * FROM {TABLE} WHERE poc_id = ? AND individual_id = ? AND date = ?"
        params = [poc_id, individual_id, parse_day(day).isoformat()]
        if dsp_id:
            query += " AND dsp_id = ?"
            params.append(dsp_id)
        query += " ORDER BY updated_at DESC, id DESC LIMIT 1"

        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(query, params)
        row = cursor.fetchone()
        if not row:
            conn.close()
            return None

        log = self._row_to_log(row)
        log.tasks = self._load_tasks(cursor, log.id)
        log.task_count = len(log.tasks)
        conn.close()
        return log

    def get_status(self, poc_id: str, dsp_id: str | None, day: date | str) -> DailyLogStatus | None:
        """Status of the log for a key, or None if it has not been created yet."""
        conn = get_connection()
        row = conn.execute(
            f"""SELECT status FROM {TABLE}
                WHERE poc_id = ? AND IFNULL(dsp_id, '') = IFNULL(?, '') AND date = ?""",
            (poc_id, dsp_id or None, parse_day(day).isoformat()),
        ).fetchone()
        conn.close()
        return DailyLogStatus(row["status"]) if row else None

    def set_status(
        self,
        daily_log_id: str,
        status: DailyLogStatus,
        submitted_at: datetime | None = None,
    ) -> DailyLog:
        """Transition a log's status (DRAFT -> SUBMITTED only).

        `submitted_at` backdates the submission; it is ignored once a log has
        already been submitted.
        """
        stamp = to_storage(submitted_at) if submitted_at else None
        with transaction() as conn:
            apply_status(conn, daily_log_id, status, to_storage(utc_now()), stamp)
        return self.get(daily_log_id)

    def list_logs(
        self,
        filters: DailyLogFilters | None = None,
        page: int = 1,
        page_size: int | None = DEFAULT_PAGE_SIZE,
    ) -> DailyLogPage:
        """Paginated listing for office review, newest day first."""
        filters = filters or DailyLogFilters()
        page = max(1, int(page or 1))
        page_size = clamp_page_size(page_size)
        offset = (page - 1) * page_size

        where = []
        params = []

        if filters.poc_id:
            where.append("l.poc_id = ?")
            params.append(filters.poc_id)
        if filters.individual_id:
            where.append("l.individual_id = ?")
            params.append(filters.individual_id)
        if filters.dsp_id:
            where.append("l.dsp_id = ?")
            params.append(filters.dsp_id)
        if filters.date_from:
            where.append("l.date >= ?")
            params.append(parse_day(filters.date_from, "dateFrom").isoformat())
        if filters.date_to:
            where.append("l.date <= ?")
            params.append(parse_day(filters.date_to, "dateTo").isoformat())
        statuses = parse_status_list(filters.statuses)
        if statuses:
            where.append(f"l.status IN ({', '.join('?' for _ in statuses)})")
            params.extend(s.value for s in statuses)

        where_sql = f"WHERE {' AND '.join(where)}" if where else ""

        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(f"SELECT COUNT(*) FROM {TABLE} l {where_sql}", params)
        total = cursor.fetchone()[0]

        # OFFSET must stay below total, which also keeps it a valid SQLite integer
        if offset >= total:
            conn.close()
            return DailyLogPage(items=[], total=total, page=page, page_size=page_size)

        cursor.execute(
            f"""SELECT l.*,
                       (SELECT COUNT(*) FROM poc_daily_task_log t
                        WHERE t.daily_log_id = l.id) AS task_count
                FROM {TABLE} l
                {where_sql}
                ORDER BY l.date DESC, l.updated_at DESC, l.id DESC
                LIMIT ? OFFSET ?""",
            params + [page_size, offset],
        )
        items = [self._row_to_log(row) for row in cursor.fetchall()]
        conn.close()

        return DailyLogPage(items=items, total=total, page=page, page_size=page_size)

    def dsp_by_date(
        self,
        poc_id: str,
        individual_id: str,
        date_from: date | str | None = None,
        date_to: date | str | None = None,
    ) -> dict[str, str]:
        """Map each logged day to the DSP of its most recently updated log."""
        query = f"""SELECT date, dsp_id FROM {TABLE}
                    WHERE poc_id = ? AND individual_id = ? AND dsp_id IS NOT NULL"""
        params = [poc_id, individual_id]
        if date_from:
            query += " AND date >= ?"
            params.append(parse_day(date_from, "dateFrom").isoformat())
        if date_to:
            query += " AND date <= ?"
            params.append(parse_day(date_to, "dateTo").isoformat())
        query += " ORDER BY date, updated_at, id"

        conn = get_connection()
        rows = conn.execute(query, params).fetchall()
        conn.close()

        # Later rows overwrite earlier ones, leaving the latest update per day
        return {row["date"]: row["dsp_id"] for row in rows}

    # Private helpers

    def _find_id(self, poc_id: str, dsp_id: str | None, day_str: str) -> str | None:
        conn = get_connection()
        row = conn.execute(
            f"""SELECT id FROM {TABLE}
                WHERE poc_id = ? AND IFNULL(dsp_id, '') = IFNULL(?, '') AND date = ?
                LIMIT 1""",
            (poc_id, dsp_id, day_str),
        ).fetchone()
        conn.close()
        return row["id"] if row else None

    def _load_tasks(self, cursor, daily_log_id: str) -> list[TaskLog]:
        cursor.execute(
            """SELECT * FROM poc_daily_task_log WHERE daily_log_id = ?
               ORDER BY created_at, rowid""",
            (daily_log_id,),
        )
        return [self._row_to_task(row) for row in cursor.fetchall()]

    def _row_to_log(self, row) -> DailyLog:
        """Convert a database row to a DailyLog object."""
        keys = row.keys()
        created_by = None
        for column in OPTIONAL_COLUMNS["created_by"]:
            if column in keys:
                created_by = row[column]
                break
        return DailyLog(
            id=row["id"],
            poc_id=row["poc_id"],
            individual_id=row["individual_id"],
            dsp_id=row["dsp_id"],
            date=row["date"],
            status=DailyLogStatus(row["status"]),
            submitted_at=row["submitted_at"],
            created_by=created_by,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            task_count=row["task_count"] if "task_count" in keys else None,
        )

    def _row_to_task(self, row) -> TaskLog:
        """Convert a database row to a TaskLog object."""
        return TaskLog(
            id=row["id"],
            daily_log_id=row["daily_log_id"],
            poc_duty_id=row["poc_duty_id"],
            completion_status=CompletionStatus(row["completion_status"]),
            completed_at=row["completed_at"],
            note=row["note"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
