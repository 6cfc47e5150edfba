"""Daily worksheet flows: fetch a day's POC worksheet, save or submit it, review logs."""

import functools
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date

from care_log.dates import parse_day
from care_log.days_of_week import duty_applies_to_day, has_day_constraint
from care_log.errors import MissingFieldError, NotFoundError, StatusTransitionError, StorageError
from care_log.plan_of_care.database.capabilities import ColumnCatalog
from care_log.plan_of_care.database.daily_log_repository import (
    DailyLog,
    DailyLogFilters,
    DailyLogPage,
    DailyLogRepository,
    FindOrCreateResult,
)
from care_log.plan_of_care.database.poc_repository import Duty, Poc, PocRepository
from care_log.plan_of_care.database.task_log_repository import TaskLogRepository
from care_log.status_machine import (
    CompletionStatus,
    DailyLogStatus,
    SaveAction,
    parse_action,
    parse_status,
    parse_status_list,
)

logger = logging.getLogger(__name__)

NO_ACTIVE_POC = "No active POC found for this date"


@dataclass
class Worksheet:
    poc: Poc | None
    duties: list[Duty] = field(default_factory=list)
    daily_log: DailyLog | None = None
    message: str | None = None


@dataclass
class SaveDayResult:
    action: SaveAction
    poc_id: str
    daily_log: DailyLog
    created: bool = False


@dataclass
class TaskDetail:
    duty_id: str
    duty: str
    task_no: int | None = None
    category: str | None = None
    completion_status: CompletionStatus | None = None
    note: str | None = None
    completed_at: str | None = None


@dataclass
class DailyLogDetail:
    log: DailyLog
    poc_number: str | None
    tasks: list[TaskDetail]


def storage_guard(func):
    """Turn database failures into StorageError, logging the real cause here."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except sqlite3.Error as e:
            logger.exception("Storage failure in %s", func.__name__)
            raise StorageError("Internal server error", {"detail": str(e)}) from e
    return wrapper


def _require(**fields) -> None:
    missing = [name for name, value in fields.items() if not str(value or "").strip()]
    if missing:
        raise MissingFieldError(missing)


def build_task_details(day: date, duties: list[Duty], tasks_by_duty: dict) -> list[TaskDetail]:
    """Rows shown for a logged day.

    Duties with a weekday constraint appear on the days they apply to.
    Unconstrained duties appear only if the DSP actually logged them.
    """
    details = []
    for duty in duties:
        if not duty_applies_to_day(duty.days_of_week, day):
            continue
        task = tasks_by_duty.get(duty.id)
        if not has_day_constraint(duty.days_of_week) and task is None:
            continue
        details.append(TaskDetail(
            duty_id=duty.id,
            duty=duty.duty,
            task_no=duty.task_no,
            category=duty.category,
            completion_status=task.completion_status if task else None,
            note=task.note if task else None,
            completed_at=task.completed_at if task else None,
        ))
    return details


class WorksheetService:
    """Entry point used by the HTTP API and the CLI."""

    def __init__(
        self,
        pocs: PocRepository | None = None,
        daily_logs: DailyLogRepository | None = None,
        task_logs: TaskLogRepository | None = None,
        catalog: ColumnCatalog | None = None,
    ):
        self.pocs = pocs or PocRepository()
        self.daily_logs = daily_logs or DailyLogRepository(catalog)
        self.task_logs = task_logs or TaskLogRepository(self.daily_logs, self.pocs)

    # Worksheet

    @storage_guard
    def get_worksheet(self, individual_id: str, date_str: str, dsp_id: str | None = None) -> Worksheet:
        """The active POC for the day, its duties, and the day's log if one exists."""
        _require(individualId=individual_id, date=date_str)
        individual_id = individual_id.strip()
        day = parse_day(date_str)

        poc = self.pocs.find_active(individual_id, day)
        if not poc:
            return Worksheet(poc=None, message=NO_ACTIVE_POC)

        daily_log = self.daily_logs.find_for_day(poc.id, individual_id, day, dsp_id)
        return Worksheet(poc=poc, duties=poc.duties, daily_log=daily_log)

    @storage_guard
    def save_day(
        self,
        individual_id: str,
        date_str: str,
        dsp_id: str,
        action: SaveAction | str,
        tasks,
        created_by: str | None = None,
    ) -> SaveDayResult:
        """Save (SAVE_DRAFT) or submit (SUBMIT) a DSP's tasks for the day.

        Everything is validated before the log is created, so a rejected
        request leaves no trace.
        """
        action = parse_action(action)
        _require(individualId=individual_id, date=date_str, dspId=dsp_id)
        individual_id = individual_id.strip()
        dsp_id = dsp_id.strip()
        day = parse_day(date_str)

        poc = self.pocs.find_active(individual_id, day)
        if not poc:
            raise NotFoundError(NO_ACTIVE_POC, {"individualId": individual_id, "date": day.isoformat()})

        entries = self.task_logs.validate(poc.id, tasks)

        current = self.daily_logs.get_status(poc.id, dsp_id, day)
        if action == SaveAction.SAVE_DRAFT and current == DailyLogStatus.SUBMITTED:
            raise StatusTransitionError(
                "Daily log is already SUBMITTED and cannot be saved as a draft",
                {"pocId": poc.id, "dspId": dsp_id, "date": day.isoformat()},
            )

        result = self.daily_logs.find_or_create(poc.id, individual_id, dsp_id, day, created_by)
        daily_log = self.task_logs.replace(result.id, poc.id, entries, action)
        return SaveDayResult(action=action, poc_id=poc.id, daily_log=daily_log, created=result.created)

    # Daily logs

    @storage_guard
    def create_or_get_log(
        self,
        poc_id: str,
        individual_id: str,
        date_str: str,
        dsp_id: str | None = None,
        created_by: str | None = None,
    ) -> FindOrCreateResult:
        _require(pocId=poc_id, individualId=individual_id)
        day = parse_day(date_str)
        poc_id = poc_id.strip()
        if not self.pocs.get(poc_id):
            raise NotFoundError("POC not found", {"pocId": poc_id})
        created_by = (created_by or "").strip() or None
        return self.daily_logs.find_or_create(
            poc_id, individual_id.strip(), (dsp_id or "").strip() or None, day, created_by
        )

    @storage_guard
    def list_logs(
        self,
        poc_id: str | None = None,
        individual_id: str | None = None,
        dsp_id: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        statuses=None,
        page: int = 1,
        page_size: int | None = None,
    ) -> DailyLogPage:
        filters = DailyLogFilters(
            poc_id=(poc_id or "").strip() or None,
            individual_id=(individual_id or "").strip() or None,
            dsp_id=(dsp_id or "").strip() or None,
            date_from=parse_day(date_from, "dateFrom") if date_from else None,
            date_to=parse_day(date_to, "dateTo") if date_to else None,
            statuses=parse_status_list(statuses),
        )
        return self.daily_logs.list_logs(filters, page=page, page_size=page_size)

    @storage_guard
    def get_log_detail(self, daily_log_id: str) -> DailyLogDetail:
        log = self.daily_logs.get(daily_log_id)
        if not log:
            raise NotFoundError("Daily log not found", {"dailyLogId": daily_log_id})

        poc = self.pocs.get(log.poc_id)
        duties = poc.duties if poc else []
        tasks_by_duty = {t.poc_duty_id: t for t in log.tasks}
        tasks = build_task_details(parse_day(log.date), duties, tasks_by_duty)
        return DailyLogDetail(log=log, poc_number=poc.poc_number if poc else None, tasks=tasks)

    @storage_guard
    def update_log(self, daily_log_id: str, status=None, tasks=None) -> DailyLogDetail:
        """Office review edit: change status and/or replace the task set of a log."""
        log = self.daily_logs.get(daily_log_id, with_tasks=False)
        if not log:
            raise NotFoundError("Daily log not found", {"dailyLogId": daily_log_id})

        requested = parse_status(status) if status else log.status
        if tasks is not None:
            action = SaveAction.SUBMIT if requested == DailyLogStatus.SUBMITTED else SaveAction.SAVE_DRAFT
            self.task_logs.replace(daily_log_id, log.poc_id, tasks, action)
        else:
            self.daily_logs.set_status(daily_log_id, requested)
        return self.get_log_detail(daily_log_id)

    @storage_guard
    def dsp_by_date(self, poc_id: str, individual_id: str, date_from=None, date_to=None) -> dict[str, str]:
        _require(pocId=poc_id, individualId=individual_id)
        return self.daily_logs.dsp_by_date(poc_id.strip(), individual_id.strip(), date_from, date_to)

    # Plans of care

    @storage_guard
    def list_pocs(self, individual_id: str) -> list[Poc]:
        _require(individualId=individual_id)
        return self.pocs.list_for_individual(individual_id.strip())

    @storage_guard
    def get_poc(self, poc_id: str) -> Poc:
        poc = self.pocs.get(poc_id)
        if not poc:
            raise NotFoundError("POC not found", {"pocId": poc_id})
        return poc

    @storage_guard
    def create_poc(self, poc: Poc, duties: list[Duty] | None = None) -> Poc:
        return self.pocs.create(poc, duties)

    @storage_guard
    def update_poc(self, poc_id: str, changes: dict, duties: list[Duty] | None = None) -> Poc:
        return self.pocs.update(poc_id, changes, duties)

    @storage_guard
    def delete_poc(self, poc_id: str) -> None:
        if not self.pocs.delete(poc_id):
            raise NotFoundError("POC not found", {"pocId": poc_id})

    @storage_guard
    def duties_for(self, poc_id: str, date_str: str | None = None) -> list[Duty]:
        _require(pocId=poc_id)
        day = parse_day(date_str) if date_str else None
        return self.pocs.duties_for(poc_id.strip(), day)
