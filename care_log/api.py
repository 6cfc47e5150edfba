"""HTTP API for POC daily logging."""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from care_log import config
from care_log.dates import parse_day
from care_log.errors import CareLogError, StorageError
from care_log.plan_of_care.database.capabilities import ColumnCatalog
from care_log.plan_of_care.database.connection import init_database
from care_log.plan_of_care.database.daily_log_repository import DailyLog, TaskLog
from care_log.plan_of_care.database.poc_repository import Duty, Poc
from care_log.worksheet import DailyLogDetail, WorksheetService

logger = logging.getLogger(__name__)

router = APIRouter()


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TaskPayload(CamelModel):
    poc_duty_id: str | None = Field(None, alias="pocDutyId")
    # Older clients send the duty id as `id`
    id: str | None = None
    completion_status: str | None = Field(None, alias="completionStatus")
    status: str | None = None
    note: str | None = None

    def to_entry(self) -> dict:
        return {
            "duty_id": self.poc_duty_id or self.id,
            "completion_status": self.completion_status or self.status,
            "note": self.note,
        }


class SaveDayRequest(CamelModel):
    action: str | None = None
    individual_id: str | None = Field(None, alias="individualId")
    date: str | None = None
    dsp_id: str | None = Field(None, alias="dspId")
    created_by: str | None = Field(None, alias="createdBy")
    tasks: list[TaskPayload] = Field(default_factory=list)


class CreateLogRequest(CamelModel):
    poc_id: str | None = Field(None, alias="pocId")
    individual_id: str | None = Field(None, alias="individualId")
    date: str | None = None
    dsp_id: str | None = Field(None, alias="dspId")
    created_by: str | None = Field(None, alias="createdBy")


class UpdateLogRequest(CamelModel):
    status: str | None = None
    tasks: list[TaskPayload] | None = None


class DutyPayload(CamelModel):
    id: str | None = None
    category: str | None = None
    task_no: int | None = Field(None, alias="taskNo")
    duty: str = ""
    minutes: int | None = None
    as_needed: bool = Field(False, alias="asNeeded")
    times_week_min: int | None = Field(None, alias="timesWeekMin")
    times_week_max: int | None = Field(None, alias="timesWeekMax")
    days_of_week: list | dict | str | None = Field(None, alias="daysOfWeek")
    instruction: str | None = None
    sort_order: int | None = Field(None, alias="sortOrder")

    def to_duty(self) -> Duty:
        return Duty(
            id=self.id or "",
            poc_id="",
            duty=self.duty,
            category=self.category,
            task_no=self.task_no or 0,
            minutes=self.minutes,
            as_needed=self.as_needed,
            times_week_min=self.times_week_min,
            times_week_max=self.times_week_max,
            days_of_week=self.days_of_week,
            instruction=self.instruction,
            sort_order=self.sort_order or 0,
        )


class PocRequest(CamelModel):
    individual_id: str | None = Field(None, alias="individualId")
    poc_number: str | None = Field(None, alias="pocNumber")
    start_date: str | None = Field(None, alias="startDate")
    stop_date: str | None = Field(None, alias="stopDate")
    shift: str | None = None
    note: str | None = None
    created_by: str | None = Field(None, alias="createdBy")
    duties: list[DutyPayload] | None = None


# Serialisers


def duty_json(duty: Duty) -> dict:
    return {
        "id": duty.id,
        "pocId": duty.poc_id,
        "category": duty.category,
        "taskNo": duty.task_no,
        "duty": duty.duty,
        "minutes": duty.minutes,
        "asNeeded": duty.as_needed,
        "timesWeekMin": duty.times_week_min,
        "timesWeekMax": duty.times_week_max,
        "daysOfWeek": duty.days_of_week,
        "instruction": duty.instruction,
        "sortOrder": duty.sort_order,
    }


def poc_json(poc: Poc) -> dict:
    return {
        "id": poc.id,
        "individualId": poc.individual_id,
        "pocNumber": poc.poc_number,
        "startDate": poc.start_date.isoformat() if poc.start_date else None,
        "stopDate": poc.stop_date.isoformat() if poc.stop_date else None,
        "shift": poc.shift,
        "note": poc.note,
        "createdBy": poc.created_by,
        "createdAt": poc.created_at,
        "updatedAt": poc.updated_at,
        "duties": [duty_json(d) for d in poc.duties],
    }


def task_json(task: TaskLog) -> dict:
    return {
        "id": task.id,
        "dailyLogId": task.daily_log_id,
        "pocDutyId": task.poc_duty_id,
        "completionStatus": task.completion_status.value,
        "completedAt": task.completed_at,
        "note": task.note,
        "createdAt": task.created_at,
        "updatedAt": task.updated_at,
    }


def log_json(log: DailyLog, with_tasks: bool = True) -> dict:
    body = {
        "id": log.id,
        "pocId": log.poc_id,
        "individualId": log.individual_id,
        "dspId": log.dsp_id,
        "date": log.date,
        "status": log.status.value,
        "submittedAt": log.submitted_at,
        "createdBy": log.created_by,
        "createdAt": log.created_at,
        "updatedAt": log.updated_at,
        "taskCount": log.task_count,
    }
    if with_tasks:
        body["tasks"] = [task_json(t) for t in log.tasks]
    return body


def detail_json(detail: DailyLogDetail) -> dict:
    body = log_json(detail.log, with_tasks=False)
    body["pocNumber"] = detail.poc_number
    body["tasks"] = [
        {
            "id": t.duty_id,
            "taskNo": t.task_no,
            "duty": t.duty,
            "category": t.category,
            "status": t.completion_status.value if t.completion_status else None,
            "note": t.note,
            "timestamp": t.completed_at,
        }
        for t in detail.tasks
    ]
    return body


def _as_int(value, default: int) -> int:
    """Lenient integer query parsing: anything non-numeric falls back to `default`."""
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def get_service(request: Request) -> WorksheetService:
    return request.app.state.service


# Routes


@router.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/api/poc/daily")
def get_daily_worksheet(
    individualId: str = "",
    date: str = "",
    dspId: str | None = None,
    service: WorksheetService = Depends(get_service),
) -> dict:
    worksheet = service.get_worksheet(individualId, date, dspId)
    if worksheet.poc is None:
        return {"poc": None, "duties": [], "dailyLog": None, "message": worksheet.message}
    return {
        "poc": poc_json(worksheet.poc),
        "duties": [duty_json(d) for d in worksheet.duties],
        "dailyLog": log_json(worksheet.daily_log) if worksheet.daily_log else None,
    }


@router.post("/api/poc/daily")
def save_daily_worksheet(
    body: SaveDayRequest,
    service: WorksheetService = Depends(get_service),
) -> dict:
    result = service.save_day(
        body.individual_id,
        body.date,
        body.dsp_id,
        body.action,
        [t.to_entry() for t in body.tasks],
        created_by=body.created_by,
    )
    return {
        "ok": True,
        "action": result.action.value,
        "pocId": result.poc_id,
        "dailyLog": log_json(result.daily_log),
    }


@router.get("/api/poc/daily-logs")
def list_daily_logs(
    pocId: str | None = None,
    individualId: str | None = None,
    dspId: str | None = None,
    dateFrom: str | None = None,
    dateTo: str | None = None,
    status: str | None = None,
    page: str | None = None,
    pageSize: str | None = None,
    service: WorksheetService = Depends(get_service),
) -> dict:
    result = service.list_logs(
        poc_id=pocId,
        individual_id=individualId,
        dsp_id=dspId,
        date_from=dateFrom,
        date_to=dateTo,
        statuses=status,
        page=_as_int(page, 1),
        page_size=_as_int(pageSize, None) if pageSize else None,
    )
    return {
        "ok": True,
        "page": result.page,
        "pageSize": result.page_size,
        "total": result.total,
        "totalPages": result.total_pages,
        "items": [log_json(item, with_tasks=False) for item in result.items],
    }


@router.post("/api/poc/daily-logs")
def create_or_get_daily_log(
    body: CreateLogRequest,
    service: WorksheetService = Depends(get_service),
) -> JSONResponse:
    result = service.create_or_get_log(
        body.poc_id, body.individual_id, body.date, body.dsp_id, body.created_by
    )
    return JSONResponse(
        status_code=201 if result.created else 200,
        content={"ok": True, "id": result.id, "created": result.created},
    )


@router.get("/api/poc/daily-logs/dsp-by-date")
def dsp_by_date(
    pocId: str = "",
    individualId: str = "",
    dateFrom: str | None = None,
    dateTo: str | None = None,
    service: WorksheetService = Depends(get_service),
) -> dict:
    return {"ok": True, "map": service.dsp_by_date(pocId, individualId, dateFrom, dateTo)}


@router.get("/api/poc/daily-logs/{daily_log_id}")
def get_daily_log(daily_log_id: str, service: WorksheetService = Depends(get_service)) -> dict:
    return {"ok": True, "item": detail_json(service.get_log_detail(daily_log_id))}


@router.patch("/api/poc/daily-logs/{daily_log_id}")
def update_daily_log(
    daily_log_id: str,
    body: UpdateLogRequest,
    service: WorksheetService = Depends(get_service),
) -> dict:
    tasks = [t.to_entry() for t in body.tasks] if body.tasks is not None else None
    detail = service.update_log(daily_log_id, status=body.status, tasks=tasks)
    return {"ok": True, "item": detail_json(detail)}


@router.get("/api/poc/duties")
def list_duties(
    pocId: str = "",
    date: str | None = None,
    service: WorksheetService = Depends(get_service),
) -> dict:
    return {"ok": True, "items": [duty_json(d) for d in service.duties_for(pocId, date)]}


@router.get("/api/poc")
def list_pocs(individualId: str = "", service: WorksheetService = Depends(get_service)) -> dict:
    return {"items": [poc_json(p) for p in service.list_pocs(individualId)]}


@router.post("/api/poc")
def create_poc(body: PocRequest, service: WorksheetService = Depends(get_service)) -> dict:
    poc = Poc(
        id="",
        individual_id=(body.individual_id or "").strip(),
        poc_number=(body.poc_number or "").strip(),
        start_date=parse_day(body.start_date, "startDate") if body.start_date else None,
        stop_date=parse_day(body.stop_date, "stopDate") if body.stop_date else None,
        shift=body.shift or "All",
        note=body.note,
        created_by=body.created_by,
    )
    duties = [d.to_duty() for d in body.duties or []]
    created = service.create_poc(poc, duties)
    return {"ok": True, "id": created.id, "item": poc_json(created)}


@router.get("/api/poc/{poc_id}")
def get_poc(poc_id: str, service: WorksheetService = Depends(get_service)) -> dict:
    return {"item": poc_json(service.get_poc(poc_id))}


@router.patch("/api/poc/{poc_id}")
def update_poc(
    poc_id: str,
    body: PocRequest,
    service: WorksheetService = Depends(get_service),
) -> dict:
    changes = body.model_dump(
        include={"poc_number", "start_date", "stop_date", "shift", "note"},
        exclude_unset=True,
    )
    for name in ("start_date", "stop_date"):
        if changes.get(name):
            changes[name] = parse_day(changes[name], name)
    duties = [d.to_duty() for d in body.duties] if body.duties is not None else None
    updated = service.update_poc(poc_id, changes, duties)
    return {"ok": True, "item": poc_json(updated)}


@router.delete("/api/poc/{poc_id}")
def delete_poc(poc_id: str, service: WorksheetService = Depends(get_service)) -> dict:
    service.delete_poc(poc_id)
    return {"ok": True}


# Error handling


async def care_log_error_handler(request: Request, exc: CareLogError) -> JSONResponse:
    content = {"ok": False, "error": exc.message}
    if isinstance(exc, StorageError):
        if config.DEBUG:
            content["detail"] = exc.details.get("detail")
    else:
        content.update(exc.details)
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(content))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"ok": False, "error": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error path=%s", request.url.path)
    return JSONResponse(status_code=500, content={"ok": False, "error": "Internal server error"})


def create_app(service: WorksheetService | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_database()
        yield

    app = FastAPI(title="Care Log - POC daily logging", lifespan=lifespan)
    # The app owns its column catalog for its whole lifetime
    app.state.service = service or WorksheetService(catalog=ColumnCatalog())

    app.add_exception_handler(CareLogError, care_log_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(router)
    return app
