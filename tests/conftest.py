"""Shared pytest fixtures."""

from datetime import date

import pytest

from care_log import config
from care_log.plan_of_care.database import connection
from care_log.plan_of_care.database.capabilities import ColumnCatalog, default_catalog
from care_log.plan_of_care.database.connection import init_database
from care_log.plan_of_care.database.daily_log_repository import DailyLogRepository
from care_log.plan_of_care.database.poc_repository import Duty, Poc, PocRepository
from care_log.plan_of_care.database.task_log_repository import TaskLogRepository
from care_log.worksheet import WorksheetService


@pytest.fixture(autouse=True)
def fresh_database(tmp_path, monkeypatch):
    """Point every test at its own SQLite file with the schema applied."""
    db_path = tmp_path / "care_log_test.db"
    monkeypatch.setattr(connection, "DB_PATH", db_path)
    monkeypatch.setattr(config, "TIMEZONE", "America/New_York")
    monkeypatch.setattr(config, "DEFAULT_CREATED_BY", "office")
    default_catalog.cache_clear()
    init_database()
    yield db_path
    default_catalog.cache_clear()


@pytest.fixture
def catalog():
    return ColumnCatalog()


@pytest.fixture
def pocs():
    return PocRepository()


@pytest.fixture
def daily_logs(catalog):
    return DailyLogRepository(catalog)


@pytest.fixture
def task_logs(daily_logs, pocs):
    return TaskLogRepository(daily_logs, pocs)


@pytest.fixture
def service(pocs, daily_logs, task_logs):
    return WorksheetService(pocs, daily_logs, task_logs)


@pytest.fixture
def make_poc(pocs):
    """Factory creating a POC with simple duties: make_poc("P1", "IND-1", "2025-03-01", ...).

    Duty ids are global, so by default P1 gets D1 and D2 and any other POC
    gets ids prefixed with its own id (P-NEW-D1, P-NEW-D2).
    """

    def _make(poc_id, individual_id, start, stop=None, duty_ids=None, days=None):
        if duty_ids is None:
            duty_ids = ("D1", "D2") if poc_id == "P1" else (f"{poc_id}-D1", f"{poc_id}-D2")
        duties = [
            Duty(
                id=duty_id,
                poc_id=poc_id,
                duty=f"Duty {duty_id}",
                category="Personal Care",
                task_no=i + 1,
                sort_order=0,
                days_of_week=days,
            )
            for i, duty_id in enumerate(duty_ids)
        ]
        poc = Poc(
            id=poc_id,
            individual_id=individual_id,
            poc_number=f"POC-{poc_id}",
            start_date=date.fromisoformat(start),
            stop_date=date.fromisoformat(stop) if stop else None,
        )
        return pocs.create(poc, duties)

    return _make


@pytest.fixture
def march_poc(make_poc):
    """IND-1 has P1 covering March 2025 with duties D1 and D2."""
    return make_poc("P1", "IND-1", "2025-03-01", "2025-03-31")
