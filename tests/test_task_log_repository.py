"""Tests for task log validation and replacement."""

import sqlite3

import pytest
from freezegun import freeze_time

from care_log.errors import InvalidDutyReferenceError, NotFoundError, StatusTransitionError, ValidationError
from care_log.plan_of_care.database.connection import get_connection
from care_log.plan_of_care.database.task_log_repository import (
    TaskEntry,
    normalize_hyphen,
    prepare_entries,
)
from care_log.status_machine import CompletionStatus, DailyLogStatus, SaveAction


def task_rows(daily_log_id: str) -> list[tuple]:
    conn = get_connection()
    rows = conn.execute(
        """SELECT poc_duty_id, completion_status, note FROM poc_daily_task_log
           WHERE daily_log_id = ? ORDER BY poc_duty_id""",
        (daily_log_id,),
    ).fetchall()
    conn.close()
    return [tuple(row) for row in rows]


@pytest.fixture
def dashed_poc(make_poc):
    """A POC whose duty ids contain plain hyphens."""
    return make_poc("P-7", "IND-7", "2025-03-01", duty_ids=("duty-001", "duty-002"))


@pytest.fixture
def draft_log(daily_logs, march_poc):
    log_id, _ = daily_logs.find_or_create("P1", "IND-1", "DSP-9", "2025-03-15")
    return log_id


class TestNormalizeHyphen:
    """Tests for normalize_hyphen."""

    @pytest.mark.parametrize("raw", [
        "duty\u2010001",
        "duty\u2013001",
        "duty\u2014001",
        "duty\u2212001",
        "duty\uff0d001",
        "  duty-001 ",
    ])
    def test_variants(self, raw):
        assert normalize_hyphen(raw) == "duty-001"

    def test_blank(self):
        assert normalize_hyphen(None) == ""


class TestPrepareEntries:
    """Tests for prepare_entries."""

    def test_first_entry_wins(self):
        """Test duplicate duty ids keep the first occurrence only."""
        prepared = prepare_entries([
            {"duty_id": "D1", "completion_status": "REFUSED", "note": "first"},
            {"pocDutyId": "D1", "completionStatus": "INDEPENDENT", "note": "second"},
            {"dutyId": "D2"},
        ])
        assert [(e.duty_id, e.completion_status, e.note) for e in prepared] == [
            ("D1", CompletionStatus.REFUSED, "first"),
            ("D2", CompletionStatus.INDEPENDENT, None),
        ]

    def test_blank_ids_dropped(self):
        prepared = prepare_entries([TaskEntry(duty_id=" "), TaskEntry(duty_id="D1")])
        assert [e.duty_id for e in prepared] == ["D1"]

    @pytest.mark.parametrize("entries", [None, [], [{"duty_id": ""}], [{"note": "no id"}]])
    def test_empty_rejected(self, entries):
        with pytest.raises(ValidationError, match="at least 1 valid pocDutyId"):
            prepare_entries(entries)

    def test_unknown_completion_status(self):
        with pytest.raises(ValidationError) as exc_info:
            prepare_entries([{"duty_id": "D1", "completion_status": "MOSTLY"}])
        assert exc_info.value.details == {"pocDutyIds": ["D1"]}


class TestValidate:
    """Tests for duty ownership checks."""

    def test_foreign_duty_rejected(self, task_logs, march_poc, make_poc):
        make_poc("P2", "IND-2", "2025-03-01", duty_ids=("D9",))
        with pytest.raises(InvalidDutyReferenceError) as exc_info:
            task_logs.validate("P1", [{"duty_id": "D1"}, {"duty_id": "D9"}, {"duty_id": "nope"}])
        assert exc_info.value.details == {
            "invalidPocDutyIds": ["D9", "nope"],
            "pocId": "P1",
            "count": 2,
        }


class TestReplace:
    """Tests for replacing a daily log's tasks."""

    def test_replace_draft(self, task_logs, draft_log):
        log = task_logs.replace(draft_log, "P1", [
            {"duty_id": "D1", "completion_status": "VERBAL_PROMPT", "note": "needed a reminder"},
        ])
        assert log.status == DailyLogStatus.DRAFT
        assert log.task_count == 1
        assert log.tasks[0].poc_duty_id == "D1"
        assert log.tasks[0].completion_status == CompletionStatus.VERBAL_PROMPT
        assert log.tasks[0].completed_at is None

    def test_replace_is_full(self, task_logs, draft_log):
        """Test a later save removes tasks that are no longer sent."""
        task_logs.replace(draft_log, "P1", [{"duty_id": "D1"}, {"duty_id": "D2"}])
        task_logs.replace(draft_log, "P1", [{"duty_id": "D2", "completion_status": "REFUSED"}])
        assert task_rows(draft_log) == [("D2", "REFUSED", None)]

    def test_submit_stamps_completion(self, task_logs, draft_log):
        with freeze_time("2025-03-15 21:30:00"):
            log = task_logs.replace(draft_log, "P1", [{"duty_id": "D1"}], SaveAction.SUBMIT)
        assert log.status == DailyLogStatus.SUBMITTED
        assert log.submitted_at == "2025-03-15T21:30:00.000000Z"
        assert log.tasks[0].completed_at == "2025-03-15T21:30:00.000000Z"

    def test_invalid_reference_changes_nothing(self, task_logs, daily_logs, draft_log):
        """Test one bad duty id leaves the earlier tasks and status untouched."""
        task_logs.replace(draft_log, "P1", [{"duty_id": "D1", "completion_status": "REFUSED"}])
        before = daily_logs.get(draft_log)

        with pytest.raises(InvalidDutyReferenceError):
            task_logs.replace(draft_log, "P1", [{"duty_id": "D2"}, {"duty_id": "X9"}], "SUBMIT")

        after = daily_logs.get(draft_log)
        assert task_rows(draft_log) == [("D1", "REFUSED", None)]
        assert after.status == DailyLogStatus.DRAFT
        assert after.updated_at == before.updated_at

        retried = task_logs.replace(draft_log, "P1", [{"duty_id": "D2"}], "SUBMIT")
        assert [t.poc_duty_id for t in retried.tasks] == ["D2"]
        assert retried.status == DailyLogStatus.SUBMITTED

    def test_storage_failure_rolls_back(self, task_logs, daily_logs, draft_log):
        """Test a failed insert midway restores the previous task set."""
        task_logs.replace(draft_log, "P1", [{"duty_id": "D1", "completion_status": "REFUSED"}])
        conn = get_connection()
        conn.execute("""
            CREATE TRIGGER fail_d2 BEFORE INSERT ON poc_daily_task_log
            WHEN NEW.poc_duty_id = 'D2'
            BEGIN SELECT RAISE(ABORT, 'disk full'); END
        """)
        conn.commit()
        conn.close()

        with pytest.raises(sqlite3.Error):
            task_logs.replace(draft_log, "P1", [{"duty_id": "D1"}, {"duty_id": "D2"}], "SUBMIT")

        assert task_rows(draft_log) == [("D1", "REFUSED", None)]
        assert daily_logs.get(draft_log).status == DailyLogStatus.DRAFT

    def test_dash_variants_match(self, task_logs, daily_logs, dashed_poc):
        """Test ids typed with en dashes resolve to the stored duty."""
        log_id, _ = daily_logs.find_or_create("P-7", "IND-7", "DSP-1", "2025-03-15")
        log = task_logs.replace(log_id, "P-7", [{"pocDutyId": "duty\u2013001"}])
        assert [t.poc_duty_id for t in log.tasks] == ["duty-001"]

    def test_unknown_log(self, task_logs, march_poc):
        with pytest.raises(NotFoundError):
            task_logs.replace("missing", "P1", [{"duty_id": "D1"}])

    def test_draft_after_submit_rejected(self, task_logs, draft_log):
        task_logs.replace(draft_log, "P1", [{"duty_id": "D1"}], SaveAction.SUBMIT)
        with pytest.raises(StatusTransitionError):
            task_logs.replace(draft_log, "P1", [{"duty_id": "D2"}], SaveAction.SAVE_DRAFT)
        assert task_rows(draft_log) == [("D1", "INDEPENDENT", None)]
