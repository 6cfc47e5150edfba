"""Tests for POC repository functionality."""

from datetime import date

import pytest
from freezegun import freeze_time

from care_log.errors import DutyConflictError, MissingFieldError, NotFoundError
from care_log.plan_of_care.database.connection import get_connection
from care_log.plan_of_care.database.poc_repository import Duty, Poc


class TestFindActive:
    """Tests for resolving the active POC of a day."""

    def test_covering_poc_found(self, pocs, march_poc):
        """Test a day inside the window resolves to the POC with its duties."""
        poc = pocs.find_active("IND-1", date(2025, 3, 15))
        assert poc.id == "P1"
        assert [d.id for d in poc.duties] == ["D1", "D2"]

    def test_other_individual(self, pocs, march_poc):
        assert pocs.find_active("IND-2", date(2025, 3, 15)) is None

    def test_stop_date_is_inclusive(self, pocs, make_poc):
        """Test a POC ending 2025-01-10 covers that day but not the next."""
        make_poc("P-JAN", "IND-1", "2025-01-01", "2025-01-10")
        assert pocs.find_active("IND-1", date(2025, 1, 10)).id == "P-JAN"
        assert pocs.find_active("IND-1", date(2025, 1, 11)) is None

    def test_start_date_is_inclusive(self, pocs, make_poc):
        make_poc("P-JAN", "IND-1", "2025-01-10", "2025-01-31")
        assert pocs.find_active("IND-1", date(2025, 1, 10)).id == "P-JAN"
        assert pocs.find_active("IND-1", date(2025, 1, 9)) is None

    def test_open_ended(self, pocs, make_poc):
        """Test a POC without a stop date covers every day from its start."""
        make_poc("P-OPEN", "IND-1", "2024-06-01")
        assert pocs.find_active("IND-1", date(2031, 12, 31)).id == "P-OPEN"
        assert pocs.find_active("IND-1", date(2024, 5, 31)) is None

    def test_latest_start_wins(self, pocs, make_poc):
        """Test overlapping POCs resolve to the most recently started one."""
        make_poc("P-OLD", "IND-1", "2025-01-01", "2025-12-31")
        make_poc("P-NEW", "IND-1", "2025-03-01", "2025-03-31")
        assert [d.id for d in pocs.find_active("IND-1", date(2025, 3, 15)).duties] == ["P-NEW-D1", "P-NEW-D2"]
        assert pocs.find_active("IND-1", date(2025, 3, 15)).id == "P-NEW"
        assert pocs.find_active("IND-1", date(2025, 4, 1)).id == "P-OLD"

    def test_same_start_latest_created_wins(self, pocs, make_poc):
        """Test equal start dates fall back to creation time, repeatably."""
        with freeze_time("2025-02-01 12:00:00"):
            make_poc("P-B", "IND-1", "2025-03-01")
        with freeze_time("2025-02-02 12:00:00"):
            make_poc("P-A", "IND-1", "2025-03-01")

        results = {pocs.find_active("IND-1", date(2025, 3, 15)).id for _ in range(5)}
        assert results == {"P-A"}


class TestCreate:
    """Tests for creating POCs."""

    def test_create_round_trip(self, pocs):
        poc = Poc(
            id="",
            individual_id="IND-7",
            poc_number="POC-7",
            start_date=date(2025, 3, 1),
            shift="Day",
            created_by="office",
        )
        duties = [
            Duty(id="", poc_id="", duty="Laundry", task_no=2, days_of_week=["T"]),
            Duty(id="", poc_id="", duty="Lunch", task_no=1, days_of_week={"mon": True}),
        ]
        created = pocs.create(poc, duties)

        assert created.id
        assert created.start_date == date(2025, 3, 1)
        assert created.stop_date is None
        assert created.shift == "Day"
        # Ordered by sort_order, then task number
        assert [d.duty for d in created.duties] == ["Lunch", "Laundry"]
        assert created.duties[0].days_of_week == {"mon": True}
        assert created.duties[1].days_of_week == ["T"]

    def test_missing_fields(self, pocs):
        """Test blank required fields are reported together."""
        poc = Poc(id="", individual_id="", poc_number="", start_date=None)
        with pytest.raises(MissingFieldError) as exc_info:
            pocs.create(poc)
        assert exc_info.value.missing == ["individual_id", "poc_number", "start_date"]

    def test_duty_id_in_use(self, pocs, march_poc):
        """Test a duty id owned by another POC is reported and nothing is written."""
        poc = Poc(id="P-NEW", individual_id="IND-2", poc_number="POC-NEW", start_date=date(2025, 3, 1))
        with pytest.raises(DutyConflictError) as exc_info:
            pocs.create(poc, [Duty(id="D1", poc_id="", duty="Lunch"), Duty(id="D5", poc_id="", duty="Walk")])

        assert exc_info.value.status_code == 409
        assert exc_info.value.duty_ids == ["D1"]
        assert pocs.get("P-NEW") is None
        assert pocs.duty_ids("P1") == {"D1", "D2"}

    def test_repeated_duty_id(self, pocs):
        poc = Poc(id="P-DUP", individual_id="IND-2", poc_number="POC-DUP", start_date=date(2025, 3, 1))
        with pytest.raises(DutyConflictError) as exc_info:
            pocs.create(poc, [Duty(id="X", poc_id="", duty="a"), Duty(id="X", poc_id="", duty="b")])
        assert exc_info.value.duty_ids == ["X"]
        assert pocs.get("P-DUP") is None


class TestUpdateAndDelete:
    """Tests for updating and deleting POCs."""

    def test_update_header(self, pocs, march_poc):
        updated = pocs.update("P1", {"stop_date": date(2025, 4, 30), "note": "extended", "id": "X"})
        assert updated.id == "P1"
        assert updated.stop_date == date(2025, 4, 30)
        assert updated.note == "extended"
        assert [d.id for d in updated.duties] == ["D1", "D2"]

    def test_update_clears_stop_date(self, pocs, march_poc):
        assert pocs.update("P1", {"stop_date": None}).stop_date is None

    def test_update_replaces_duties(self, pocs, march_poc):
        updated = pocs.update("P1", {}, [Duty(id="D3", poc_id="P1", duty="New duty")])
        assert [d.id for d in updated.duties] == ["D3"]

    def test_update_keeps_own_duty_ids(self, pocs, march_poc):
        """Test re-sending a POC's own duty ids is not a conflict."""
        updated = pocs.update("P1", {}, [
            Duty(id="D2", poc_id="P1", duty="Renamed"),
            Duty(id="D1", poc_id="P1", duty="Kept"),
        ])
        assert sorted(d.id for d in updated.duties) == ["D1", "D2"]

    def test_update_with_foreign_duty_id(self, pocs, march_poc, make_poc):
        """Test taking another POC's duty id is refused and the old duties stay."""
        make_poc("P2", "IND-2", "2025-03-01", duty_ids=("D9",))
        with pytest.raises(DutyConflictError) as exc_info:
            pocs.update("P1", {"note": "x"}, [Duty(id="D9", poc_id="P1", duty="Stolen")])

        assert exc_info.value.details == {"conflictingDutyIds": ["D9"], "pocId": "P1"}
        assert pocs.duty_ids("P1") == {"D1", "D2"}
        assert pocs.get("P1").note is None

    def test_update_missing(self, pocs):
        with pytest.raises(NotFoundError):
            pocs.update("nope", {"note": "x"})

    def test_delete_keeps_daily_logs(self, pocs, daily_logs, march_poc):
        """Test deleting a POC removes its duties but leaves logs that reference it."""
        log_id, _ = daily_logs.find_or_create("P1", "IND-1", "DSP-9", "2025-03-15")

        assert pocs.delete("P1") is True
        assert pocs.get("P1") is None
        assert pocs.duty_ids("P1") == set()
        assert daily_logs.get(log_id).poc_id == "P1"

    def test_delete_missing(self, pocs):
        assert pocs.delete("nope") is False


class TestDuties:
    """Tests for duty lookups."""

    def test_duties_for_day(self, pocs, make_poc):
        """Test duties scheduled on other weekdays are filtered out."""
        make_poc("P1", "IND-1", "2025-03-01", duty_ids=("D1",), days=["mon"])
        make_poc("P2", "IND-2", "2025-03-01", duty_ids=("D2",))

        assert [d.id for d in pocs.duties_for("P1", date(2025, 3, 17))] == ["D1"]
        assert pocs.duties_for("P1", date(2025, 3, 18)) == []
        assert [d.id for d in pocs.duties_for("P2", date(2025, 3, 18))] == ["D2"]
        assert [d.id for d in pocs.duties_for("P1")] == ["D1"]

    def test_duty_ids(self, pocs, march_poc):
        assert pocs.duty_ids("P1") == {"D1", "D2"}

    def test_legacy_free_text_days(self, pocs, march_poc):
        """Test a days_of_week value that is not JSON is returned as text."""
        conn = get_connection()
        conn.execute("UPDATE poc_duty SET days_of_week = 'weekdays' WHERE id = 'D1'")
        conn.commit()
        conn.close()

        duty = next(d for d in pocs.get("P1").duties if d.id == "D1")
        assert duty.days_of_week == "weekdays"

    def test_list_for_individual(self, pocs, make_poc):
        with freeze_time("2025-01-01"):
            make_poc("P-OLD", "IND-1", "2025-01-01", "2025-01-31")
        with freeze_time("2025-02-01"):
            make_poc("P-NEW", "IND-1", "2025-02-01")
        assert [p.id for p in pocs.list_for_individual("IND-1")] == ["P-NEW", "P-OLD"]
