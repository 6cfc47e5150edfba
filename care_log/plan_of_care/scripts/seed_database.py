"""Seed the database with demo plans of care and their duties."""

from datetime import date, timedelta

from care_log.plan_of_care.database import PocRepository, get_connection, init_database
from care_log.plan_of_care.database.poc_repository import Duty, Poc


def _duty(duty_id, category, task_no, text, minutes=None, days=None, as_needed=False, instruction=None):
    return Duty(
        id=duty_id,
        poc_id="",
        duty=text,
        category=category,
        task_no=task_no,
        minutes=minutes,
        as_needed=as_needed,
        days_of_week=days,
        instruction=instruction,
        sort_order=task_no,
    )


def mock_pocs(today: date) -> list[Poc]:
    """Demo POCs around `today` so the worksheet has something to show."""
    return [
        Poc(
            id="poc-001",
            individual_id="IND-001",
            poc_number="POC-2025-001",
            start_date=today - timedelta(days=30),
            stop_date=today + timedelta(days=60),
            shift="Day",
            note="Morning and afternoon routine",
            created_by="seed",
            duties=[
                _duty("duty-001-01", "Personal Care", 1, "Assist with bathing", minutes=30,
                      days=["mon", "wed", "fri"]),
                _duty("duty-001-02", "Personal Care", 2, "Oral hygiene", minutes=10,
                      days=["sun", "mon", "tue", "wed", "thu", "fri", "sat"]),
                _duty("duty-001-03", "Nutrition", 3, "Prepare lunch", minutes=45),
                _duty("duty-001-04", "Community", 4, "Walk in the park", minutes=30,
                      days={"sat": True, "sun": True}, instruction="Weather permitting"),
            ],
        ),
        Poc(
            id="poc-002",
            individual_id="IND-002",
            poc_number="POC-2025-002",
            start_date=today - timedelta(days=7),
            stop_date=None,
            shift="All",
            created_by="seed",
            duties=[
                _duty("duty-002-01", "Medication", 1, "Medication reminder", minutes=5),
                _duty("duty-002-02", "Household", 2, "Laundry", minutes=40, days=["T"]),
                _duty("duty-002-03", "Health", 3, "Check blood pressure", as_needed=True,
                      instruction="Record reading in the note"),
            ],
        ),
    ]


def seed_database(today: date | None = None) -> None:
    """Create schema and insert demo POCs, skipping ones that already exist."""
    init_database()
    repo = PocRepository()
    pocs = mock_pocs(today or date.today())

    print("Creating plans of care...")
    for poc in pocs:
        conn = get_connection()
        exists = conn.execute("SELECT id FROM poc WHERE id = ?", (poc.id,)).fetchone()
        conn.close()
        if exists:
            print(f"  Skipping {poc.poc_number} (already exists)")
            continue
        repo.create(poc, poc.duties)
        print(f"  Created {poc.poc_number} for {poc.individual_id} ({len(poc.duties)} duties)")

    print("\nDatabase seeded successfully!")
    print(f"  - {len(pocs)} plans of care")
    print(f"  - {sum(len(p.duties) for p in pocs)} duties")


if __name__ == "__main__":
    seed_database()
