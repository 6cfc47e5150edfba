"""
Plan-of-Care Database Schema
Supports POC documents, their duties, and the per-day logs DSPs fill in.

Instants are UTC text in a fixed-width format (YYYY-MM-DDTHH:MM:SS.ffffffZ);
daily log dates are plain YYYY-MM-DD calendar days.
"""

SCHEMA = """
-- =============================================================================
-- 1. POC - Plan of care documents
-- =============================================================================
CREATE TABLE IF NOT EXISTS poc (
    id TEXT PRIMARY KEY,
    individual_id TEXT NOT NULL,
    poc_number TEXT NOT NULL,

    -- Validity window (stop_date inclusive, NULL = open-ended)
    start_date TEXT NOT NULL,
    stop_date TEXT,

    shift TEXT DEFAULT 'All',
    note TEXT,
    created_by TEXT,

    -- Metadata
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_poc_individual_start ON poc(individual_id, start_date);


-- =============================================================================
-- 2. POC_DUTY - Line items of a POC
-- =============================================================================
CREATE TABLE IF NOT EXISTS poc_duty (
    id TEXT PRIMARY KEY,
    poc_id TEXT NOT NULL,

    category TEXT,
    task_no INTEGER DEFAULT 0,
    duty TEXT NOT NULL,
    minutes INTEGER,
    as_needed INTEGER DEFAULT 0,
    times_week_min INTEGER,
    times_week_max INTEGER,
    days_of_week TEXT,  -- JSON: ["mon", "wed"] or {"mon": true}
    instruction TEXT,
    sort_order INTEGER DEFAULT 0,

    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,

    FOREIGN KEY (poc_id) REFERENCES poc(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_poc_duty_poc ON poc_duty(poc_id, sort_order, task_no);


-- =============================================================================
-- 3. POC_DAILY_LOG - One worksheet per (POC, DSP, day)
-- =============================================================================
-- Not tied to poc by a foreign key: deleting a POC leaves its logs intact
CREATE TABLE IF NOT EXISTS poc_daily_log (
    id TEXT PRIMARY KEY,
    poc_id TEXT NOT NULL,
    individual_id TEXT NOT NULL,
    dsp_id TEXT,
    date TEXT NOT NULL,

    -- Status: DRAFT -> SUBMITTED
    status TEXT NOT NULL DEFAULT 'DRAFT' CHECK (status IN ('DRAFT', 'SUBMITTED')),
    submitted_at TEXT,

    created_by TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- A missing DSP counts as one value so that it still dedupes
CREATE UNIQUE INDEX IF NOT EXISTS uq_poc_daily_log_key
    ON poc_daily_log(poc_id, IFNULL(dsp_id, ''), date);
CREATE INDEX IF NOT EXISTS idx_poc_daily_log_individual ON poc_daily_log(individual_id, date);
CREATE INDEX IF NOT EXISTS idx_poc_daily_log_date ON poc_daily_log(date, updated_at);


-- =============================================================================
-- 4. POC_DAILY_TASK_LOG - How each duty was completed on that day
-- =============================================================================
CREATE TABLE IF NOT EXISTS poc_daily_task_log (
    id TEXT PRIMARY KEY,
    daily_log_id TEXT NOT NULL,
    poc_duty_id TEXT NOT NULL,

    completion_status TEXT NOT NULL DEFAULT 'INDEPENDENT'
        CHECK (completion_status IN ('INDEPENDENT', 'VERBAL_PROMPT', 'PHYSICAL_ASSIST', 'REFUSED')),
    completed_at TEXT,
    note TEXT,

    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,

    FOREIGN KEY (daily_log_id) REFERENCES poc_daily_log(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_task_log_daily ON poc_daily_task_log(daily_log_id);
"""
