"""Command line for the POC daily logging engine."""

import argparse
import logging
import sys

from rich.console import Console
from rich.table import Table

from care_log import config
from care_log.errors import CareLogError
from care_log.plan_of_care.database import connection, init_database
from care_log.plan_of_care.scripts.seed_database import seed_database
from care_log.worksheet import Worksheet, WorksheetService

console = Console()
logger = logging.getLogger(__name__)


def render_worksheet(worksheet: Worksheet, day: str) -> None:
    """Print a worksheet: POC header, then one row per duty with what was logged."""
    if worksheet.poc is None:
        console.print(f"[yellow]{worksheet.message}[/yellow]")
        return

    poc = worksheet.poc
    stop = poc.stop_date.isoformat() if poc.stop_date else "open"
    console.print(
        f"[bold blue]{poc.poc_number}[/bold blue] for {poc.individual_id} "
        f"({poc.start_date.isoformat()} to {stop}, shift {poc.shift})"
    )

    log = worksheet.daily_log
    logged = {t.poc_duty_id: t for t in log.tasks} if log else {}
    if log:
        console.print(f"Daily log {log.id}: [bold]{log.status.value}[/bold] by DSP {log.dsp_id}")
    else:
        console.print(f"[dim]Nothing logged for {day} yet[/dim]")

    table = Table(title=f"Duties for {day}")
    table.add_column("#", justify="right")
    table.add_column("Category")
    table.add_column("Duty")
    table.add_column("Min", justify="right")
    table.add_column("Completion")
    table.add_column("Note")
    for duty in worksheet.duties:
        task = logged.get(duty.id)
        table.add_row(
            str(duty.task_no),
            duty.category or "",
            duty.duty,
            str(duty.minutes) if duty.minutes is not None else "",
            task.completion_status.value if task else "-",
            (task.note or "") if task else "",
        )
    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="care-log", description="POC daily logging")
    parser.add_argument("--log-level", default=None, help="override CARE_LOG_LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="create the database schema")
    commands.add_parser("seed", help="insert demo plans of care")

    worksheet = commands.add_parser("worksheet", help="show the worksheet for a day")
    worksheet.add_argument("individual_id")
    worksheet.add_argument("date", help="YYYY-MM-DD")
    worksheet.add_argument("--dsp", default=None, help="only this DSP's log")

    serve = commands.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default=config.HOST)
    serve.add_argument("--port", type=int, default=config.PORT)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config.configure_logging(args.log_level)

    if args.command == "init-db":
        init_database()
        console.print(f"[bold green]Schema ready[/bold green] at {connection.DB_PATH}")
        return 0

    if args.command == "seed":
        seed_database()
        return 0

    if args.command == "worksheet":
        init_database()
        try:
            worksheet = WorksheetService().get_worksheet(args.individual_id, args.date, args.dsp)
        except CareLogError as e:
            console.print(f"[bold red]Error:[/bold red] {e.message}")
            return 1
        render_worksheet(worksheet, args.date)
        return 0

    if args.command == "serve":
        import uvicorn

        logger.info("Serving on http://%s:%s", args.host, args.port)
        uvicorn.run("care_log.api:create_app", factory=True, host=args.host, port=args.port,
                    log_config=None)
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
