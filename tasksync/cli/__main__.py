from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import ConfigError, config_path_from_env, load_config
from ..excel.workbook import ExcelSheetRepository, WorkbookError
from ..logging.init import log_status, log_summary, set_debug, setup_logging
from ..logging.issue_log import IssueLogBuffer
from ..mapping.column_mapper import build_column_map, field_specs_for
from ..models.config_models import AppConfig
from ..models.processing_result import DedupeResult, SyncResult
from ..services.cell_format import run_format_cells
from ..services.cleanup import run_cleanup
from ..services.deduplicator import run_dedupe
from ..services.planner import PLANNER_FIELDS, run_plan, run_update_task_field
from ..services.recurrence import run_roll_dates, run_weekday_report
from ..services.summary import render_issue_report, render_summary_line
from ..services.sync_engine import run_sync

"""CLI entrypoint: python -m tasksync.cli <command>.

Commands:
- sync            archive completed tasks, deduplicate, clean the live sheet
- dedupe          validate + deduplicate the archive only
- cleanup         clean live rows that are already archived
- roll-dates      move recurring DueDates forward from ReferenceDueDate
- weekday-report  list weekly+ recurring tasks due on a weekday
- format-cells    normalize ECT / Recurrence text, report odd recurrences
- plan            list one owner's tasks inside the planning horizon
- set-field       edit one planner field (due, ect, imp, cat) of a row
- inspect         print headers, column mapping and sample rows

Exit codes: 0 success, 1 fatal (config / sheet / operation error),
2 success with validation issues found in the archive.
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_ISSUES_FOUND = 2

COMMANDS = (
    "sync",
    "dedupe",
    "cleanup",
    "roll-dates",
    "weekday-report",
    "format-cells",
    "plan",
    "set-field",
    "inspect",
)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書き (TASKSYNC_* を最優先化)。
    """
    try:
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
    except OSError as e:
        logging.getLogger("tasksync").warning(f"failed to load .env: {e}")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="tasksync", description="Task sheet -> archive sync & cleanup")
    p.add_argument("command", choices=COMMANDS, help="Operation to run")
    p.add_argument("--config", type=Path, default=None, help="Config file (default: config/tasksync.yml)")
    p.add_argument("--workbook", default=None, help="Workbook path (overrides config)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    # plan / set-field
    p.add_argument("--owner", default=None, help="Owner key, name or marker (plan)")
    p.add_argument("--days", type=int, default=None, help="Days to plan, today included (default: config)")
    p.add_argument("--skip-overdue", action="store_true", help="Leave out open tasks that are past due")
    p.add_argument("--show-completed", action="store_true", help="Include rows marked DONE")
    p.add_argument("--row", type=int, default=None, help="Sheet row number (set-field)")
    p.add_argument("--field", choices=tuple(PLANNER_FIELDS), default=None, help="Planner field (set-field)")
    p.add_argument("--value", default=None, help="New cell value (set-field)")
    return p.parse_args(argv)


def _report_issues(result: DedupeResult, cfg: AppConfig, logger: logging.Logger) -> bool:
    """Log the capped issue report and write the JSON Lines issue log."""
    if not result.issues:
        return False
    logger.warning(render_issue_report(result.issues, cfg.dedupe.issue_preview_limit))
    buffer = IssueLogBuffer()
    buffer.extend(result.issues)
    path = buffer.flush()
    logger.info(f"issue log written: {path}")
    return True


def _summary(result: SyncResult) -> None:
    # log_summary が "SUMMARY " を付けるので除去
    log_summary(render_summary_line(result)[len("SUMMARY "):])


def _cmd_sync(cfg: AppConfig, live: ExcelSheetRepository, archive: ExcelSheetRepository, logger: logging.Logger) -> int:
    result = run_sync(live, archive, cfg)
    if result.error:
        logger.error(result.error)
        return EXIT_FATAL
    log_status(result.status)
    issues = result.dedupe is not None and _report_issues(result.dedupe, cfg, logger)
    _summary(result)
    return EXIT_ISSUES_FOUND if issues else EXIT_SUCCESS_ALL


def _cmd_dedupe(cfg: AppConfig, archive: ExcelSheetRepository, logger: logging.Logger) -> int:
    result = run_dedupe(archive, cfg)
    if result.error:
        logger.error(result.error)
        return EXIT_FATAL
    log_status(result.status)
    issues = _report_issues(result, cfg, logger)
    _summary(SyncResult(scanned=0, appended=0, dedupe=result))
    return EXIT_ISSUES_FOUND if issues else EXIT_SUCCESS_ALL


def _cmd_cleanup(cfg: AppConfig, live: ExcelSheetRepository, archive: ExcelSheetRepository, logger: logging.Logger) -> int:
    result = run_cleanup(live, archive, cfg)
    if result.error:
        logger.error(result.error)
        return EXIT_FATAL
    log_status(result.status)
    _summary(SyncResult(scanned=0, appended=0, cleanup=result))
    return EXIT_SUCCESS_ALL


def _cmd_roll_dates(cfg: AppConfig, live: ExcelSheetRepository, logger: logging.Logger) -> int:
    result = run_roll_dates(live, cfg)
    if result.error:
        logger.error(result.error)
        return EXIT_FATAL
    log_status(result.status)
    return EXIT_SUCCESS_ALL


def _cmd_weekday_report(cfg: AppConfig, live: ExcelSheetRepository, logger: logging.Logger) -> int:
    report = run_weekday_report(live, cfg)
    for line in report.logs:
        logger.debug(line)
    if report.error:
        logger.error(report.error)
        return EXIT_FATAL
    for t in report.flagged:
        logger.info(
            f"row={t.row_number} due={t.due_date} owner={t.owner} recurrence={t.recurrence} "
            f"category={t.category} task={t.task}"
        )
    logger.info(f"{len(report.flagged)} weekly+ recurring task(s) due on a weekday")
    return EXIT_SUCCESS_ALL


def _cmd_format_cells(cfg: AppConfig, live: ExcelSheetRepository, logger: logging.Logger) -> int:
    result = run_format_cells(live, cfg)
    if result.error:
        logger.error(result.error)
        return EXIT_FATAL
    for cell in result.flagged:
        logger.warning(f"row={cell.row_number} {cell.header}={cell.value!r} is not '<number> <day|week|month|year>'")
    log_status(result.status)
    return EXIT_SUCCESS_ALL


def _cmd_plan(cfg: AppConfig, live: ExcelSheetRepository, args: argparse.Namespace, logger: logging.Logger) -> int:
    if not args.owner:
        logger.error("plan requires --owner")
        return EXIT_FATAL
    plan = run_plan(
        live,
        args.owner,
        cfg,
        days_to_plan=args.days,
        include_overdue=False if args.skip_overdue else None,
        show_completed=True if args.show_completed else None,
    )
    if plan.error:
        logger.error(plan.error)
        return EXIT_FATAL
    for t in plan.tasks:
        done = " DONE" if t.is_done else ""
        logger.info(
            f"row={t.row_number} score={t.score:g} due={t.due_date or '-'} ({t.day}) ect={t.ect_raw} "
            f"imp={t.importance} category={t.category} task={t.task}{done}"
        )
    logger.info(f"{len(plan.tasks)} planned task(s) for {plan.owner}, {plan.total_minutes} min total")
    return EXIT_SUCCESS_ALL


def _cmd_set_field(cfg: AppConfig, live: ExcelSheetRepository, args: argparse.Namespace, logger: logging.Logger) -> int:
    if args.row is None or args.field is None or args.value is None:
        logger.error("set-field requires --row, --field and --value")
        return EXIT_FATAL
    result = run_update_task_field(live, args.row, args.field, args.value, cfg)
    if result.error:
        logger.error(result.error)
        return EXIT_FATAL
    log_status(result.status)
    return EXIT_SUCCESS_ALL


def _inspect_data(cfg: AppConfig, repos: list[ExcelSheetRepository]) -> int:
    specs = field_specs_for(cfg)
    for repo in repos:
        table = repo.load()
        if table is None:
            print(f"SHEET: {repo.name} (missing)")
            continue
        cmap = build_column_map(table.headers, specs)
        print(f"SHEET: {repo.name} rows={len(table)} cols={table.headers}")
        print("  mapping=", {name: cmap.headers[idx] for name, idx in cmap.entries})
        for row in table.rows[:3]:
            # datetime は isoformat で表示
            print("  row=", [v.isoformat() if hasattr(v, "isoformat") else v for v in row])
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む (テストの cli_main([...]) 呼び出し対策)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    config_path = args.config or config_path_from_env()
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    if args.workbook:
        cfg = replace(cfg, workbook=args.workbook)

    workbook = Path(cfg.workbook)
    if not workbook.exists():
        logger.error(f"workbook not found: {workbook}")
        return EXIT_FATAL
    logger.info(f"{args.command}: {workbook} (timezone={cfg.timezone})")

    live = ExcelSheetRepository(workbook, cfg.sheets.live)
    archive = ExcelSheetRepository(workbook, cfg.sheets.archive)
    try:
        if args.command == "sync":
            return _cmd_sync(cfg, live, archive, logger)
        if args.command == "dedupe":
            return _cmd_dedupe(cfg, archive, logger)
        if args.command == "cleanup":
            return _cmd_cleanup(cfg, live, archive, logger)
        if args.command == "roll-dates":
            return _cmd_roll_dates(cfg, live, logger)
        if args.command == "weekday-report":
            return _cmd_weekday_report(cfg, live, logger)
        if args.command == "format-cells":
            return _cmd_format_cells(cfg, live, logger)
        if args.command == "plan":
            return _cmd_plan(cfg, live, args, logger)
        if args.command == "set-field":
            return _cmd_set_field(cfg, live, args, logger)
        return _inspect_data(cfg, [live, archive])
    except WorkbookError as e:
        logger.error(f"workbook: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
