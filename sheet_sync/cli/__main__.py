from __future__ import annotations

import argparse
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from sheet_sync.api.client import ApiError, SyncApiClient
from sheet_sync.config.loader import ConfigError, SyncConfig, load_config, resolve_dsn
from sheet_sync.db.schema import db_schema_fetcher
from sheet_sync.logging.error_log import ErrorLogBuffer
from sheet_sync.logging.init import log_summary, set_debug, setup_logging
from sheet_sync.models.error_record import ErrorRecord
from sheet_sync.models.sheet_info import SheetInfo
from sheet_sync.models.sync_models import ResultEvent, SyncRequest, SyncResult
from sheet_sync.services.column_mapper import MappingEditor, auto_map
from sheet_sync.services.orchestrator import SyncOrchestrator
from sheet_sync.services.progress import ProgressPresenter, RowProgressBar, learned_ms_per_row
from sheet_sync.services.schema_inspector import RetryPolicy, SchemaInspector, SchemaLookup
from sheet_sync.services.state_store import MappingStore, StateStore, StateStoreError
from sheet_sync.services.summary import render_summary_line
from sheet_sync.services.sync_engine import SyncEngine, SyncEngineError
from sheet_sync.sheets.errors import SheetFetchError
from sheet_sync.sheets.remote import RemoteSheetSource
from sheet_sync.sheets.workbook import WorkbookSheetSource

"""sheet-sync command line.

    sheet-sync [--config PATH] [--debug] [--spreadsheet-id ID] <command>

    sheets                      list the prefix-filtered worksheets
    tables                      list destination tables
    schema TABLE                destination columns (live, else fallback)
    map TABLE --sheet NAME      show / edit / persist a column mapping
    sync TABLE --sheet NAME     run a sync and render its progress

Exit codes: 0 success, 2 sync finished with row errors / failed result /
no result, 1 fatal (config, transport, bad arguments).
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2


@contextmanager
def _db_connection(cfg: SyncConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """psycopg2 connection + cursor; commit on normal exit, rollback on error.

    接続先の優先順位: .env (main() で上書きロード済み) / DATABASE_URL / PGDSN
    -> PG* 個別変数 -> 設定ファイルの database ブロック
    """
    conn = psycopg2.connect(resolve_dsn(cfg.database))
    conn.autocommit = False
    cur = conn.cursor()
    try:
        yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cur.close()
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """.env の値で既存の環境変数を上書き (DB 接続情報・トークンを最優先)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="sheet-sync", description="Spreadsheet -> database sync")
    p.add_argument("--config", type=Path, default=Path("config/sync.yml"), help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--spreadsheet-id", help="Override spreadsheet_id from the config")
    sub = p.add_subparsers(dest="command", required=True)

    sheets = sub.add_parser("sheets", help="List worksheets")
    sheets.add_argument("--local", type=Path, metavar="WORKBOOK", help="Read an .xlsx export instead")

    sub.add_parser("tables", help="List destination tables")

    schema = sub.add_parser("schema", help="Show destination columns")
    schema.add_argument("table")

    mp = sub.add_parser("map", help="Show / edit the column mapping of a table")
    mp.add_argument("table")
    mp.add_argument("--sheet", required=True)
    mp.add_argument("--auto", action="store_true", help="Recompute the mapping, ignoring the stored one")
    mp.add_argument("--set", action="append", default=[], metavar="SRC=DEST", dest="assignments")
    mp.add_argument("--unset", action="append", default=[], metavar="SRC")
    mp.add_argument("--local", type=Path, metavar="WORKBOOK")

    sync = sub.add_parser("sync", help="Run a sync")
    sync.add_argument("table")
    sync.add_argument("--sheet", required=True)
    sync.add_argument("--truncate", action="store_true", help="Delete all rows of TABLE first")
    sync.add_argument("--yes", action="store_true", help="Do not ask before truncating")
    sync.add_argument("--incremental", action="store_true")
    sync.add_argument("--local", type=Path, metavar="WORKBOOK", help="Sync rows of an .xlsx export directly")
    sync.add_argument("--export-log", type=Path, metavar="DIR", help="Write the sync log to DIR")
    return p.parse_args(argv)


# -- helpers -----------------------------------------------------------------
def _spreadsheet_id(cfg: SyncConfig, args: argparse.Namespace) -> str:
    sid = args.spreadsheet_id or cfg.spreadsheet_id
    if not sid:
        raise ConfigError("spreadsheet_id is not configured (config or --spreadsheet-id)")
    return sid


def _remote_inspector(cfg: SyncConfig, client: SyncApiClient) -> SchemaInspector:
    policy = RetryPolicy(
        timeouts=(cfg.timeouts.schema_first, cfg.timeouts.schema_retry),
        delay=cfg.timeouts.schema_retry_delay,
    )
    return SchemaInspector(lambda table, timeout: client.fetch_schema(table, timeout=timeout), policy)


def _find_sheet(sheets: list[SheetInfo], name: str) -> SheetInfo:
    for sheet in sheets:
        if sheet.name == name:
            return sheet
    raise ConfigError(f"sheet not found: {name} (available: {', '.join(s.name for s in sheets) or 'none'})")


def _sheet_info(cfg: SyncConfig, args: argparse.Namespace, client: SyncApiClient) -> SheetInfo:
    if args.local:
        source = WorkbookSheetSource(args.local, prefix=cfg.sheet_prefix, sample_size=cfg.sample_size)
        return _find_sheet(source.fetch_sheets(), args.sheet)
    remote = RemoteSheetSource(client, prefix=cfg.sheet_prefix, timeout=cfg.timeouts.sheets)
    sid = _spreadsheet_id(cfg, args)
    sheet = _find_sheet(remote.fetch_sheets(sid), args.sheet)
    return remote.load_sheet_columns(sid, sheet)


def _print_lookup(logger: Any, table: str, lookup: SchemaLookup) -> None:
    logger.info(f"table={table} source={lookup.source} columns={len(lookup.columns)}")
    for c in lookup.columns:
        default = f" default={c.default}" if c.default is not None else ""
        logger.info(f"  {c.name} {c.type}{'' if c.nullable else ' NOT NULL'}{default}")


def _confirm_truncate(table: str, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    if not sys.stdin.isatty():
        return False
    answer = input(f"All rows of '{table}' will be deleted before import. Type the table name to confirm: ")
    return answer.strip() == table


def _exit_code(result: SyncResult, failure_kind: str | None) -> int:
    if failure_kind == "transport":
        return EXIT_FATAL
    if result.success and result.errors == 0:
        return EXIT_SUCCESS
    return EXIT_PARTIAL_FAILURE


def _finish_run(
    logger: Any,
    args: argparse.Namespace,
    presenter: ProgressPresenter,
    result: SyncResult,
    elapsed: float,
) -> None:
    log_summary(render_summary_line(args.table, args.sheet, result, presenter.stats, elapsed)[8:])
    counts = presenter.log.counts()
    logger.debug(f"log counts: {counts}")
    if args.export_log:
        path = presenter.log.export(args.export_log)
        logger.info(f"sync log written to {path}")


# -- commands ----------------------------------------------------------------
def _cmd_sheets(cfg: SyncConfig, args: argparse.Namespace, client: SyncApiClient, logger: Any) -> int:
    if args.local:
        sheets = WorkbookSheetSource(args.local, prefix=cfg.sheet_prefix, sample_size=cfg.sample_size).fetch_sheets()
    else:
        source = RemoteSheetSource(client, prefix=cfg.sheet_prefix, timeout=cfg.timeouts.sheets)
        sheets = source.fetch_sheets(_spreadsheet_id(cfg, args))
    if not sheets:
        logger.info(f"no sheets found with prefix '{cfg.sheet_prefix}'")
        return EXIT_SUCCESS
    for s in sheets:
        if s.error:
            logger.warning(f"{s.name} error={s.error}")
        else:
            logger.info(f"{s.name} rows={s.row_count} columns={', '.join(s.columns)}")
    return EXIT_SUCCESS


def _cmd_tables(cfg: SyncConfig, args: argparse.Namespace, client: SyncApiClient, logger: Any) -> int:
    tables = client.list_tables(timeout=cfg.timeouts.schema_retry)
    for t in tables:
        logger.info(f"{t.name} ({t.display_name})")
    return EXIT_SUCCESS


def _cmd_schema(cfg: SyncConfig, args: argparse.Namespace, client: SyncApiClient, logger: Any) -> int:
    _print_lookup(logger, args.table, _remote_inspector(cfg, client).get_columns(args.table))
    return EXIT_SUCCESS


def _cmd_map(cfg: SyncConfig, args: argparse.Namespace, client: SyncApiClient, logger: Any) -> int:
    sheet = _sheet_info(cfg, args, client)
    lookup = _remote_inspector(cfg, client).get_columns(args.table)
    store = MappingStore(StateStore(cfg.state_file))
    if args.auto:
        mapping = auto_map(lookup.names, sheet.columns)
        origin = "auto"
    else:
        resolved = store.resolve(args.table, lookup.names, sheet.columns)
        mapping, origin = resolved.mapping, resolved.origin

    if not args.local:
        try:
            client.suggest_mapping(sheet.columns, args.table)
        except (ApiError, OSError) as e:
            logger.debug(f"server mapping suggestion unavailable: {e}")

    editor = MappingEditor(mapping)
    for item in args.assignments:
        src, sep, dest = item.partition("=")
        if not sep or not src:
            logger.error(f"invalid --set value (expected SRC=DEST): {item}")
            return EXIT_FATAL
        if src not in sheet.columns:
            logger.warning(f"'{src}' is not a column of sheet {sheet.name}")
        if dest and lookup.names and dest not in lookup.names:
            logger.warning(f"'{dest}' is not a column of table {args.table}")
        editor.assign(src, dest)
    for src in args.unset:
        editor.unassign(src)

    mapping = editor.mapping
    edited = bool(args.assignments or args.unset or args.auto or origin == "auto")
    if edited:
        store.save(args.table, mapping)
    logger.info(f"mapping table={args.table} sheet={sheet.name} origin={origin} entries={len(mapping)}")
    for src, dest in mapping.items():
        logger.info(f"  {src} -> {dest}")
    return EXIT_SUCCESS


def _cmd_sync(cfg: SyncConfig, args: argparse.Namespace, client: SyncApiClient, logger: Any) -> int:
    if args.truncate and not _confirm_truncate(args.table, args.yes):
        logger.error("truncate not confirmed (use --yes in non-interactive runs)")
        return EXIT_FATAL
    if args.local:
        return _sync_local(cfg, args, logger)

    state = StateStore(cfg.state_file)
    sid = _spreadsheet_id(cfg, args)
    sheet = _sheet_info(cfg, args, client)
    lookup = _remote_inspector(cfg, client).get_columns(args.table)
    mapping = MappingStore(state).resolve(args.table, lookup.names, sheet.columns).mapping

    try:
        last = client.last_sync_time(args.table, sid)
    except (ApiError, OSError) as e:
        logger.debug(f"sync history unavailable: {e}")
        last = None
    logger.info(f"last sync of {args.table}: {last or 'never'}")

    request = SyncRequest(
        spreadsheet_id=sid,
        sheet_name=sheet.name,
        target_table=args.table,
        column_mapping=mapping,
        truncate_table=args.truncate,
        enable_incremental_sync=args.incremental,
    )
    error_log = ErrorLogBuffer(Path(cfg.log_dir))
    started = time.monotonic()
    with RowProgressBar(sheet.row_count or 0) as bar:
        presenter = ProgressPresenter(ms_per_row=state.ms_per_row, bar=bar)
        orchestrator = SyncOrchestrator(
            client,
            presenter,
            state=state,
            error_log=error_log,
            connect_timeout=cfg.timeouts.stream_connect,
        )
        result = orchestrator.run(request, estimated_rows=sheet.row_count or None)
    _finish_run(logger, args, presenter, result, time.monotonic() - started)
    return _exit_code(result, orchestrator.failure_kind)


def _sync_local(cfg: SyncConfig, args: argparse.Namespace, logger: Any) -> int:
    source = WorkbookSheetSource(args.local, prefix=cfg.sheet_prefix, sample_size=cfg.sample_size)
    sheet = _find_sheet(source.fetch_sheets(), args.sheet)
    if sheet.error:
        logger.error(f"sheet {sheet.name}: {sheet.error}")
        return EXIT_FATAL
    rows = source.read_rows(sheet.name)
    state = StateStore(cfg.state_file)
    error_log = ErrorLogBuffer(Path(cfg.log_dir))

    with _db_connection(cfg) as cur:
        lookup = SchemaInspector(db_schema_fetcher(cur), RetryPolicy(timeouts=(0.0,), delay=0.0)).get_columns(args.table)
        mapping = MappingStore(state).resolve(args.table, lookup.names, sheet.columns).mapping
        if not mapping:
            raise SyncEngineError("column mapping is empty; map at least one column")
        request = SyncRequest(
            spreadsheet_id=str(args.local),
            sheet_name=sheet.name,
            target_table=args.table,
            column_mapping=mapping,
            truncate_table=args.truncate,
            enable_incremental_sync=args.incremental,
        )
        started = time.monotonic()
        result_event: ResultEvent | None = None
        with RowProgressBar(len(rows)) as bar:
            presenter = ProgressPresenter(ms_per_row=state.ms_per_row, bar=bar)
            presenter.begin(len(rows))
            for event in SyncEngine(cur, batch_size=cfg.batch_size).run(request, rows):
                presenter.handle(event)
                if isinstance(event, ResultEvent):
                    result_event = event
        if result_event is None:
            raise SyncEngineError("sync result not received")
    elapsed = time.monotonic() - started

    result = SyncResult(result_event.success, result_event.message, dict(result_event.details))
    for detail in result.details.get("errorDetails") or []:
        error_log.append(
            ErrorRecord.create(sheet.name, args.table, int(detail.get("row", -1)), "ROW_ERROR", str(detail.get("message")))
        )
    error_log.flush()
    if result.success:
        state.set_ms_per_row(learned_ms_per_row(elapsed * 1000, result.inserted + result.updated, len(rows)))
        state.save()
    _finish_run(logger, args, presenter, result, elapsed)
    return _exit_code(result, None)


_COMMANDS = {
    "sheets": _cmd_sheets,
    "tables": _cmd_tables,
    "schema": _cmd_schema,
    "map": _cmd_map,
    "sync": _cmd_sync,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()
    # 빈 리스트는 그대로 사용 (pytest 인자가 섞이지 않도록 None 일 때만 sys.argv)
    if argv is None:
        argv = sys.argv[1:]
    try:
        args = _parse_args(argv)
    except SystemExit as e:
        return EXIT_FATAL if e.code else EXIT_SUCCESS

    _load_env_file(Path(".env"), override=True)
    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    client = SyncApiClient(cfg.base_url, cfg.token)
    try:
        return _COMMANDS[args.command](cfg, args, client, logger)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except SheetFetchError as e:
        logger.error(f"sheets: {e.message}")
        return EXIT_FATAL
    except SyncEngineError as e:
        logger.error(f"sync: {e}")
        return EXIT_FATAL
    except StateStoreError as e:
        logger.error(f"state: {e}")
        return EXIT_FATAL
    except (ApiError, OSError, psycopg2.Error) as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL
    finally:
        client.close()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
