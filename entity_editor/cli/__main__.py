from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ..config.loader import ConfigError, load_config
from ..errors import EditorError, SchemaNotFoundError
from ..excel.reader import TemplateFormatError, parse_import_sheet, read_upload
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.config_models import EditorConfig, ImportSettings, TemplateConfig
from ..models.schema import EntitySchema, RegionContext
from ..persistence.memory import InMemoryEntityStore
from ..persistence.postgres import PostgresEntityStore
from ..persistence.protocols import InsertPersistence
from ..persistence.schema_file import YamlSchemaProvider
from ..services.import_pipeline import BulkImportService
from ..services.summary import render_summary_line

"""CLI entrypoint.

Subcommands:

- ``template ENTITY [--simple | --sample] [--out PATH]``: write a workbook
- ``import ENTITY FILE --reason TEXT [--dry-run] [--error-report PATH]``
- ``inspect FILE``: print the parsed labels and first rows of an upload

Exit codes: 0 success, 2 partial failure (any invalid or rejected row),
1 fatal (config, schema, file format, permission or reason problems).

Database resolution for ``import``: ``DATABASE_URL`` / ``PGDSN``, then the
individual ``PG*`` variables, then the ``database`` section of the config.
``.env`` is loaded first and overrides the process environment. When the
database is unreachable, or ``DISABLE_DB_CONNECT=1``, rows go to an
in-memory store (mock mode) and are discarded at exit.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

DEFAULT_CONFIG = Path("config/editor.yml")


@contextmanager
def _db_connection(cfg: EditorConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Yield a cursor on an autocommit connection.

    The store brackets each operation with its own BEGIN/COMMIT, so the
    connection must not open implicit transactions.
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if not dsn:
        host = os.getenv("PGHOST", db_cfg.host or "localhost")
        port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
        user = os.getenv("PGUSER", db_cfg.user or "postgres")
        password = os.getenv("PGPASSWORD", db_cfg.password or "")
        database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    conn = psycopg2.connect(dsn)
    try:
        conn.autocommit = True
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values take precedence over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="entity-editor", description="Schema-driven entity editor tools")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="Path to editor.yml")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    t = sub.add_parser("template", help="Write an upload template workbook")
    t.add_argument("entity", help="Entity id")
    kind = t.add_mutually_exclusive_group()
    kind.add_argument("--simple", action="store_true", help="Header-only template with every column")
    kind.add_argument("--sample", action="store_true", help="Template with filled example rows")
    t.add_argument("--out", type=Path, default=None, help="Output file or directory (default: cwd)")

    i = sub.add_parser("import", help="Validate and insert rows from a filled template")
    i.add_argument("entity", help="Entity id")
    i.add_argument("file", type=Path, help="Filled .xlsx template")
    i.add_argument("--reason", required=True, help="Reason recorded with every inserted row")
    i.add_argument("--dry-run", action="store_true", help="Validate only; insert nothing")
    i.add_argument("--error-report", type=Path, default=None, help="Where to write the error report")

    s = sub.add_parser("inspect", help="Print parsed labels and first rows of an upload")
    s.add_argument("file", type=Path, help=".xlsx file")
    return p.parse_args(argv)


def _inspect(path: Path, config_path: Path, logger: logging.Logger) -> int:
    """Parse an upload without touching the database.

    Reading settings come from the config file when one exists, otherwise
    from the built-in defaults.
    """
    keep_na_strings = ImportSettings().keep_na_strings
    required_marker = TemplateConfig().required_marker
    if config_path.exists():
        try:
            cfg = load_config(config_path)
        except ConfigError as e:
            logger.error(f"config: {e}")
            return EXIT_FATAL
        keep_na_strings = cfg.imports.keep_na_strings
        required_marker = cfg.template.required_marker
    try:
        sheet_name, df = read_upload(path, keep_na_strings)
        sheet = parse_import_sheet(df, sheet_name, required_marker)
    except TemplateFormatError as e:
        logger.error(f"inspect: {e}")
        return EXIT_FATAL
    print(f"FILE: {path.name}")
    print(f"  SHEET: {sheet.sheet_name} labels={sheet.labels} data_rows={len(sheet.rows)}")
    for row in sheet.rows[:3]:
        safe = {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in row.values.items()}
        print(f"    row {row.row_number}: {safe}")
    return EXIT_SUCCESS_ALL


def _mock_store(provider: YamlSchemaProvider) -> InMemoryEntityStore:
    store = InMemoryEntityStore(actor=os.getenv("USER", "system"))
    for schema in provider.schemas():
        store.register_schema(schema, provider.regions_for(schema.entity_id))
    return store


def _write_template(service: BulkImportService, args: argparse.Namespace, logger: logging.Logger) -> int:
    kind = "simple" if args.simple else "sample" if args.sample else "template"
    filename, content = service.generate_template(kind)
    out: Path = args.out or Path(".")
    target = out / filename if out.is_dir() or out.suffix.lower() != ".xlsx" else out
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)
    logger.info(f"template written: {target}")
    return EXIT_SUCCESS_ALL


def _run_import(
    schema: EntitySchema,
    store: InsertPersistence,
    cfg: EditorConfig,
    args: argparse.Namespace,
    error_log: ErrorLogBuffer,
    logger: logging.Logger,
) -> int:
    service = BulkImportService(schema, store, cfg, error_log)
    try:
        result = service.run(args.file, args.reason, dry_run=args.dry_run)
    except TemplateFormatError as e:
        logger.error(f"file: {e}")
        return EXIT_FATAL
    except EditorError as e:
        logger.error(f"import: {e}")
        return EXIT_FATAL

    if result.outcomes:
        report = service.write_error_report(result.outcomes, args.error_report or service.default_report_path())
        if report is not None:
            logger.warning(f"{result.invalid_rows} invalid row(s); error report: {report}")
    summary_line = render_summary_line(result)
    log_summary(summary_line[len("SUMMARY "):])
    return EXIT_PARTIAL_FAILURE if result.has_failures else EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()
    # Only read sys.argv when argv is None; an explicit [] must stay empty
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        setup_logging(debug=True)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)

    if args.command == "inspect":
        return _inspect(args.file, args.config, logger)

    try:
        cfg = load_config(args.config)
        provider = YamlSchemaProvider(Path(cfg.schema_file))
        schema = provider.fetch_schema(args.entity, RegionContext(cfg.country, cfg.business_unit))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except SchemaNotFoundError as e:
        logger.error(f"schema: {e}")
        return EXIT_FATAL

    if args.command == "template":
        return _write_template(BulkImportService(schema, _mock_store(provider), cfg), args, logger)

    error_log = ErrorLogBuffer()
    try:
        if os.getenv("DISABLE_DB_CONNECT") == "1":
            logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
            logger.info("mode=mock")
            return _run_import(schema, _mock_store(provider), cfg, args, error_log, logger)
        try:
            with _db_connection(cfg) as cur:
                logger.info("mode=live")
                store = PostgresEntityStore(cur, cfg.database.tables, actor=os.getenv("USER", "system"))
                return _run_import(schema, store, cfg, args, error_log, logger)
        except psycopg2.OperationalError as db_e:
            logger.info(f"DB connection failed -> fallback to mock mode: {db_e}")
            logger.info("mode=mock")
            return _run_import(schema, _mock_store(provider), cfg, args, error_log, logger)
    finally:
        path = error_log.flush()
        if path is not None:
            logger.info(f"error log: {path}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
