from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.connection import db_connection
from ..excel.reader import DecodeError
from ..logging.init import log_summary, setup_logging
from ..models.config_models import ImporterConfig
from ..models.field_schema import RiskType
from ..models.import_result import ImportAction, LinkTarget, LinkType
from ..services.orchestrator import ProcessingError, RiskImportService
from ..services.summary import render_duplicate_line, render_summary_line, render_validation_line
from ..services.validation import auto_mapping

"""CLI entrypoint.

    risk-importer import FILE [--risk-type project|vendor] [--tenant T]
                              [--map "Column=field" ...] [--link-type/--link-id]
                              [--on-duplicate create|overwrite|skip]
                              [--dry-run] [--inspect-data]
    risk-importer template OUT [--risk-type ...]
    risk-importer fields [--risk-type ...]

Exit codes:
    0  every row validated and imported
    2  some rows failed validation or import
    1  fatal (config, input file, tenant, database, transaction)
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

TENANT_ENV = "RISK_IMPORTER_TENANT"


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True lets .env values replace variables already exported, so the
    PostgreSQL settings in .env always win.
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="risk-importer", description="Bulk CSV/Excel risk importer")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    risk_types = [rt.value for rt in RiskType]

    imp = sub.add_parser("import", help="Validate and import a CSV/XLSX/XLS file")
    imp.add_argument("file", type=Path)
    imp.add_argument("--risk-type", choices=risk_types, default=None)
    imp.add_argument("--tenant", default=None, help=f"Tenant schema (default: ${TENANT_ENV})")
    imp.add_argument(
        "--map",
        action="append",
        default=[],
        metavar="COLUMN=FIELD",
        help="Map a source column to a field key; repeatable. Without it headers are matched by label or key",
    )
    imp.add_argument("--link-type", choices=[lt.value for lt in LinkType], default=None)
    imp.add_argument("--link-id", type=int, default=None)
    imp.add_argument(
        "--on-duplicate",
        choices=[a.value for a in ImportAction],
        default=None,
        help="Action for rows matching an existing risk (default: config default_duplicate_action)",
    )
    imp.add_argument("--dry-run", action="store_true", help="Decode and validate only")
    imp.add_argument("--inspect-data", action="store_true", help="Print headers & first rows then exit")

    tpl = sub.add_parser("template", help="Write a blank import template (.csv or .xlsx)")
    tpl.add_argument("out", type=Path)
    tpl.add_argument("--risk-type", choices=risk_types, default=None)

    fld = sub.add_parser("fields", help="Print the field catalogue as JSON")
    fld.add_argument("--risk-type", choices=risk_types, default=None)
    return p.parse_args(argv)


def _resolve_config(path: Path | None) -> ImporterConfig:
    # An explicit --config must exist; the default path is optional
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return ImporterConfig()


def _parse_map_args(entries: list[str]) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for entry in entries:
        source, sep, target = entry.rpartition("=")
        if not sep or not source.strip() or not target.strip():
            raise ValueError(f"invalid --map value {entry!r}, expected COLUMN=FIELD")
        pairs.append((source.strip(), target.strip()))
    return pairs


def _inspect_data(service: RiskImportService, args: argparse.Namespace) -> int:
    decoded = service.decode(args.file.read_bytes(), args.file.name)
    print(f"FILE: {args.file.name} rows={decoded.row_count}")
    print(f"  columns={decoded.columns}")
    for row in decoded.preview:
        print(f"  row {row.row_index}: {json.dumps(row.data, ensure_ascii=False)}")
    return EXIT_SUCCESS_ALL


def _run_import(service: RiskImportService, args: argparse.Namespace, logger: logging.Logger) -> int:
    risk_type = service.resolve_risk_type(args.risk_type)

    try:
        decoded = service.decode(args.file.read_bytes(), args.file.name)
    except OSError as e:
        logger.error(f"input: cannot read {args.file}: {e}")
        return EXIT_FATAL
    except DecodeError as e:
        logger.error(f"input: {e}")
        return EXIT_FATAL

    try:
        mapping = _parse_map_args(args.map) if args.map else auto_mapping(decoded.columns, risk_type)
    except ValueError as e:
        logger.error(f"input: {e}")
        return EXIT_FATAL
    if not mapping:
        logger.error(f"input: no column of {args.file.name} matches a {risk_type.value} risk field")
        return EXIT_FATAL
    logger.info("mapping " + ", ".join(f"{s!r}->{t}" for s, t in mapping))

    validation = service.validate(decoded.rows, mapping, risk_type)
    for row in validation.results:
        if not row.is_valid:
            logger.warning(f"row {row.row_index}: {'; '.join(row.errors)}")
    log_summary(render_validation_line(validation.summary).removeprefix("SUMMARY "))

    if args.dry_run:
        return EXIT_PARTIAL_FAILURE if validation.summary.invalid else EXIT_SUCCESS_ALL

    tenant = args.tenant or os.getenv(TENANT_ENV)
    if not tenant:
        logger.error(f"tenant: pass --tenant or set {TENANT_ENV}")
        return EXIT_FATAL

    link_to = None
    if args.link_type is not None or args.link_id is not None:
        if args.link_type is None or args.link_id is None:
            logger.error("input: --link-type and --link-id must be given together")
            return EXIT_FATAL
        link_to = LinkTarget(type=LinkType(args.link_type), id=args.link_id)

    on_duplicate = ImportAction.parse(args.on_duplicate or service.config.default_duplicate_action)

    try:
        with db_connection(service.config.database) as conn:
            service.connection = conn
            dup = service.check_duplicates(validation.results, risk_type, tenant)
            log_summary(render_duplicate_line(dup.summary).removeprefix("SUMMARY "))
            actions = {idx: on_duplicate for idx in dup.duplicate_row_indexes()}
            result = service.import_rows(validation.results, actions, risk_type, link_to, tenant)
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    finally:
        service.connection = None

    for outcome in result.results:
        if outcome.error:
            logger.warning(f"row {outcome.row_index}: {outcome.error}")

    summary_line = render_summary_line(result.summary)
    # log_summary adds the "SUMMARY " prefix itself
    log_summary(summary_line.removeprefix("SUMMARY "))

    if result.summary.errors > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _write_template(service: RiskImportService, args: argparse.Namespace, logger: logging.Logger) -> int:
    fmt = "xlsx" if args.out.suffix.lower() == ".xlsx" else "csv"
    template = service.template(args.risk_type, fmt)
    try:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_bytes(template.content)
    except OSError as e:
        logger.error(f"template: cannot write {args.out}: {e}")
        return EXIT_FATAL
    logger.info(f"template written: {args.out} ({template.content_type})")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # Initialize logging system with labeled prefixes
    logger = setup_logging()

    # Only read sys.argv when argv is None; main([]) must not pick up pytest's own arguments
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        for h in logger.handlers:
            h.setLevel("DEBUG")
        logger.setLevel("DEBUG")
        logger.debug("debug mode enabled")

    try:
        cfg = _resolve_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    service = RiskImportService(cfg)

    if args.command == "fields":
        print(json.dumps(service.fields(args.risk_type), indent=2, ensure_ascii=False))
        return EXIT_SUCCESS_ALL

    if args.command == "template":
        return _write_template(service, args, logger)

    if args.inspect_data:
        try:
            return _inspect_data(service, args)
        except (OSError, DecodeError) as e:
            logger.error(f"inspect: {e}")
            return EXIT_FATAL

    return _run_import(service, args, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
