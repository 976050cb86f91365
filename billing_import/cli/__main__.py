from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from billing_import.config.loader import ConfigError, load_apply_request, load_config
from billing_import.db.memory_store import InMemoryStore
from billing_import.db.postgres_store import PostgresStore, connect
from billing_import.db.store import DatabaseConnectError, ImportNotFoundError, LocalFileLoader, WriteBatchError
from billing_import.excel.reader import DecodeError
from billing_import.logging.init import log_summary, setup_logging
from billing_import.models.config_models import ImportConfig
from billing_import.services.pipeline import BillingImportService
from billing_import.services.progress import ProgressTracker
from billing_import.services.summary import render_apply_summary_line, render_preview_summary_line

"""CLI entrypoint.

    python -m billing_import.cli preview FILE... [--json]
    python -m billing_import.cli preview --import-id ID
    python -m billing_import.cli apply FILE --resolutions res.yml
    python -m billing_import.cli apply --import-id ID --resolutions res.yml

Connection settings come from .env / DATABASE_URL / PG* and fall back to the
database section of config/import.yml. With DISABLE_DB_CONNECT=1, or when the
connection fails during preview, the run uses an empty in-memory store (mock
mode). A failed connection is fatal for apply.
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values win over the existing environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="billing_import", description="Telecom billing file importer")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", default="config/import.yml", help="Path to import.yml")
    sub = p.add_subparsers(dest="command", required=True)

    preview = sub.add_parser("preview", help="Reconcile billing files against master data (read-only)")
    preview.add_argument("files", nargs="*", help="Billing files (xlsx/xls, carrier CSV or PDF)")
    preview.add_argument("--import-id", action="append", default=[], help="billing_imports id to read instead")
    preview.add_argument("--json", action="store_true", help="Print the preview payload as JSON")

    apply = sub.add_parser("apply", help="Create missing master data and expenses")
    apply.add_argument("file", nargs="?", help="Billing file")
    apply.add_argument("--import-id", help="billing_imports id to read instead (marked applied on success)")
    apply.add_argument("--resolutions", required=True, help="Resolutions YAML")

    args = p.parse_args(argv)
    if args.command == "preview" and not args.files and not args.import_id:
        p.error("preview needs FILE or --import-id")
    if args.command == "apply" and not args.file and args.import_id is None:
        p.error("apply needs FILE or --import-id")
    return args


def _print_json(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _run_preview(args: argparse.Namespace, cfg: ImportConfig, store: Any, logger) -> int:
    targets: list[tuple[Any, Any]] = [(path, LocalFileLoader()) for path in args.files]
    targets += [(import_id, store) for import_id in args.import_id]

    failed = 0
    with ProgressTracker(len(targets)) as tracker:
        for file_id, loader in targets:
            tracker.start_file(Path(str(file_id)))
            service = BillingImportService(loader, store, cfg)
            try:
                result = service.preview(file_id)
            except (DecodeError, ImportNotFoundError) as e:
                failed += 1
                logger.error(f"preview {file_id}: {e}")
                tracker.finish_file(success=False)
                continue
            finally:
                service.error_log.flush()
            tracker.finish_file(success=True)
            if args.json:
                _print_json(result.to_dict())
            log_summary(render_preview_summary_line(result)[len("SUMMARY "):])

    return EXIT_PARTIAL_FAILURE if failed else EXIT_SUCCESS_ALL


def _run_apply(args: argparse.Namespace, cfg: ImportConfig, store: Any, logger) -> int:
    try:
        request = load_apply_request(Path(args.resolutions))
    except ConfigError as e:
        logger.error(f"resolutions: {e}")
        return EXIT_FATAL

    if args.import_id is not None:
        file_id, loader, import_id = args.import_id, store, args.import_id
    else:
        file_id, loader, import_id = args.file, LocalFileLoader(), None

    service = BillingImportService(loader, store, cfg)
    try:
        result = service.apply(
            file_id,
            request.contract_resolutions,
            sim_card_actions=request.sim_card_actions,
            tariff_overrides=request.tariff_overrides,
            import_id=import_id,
        )
    except (DecodeError, ImportNotFoundError, WriteBatchError) as e:
        logger.error(f"apply {file_id}: {e}")
        return EXIT_FATAL
    finally:
        service.error_log.flush()

    if not result.ok:
        _print_json(result.to_dict())
    log_summary(render_apply_summary_line(str(file_id), result)[len("SUMMARY "):])
    return EXIT_SUCCESS_ALL if result.ok else EXIT_PARTIAL_FAILURE


def _run(args: argparse.Namespace, cfg: ImportConfig, store: Any, logger) -> int:
    if args.command == "preview":
        return _run_preview(args, cfg, store, logger)
    return _run_apply(args, cfg, store, logger)


def main(argv: list[str] | None = None) -> int:
    # [] must not fall back to sys.argv (pytest flags would leak in)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(Path(args.config))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    # DISABLE_DB_CONNECT=1 forces mock mode (tests, dry runs)
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        return _run(args, cfg, InMemoryStore(), logger)

    try:
        with connect(cfg.database) as cur:
            logger.info("mode=live")
            return _run(args, cfg, PostgresStore(cur, page_size=cfg.page_size), logger)
    except DatabaseConnectError as db_e:
        if args.command == "apply":
            # apply never falls back to mock mode
            logger.error(f"DB connection failed, apply aborted: {db_e}")
            return EXIT_FATAL
        logger.info(f"DB connection failed -> fallback to mock mode: {db_e}")
    return _run(args, cfg, InMemoryStore(), logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
