#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Command-line entry point for the GTFS importer (`gtfs-import`).
"""

import argparse
import logging
import sys
from typing import List, Optional, Sequence

import psycopg

from common.core_utils import DETAILED_LOG_FORMAT, setup_logging
from common.metrics import ImportMetrics, start_metrics_server
from config.config_loader import load_import_settings
from config.config_models import LOG_PREFIX_DEFAULT, ImportSettings

from .errors import GTFSImportError
from .main_pipeline import AgencyImportResult, run_gtfs_import
from .memory_store import MemoryFeedStore
from .postgres_store import PostgresFeedStore
from .store import FeedStore

module_logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gtfs-import",
        description="Import GTFS feeds for the configured agencies into the database.",
    )
    parser.add_argument(
        "--config-file",
        dest="config_file",
        default="config.yaml",
        help="Path to the YAML or JSON configuration file (default: config.yaml).",
    )
    parser.add_argument(
        "--skip-delete",
        action="store_true",
        help="Keep each agency's existing records instead of deleting them first.",
    )
    parser.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Carry on with the next agency when an agency import fails.",
    )
    parser.add_argument(
        "--download-dir",
        dest="download_dir",
        default=None,
        help="Scratch directory for downloaded and extracted feeds.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Import into an in-memory store; the database is not touched.",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level_str",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (default: INFO).",
    )
    parser.add_argument(
        "--log-file",
        dest="log_file_path",
        default=None,
        help="Also append log records to this file.",
    )
    parser.add_argument(
        "--metrics-port",
        dest="metrics_port",
        type=int,
        default=None,
        help="Serve Prometheus import metrics on this port while running.",
    )
    return parser


def configure_logging(args: argparse.Namespace, log_prefix: str) -> None:
    log_level = getattr(logging, args.log_level_str.upper(), logging.INFO)
    setup_logging(
        log_level=log_level,
        log_file=args.log_file_path,
        log_format_str=DETAILED_LOG_FORMAT if log_level == logging.DEBUG else None,
        log_prefix=log_prefix,
    )


def open_store(settings: ImportSettings, dry_run: bool) -> FeedStore:
    """The memory store for dry runs, the configured PostgreSQL store otherwise."""
    if dry_run:
        module_logger.info("Dry run: records are kept in memory only.")
        return MemoryFeedStore()
    pg = settings.pg
    module_logger.info(
        f"Target Database: dbname='{pg.database}', user='{pg.user}', host='{pg.host}'"
    )
    return PostgresFeedStore.connect(pg.as_db_params())


def format_summary(results: Sequence[AgencyImportResult]) -> List[str]:
    lines = []
    for result in results:
        line = f"{result.agency_key or '<no agency key>'}: {result.state.value}, {result.record_count} records"
        if result.error is not None:
            line += f" ({result.error})"
        lines.append(line)
    return lines


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse arguments, run the import and return the process exit status."""
    args = build_parser().parse_args(argv)
    configure_logging(args, LOG_PREFIX_DEFAULT)

    try:
        settings = load_import_settings(cli_args=args, config_file_path=args.config_file)
        if settings.log_prefix != LOG_PREFIX_DEFAULT:
            configure_logging(args, settings.log_prefix)
        if not settings.agencies:
            module_logger.error("No agencies configured. Nothing to import.")
            return 1

        metrics = ImportMetrics()
        if args.metrics_port:
            start_metrics_server(args.metrics_port, metrics)

        with open_store(settings, args.dry_run) as store:
            results = run_gtfs_import(settings, store, metrics=metrics)
    except (GTFSImportError, psycopg.Error) as e:
        module_logger.critical(f"GTFS import failed: {e}")
        return 1

    for line in format_summary(results):
        print(line)
    return 0 if all(result.succeeded for result in results) else 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
