#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Main orchestrator for the GTFS (General Transit Feed Specification) import.

One agency is imported at a time, through these states:

    Pending -> Downloading (optional) -> Extracting -> Deleting (optional)
            -> Loading -> Resolving -> Indexing -> Cleaning up -> Done

`Failed` is reachable from every state. The agency's scratch directory is
removed whether the import succeeded or not.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from common.core_utils import log_import
from common.file_utils import cleanup_directory
from common.metrics import ImportMetrics
from config.config_models import AgencyConfig, ImportSettings

from .bounds import EMPTY_BOUNDS, Bounds
from .download import fetch_source, prepare_feed_dir
from .entity_definitions import GTFS_ENTITY_TYPES, EntityType, validate_entity_order
from .errors import GTFSImportError
from .load import (
    STATUS_EXCLUDED,
    STATUS_MISSING,
    FileImportResult,
    import_entity_file,
)
from .resolve import ResolutionResult, ensure_all_indexes, resolve_relationships
from .store import FeedStore
from .task import ImportTask

module_logger = logging.getLogger(__name__)


class ImportState(str, Enum):
    PENDING = "pending"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    DELETING = "deleting"
    LOADING = "loading"
    RESOLVING = "resolving"
    INDEXING = "indexing"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


@dataclass
class AgencyImportResult:
    """State and outcome of one agency import."""
    agency_key: Optional[str]
    state: ImportState = ImportState.PENDING
    history: List[ImportState] = field(default_factory=lambda: [ImportState.PENDING])
    files: List[FileImportResult] = field(default_factory=list)
    resolutions: List[ResolutionResult] = field(default_factory=list)
    bounds: Bounds = EMPTY_BOUNDS
    error: Optional[Exception] = None

    def transition(self, state: ImportState) -> None:
        self.state = state
        self.history.append(state)

    def fail(self, error: Exception) -> None:
        self.error = error
        self.transition(ImportState.FAILED)

    @property
    def succeeded(self) -> bool:
        return self.state == ImportState.DONE

    @property
    def record_count(self) -> int:
        return sum(file_result.record_count for file_result in self.files)


def _pluralize(word: str, count: int, plural: Optional[str] = None) -> str:
    if count == 1:
        return word
    return plural if plural else f"{word}s"


def remove_agency_data(
    store: FeedStore, entity_types: Sequence[EntityType], task: ImportTask
) -> int:
    """Delete every record stored for the task's agency key. Returns the count."""
    log_import(f"Deleting old data for {task.agency_key}", "info", task.logger)
    removed = 0
    for entity_type in entity_types:
        removed += store.delete_agency(entity_type, task.agency_key)
    log_import(f"Deleted {removed} old {_pluralize('record', removed)}", "debug", task.logger)
    return removed


def import_entity_files(
    task: ImportTask,
    store: FeedStore,
    entity_types: Sequence[EntityType],
    metrics: Optional[ImportMetrics] = None,
) -> Tuple[List[FileImportResult], Bounds]:
    """
    Import the agency's entity files one after another, in `entity_types` order.

    Excluded and absent files are recorded with their status and skipped.
    Bounds are carried from each file's result into the next file.

    Returns:
        The per-file results and the agency bounds after the last file.

    Raises:
        ParseError: If a file is malformed; the remaining files are not read.
    """
    results: List[FileImportResult] = []
    bounds = EMPTY_BOUNDS
    for entity_type in entity_types:
        filename = entity_type.filename
        if task.is_excluded(entity_type.filename_base):
            log_import(f"Skipping - {filename}", "info", task.logger)
            results.append(FileImportResult(entity_type.filename_base, STATUS_EXCLUDED, bounds=bounds))
            continue

        file_path: Path = task.feed_dir / filename
        if not file_path.is_file():
            if entity_type.nonstandard:
                log_import(f"Importing - {filename} - No file found", "debug", task.logger)
            else:
                log_import(f"Importing - {filename} - No file found", "info", task.logger)
            results.append(FileImportResult(entity_type.filename_base, STATUS_MISSING, bounds=bounds))
            continue

        file_result = import_entity_file(
            file_path, entity_type, task, store, bounds=bounds, metrics=metrics
        )
        bounds = file_result.bounds
        results.append(file_result)
    return results, bounds


def run_agency_import(
    agency: AgencyConfig,
    settings: ImportSettings,
    store: FeedStore,
    entity_types: Sequence[EntityType] = GTFS_ENTITY_TYPES,
    metrics: Optional[ImportMetrics] = None,
    ensure_indexes: bool = True,
    result: Optional[AgencyImportResult] = None,
) -> AgencyImportResult:
    """
    Import one agency's feed and link its records.

    Args:
        agency: The agency's configuration entry.
        settings: Global import settings.
        store: Destination store.
        entity_types: Ordered entity descriptors.
        metrics: Optional metrics collector.
        ensure_indexes: Whether to ensure store indexes after resolution.
        result: Optional result object to update in place; the caller keeps
            the failed state this way even when the error propagates.

    Returns:
        The agency's AgencyImportResult in state DONE.

    Raises:
        GTFSImportError: Any unrecoverable error, after the result has been
            moved to FAILED and the scratch directory has been removed.
    """
    if result is None:
        result = AgencyImportResult(agency.agency_key)

    try:
        task = ImportTask.from_config(agency, settings, logger=module_logger)
    except GTFSImportError as e:
        result.fail(e)
        log_import(f"Agency import failed: {e}", "error", module_logger, settings)
        raise

    started = time.monotonic()
    log_import(f"Starting import of {task.agency_key}", "info", task.logger, settings)
    cleanup_directory(task.download_dir, settings, ensure_dir_exists_after=True, current_logger=task.logger)

    try:
        if task.agency_url:
            result.transition(ImportState.DOWNLOADING)
        source_path = fetch_source(task)

        result.transition(ImportState.EXTRACTING)
        prepare_feed_dir(task, source_path)

        if task.skip_delete:
            log_import("Skipping deletion of existing data", "info", task.logger, settings)
        else:
            result.transition(ImportState.DELETING)
            remove_agency_data(store, entity_types, task)

        result.transition(ImportState.LOADING)
        result.files, result.bounds = import_entity_files(task, store, entity_types, metrics)

        result.transition(ImportState.RESOLVING)
        result.resolutions = resolve_relationships(
            store, entity_types, task.agency_key, result.bounds
        )

        if ensure_indexes:
            result.transition(ImportState.INDEXING)
            ensure_all_indexes(store, entity_types)
    except Exception as e:
        result.fail(e)
        log_import(f"Agency import failed: {e}", "error", task.logger, settings)
        raise
    finally:
        if result.state != ImportState.FAILED:
            result.transition(ImportState.CLEANING_UP)
        cleanup_directory(task.download_dir, settings, current_logger=task.logger)
        if metrics:
            status = ImportState.FAILED.value if result.error else ImportState.DONE.value
            metrics.record_agency(task.agency_key, status, time.monotonic() - started)

    result.transition(ImportState.DONE)
    log_import(
        f"Completed import of {task.agency_key}: {result.record_count} "
        f"{_pluralize('record', result.record_count)}",
        "success",
        task.logger,
        settings,
    )
    return result


def run_gtfs_import(
    settings: ImportSettings,
    store: FeedStore,
    entity_types: Sequence[EntityType] = GTFS_ENTITY_TYPES,
    metrics: Optional[ImportMetrics] = None,
) -> List[AgencyImportResult]:
    """
    Import every configured agency, strictly one after another.

    Indexes are ensured once, after the first agency that imports
    successfully. When an agency fails, the run stops with that agency's
    error unless `settings.continue_on_error` is set, in which case the
    failure is logged and the next agency is imported.

    Returns:
        One AgencyImportResult per agency that was attempted.

    Raises:
        ValueError: If `entity_types` is not in a valid import order.
        GTFSImportError: The first agency failure, unless continuing on error.
    """
    validate_entity_order(tuple(entity_types))
    agencies = settings.agencies
    log_import(
        f"Starting GTFS import for {len(agencies)} {_pluralize('agency', len(agencies), 'agencies')}",
        "info",
        module_logger,
        settings,
    )

    results: List[AgencyImportResult] = []
    indexes_ensured = False
    for agency in agencies:
        result = AgencyImportResult(agency.agency_key)
        results.append(result)
        try:
            run_agency_import(
                agency,
                settings,
                store,
                entity_types,
                metrics=metrics,
                ensure_indexes=not indexes_ensured,
                result=result,
            )
        except Exception as e:
            if not settings.continue_on_error:
                raise
            log_import(
                f"{agency.agency_key or '<no agency key>'}: import failed, continuing with next agency: {e}",
                "warning",
                module_logger,
                settings,
            )
            continue
        indexes_ensured = True

    failed = [result for result in results if not result.succeeded]
    level = "warning" if failed else "success"
    log_import(
        f"Completed GTFS import for {len(results)} {_pluralize('agency', len(results), 'agencies')}"
        f" ({len(failed)} failed)",
        level,
        module_logger,
        settings,
    )
    return results
