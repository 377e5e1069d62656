#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Streams GTFS entity files into the FeedStore.

Each file is read row by row and handed on in chunks of CHUNK_SIZE
rows, so a file is never held in memory as a whole. Every row is
normalised, its point (if any) extends the agency bounds, and each
chunk is written to the store as one unordered bulk insert before the
next chunk is read.

A batch that is only partly written is logged and recorded on the
file's result; it does not stop the import. A malformed file does.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterator, List, Optional

from common.core_utils import log_import
from common.metrics import ImportMetrics

from .bounds import EMPTY_BOUNDS, Bounds, extend_bounds
from .entity_definitions import EntityType
from .errors import ParseError, PersistenceError
from .store import FeedStore
from .task import ImportTask
from .transform import normalize_record

module_logger = logging.getLogger(__name__)

CHUNK_SIZE = 10000

STATUS_IMPORTED = "imported"
STATUS_MISSING = "missing"
STATUS_EXCLUDED = "excluded"


@dataclass
class FileImportResult:
    """Outcome of importing one entity file."""
    filename_base: str
    status: str = STATUS_IMPORTED
    record_count: int = 0
    batch_count: int = 0
    failures: List[PersistenceError] = field(default_factory=list)
    bounds: Bounds = EMPTY_BOUNDS

    @property
    def failed_record_count(self) -> int:
        return sum(len(failure.errors) for failure in self.failures)


def write_batch(
    store: FeedStore, entity_type: EntityType, records: List[Dict[str, Any]]
) -> int:
    """
    Persist one batch in a single unordered bulk operation.

    Returns:
        Number of records written.

    Raises:
        PersistenceError: If part of the batch was rejected; the rest is
            written regardless.
    """
    if not records:
        return 0
    return store.insert_many(entity_type, records)


def iter_raw_chunks(
    stream: BinaryIO, filename: str, chunk_size: int = CHUNK_SIZE
) -> Iterator[List[Dict[str, Any]]]:
    """
    Yield the rows of a delimited file with a header row, `chunk_size` at a time.

    Every value is read as text and an empty cell comes back as ''. Every
    row must have exactly as many fields as the header; blank lines are
    skipped.

    Raises:
        ParseError: If the file cannot be parsed, or a row has too few or
            too many fields.
    """
    text = io.TextIOWrapper(stream, encoding="utf-8-sig", newline="")
    try:
        reader = csv.reader(text, skipinitialspace=True, strict=True)
        header = next(reader, None)
        if header is None:
            module_logger.debug(f"{filename} is empty.")
            return
        header = [column.strip() for column in header]

        batch: List[Dict[str, Any]] = []
        for row in reader:
            if not row:
                continue
            if len(row) != len(header):
                raise ParseError(
                    f"Unable to parse {filename}: line {reader.line_num} has "
                    f"{len(row)} fields, expected {len(header)}",
                    filename,
                )
            batch.append(dict(zip(header, row)))
            if len(batch) >= chunk_size:
                yield batch
                batch = []
        if batch:
            yield batch
    except (csv.Error, UnicodeDecodeError) as e:
        raise ParseError(f"Unable to parse {filename}: {e}", filename) from e
    finally:
        text.detach()


def import_entity_stream(
    stream: BinaryIO,
    entity_type: EntityType,
    task: ImportTask,
    store: FeedStore,
    bounds: Bounds = EMPTY_BOUNDS,
    chunk_size: int = CHUNK_SIZE,
    metrics: Optional[ImportMetrics] = None,
) -> FileImportResult:
    """
    Import one entity file from a readable byte stream.

    Args:
        stream: The file's bytes, header row first.
        entity_type: Descriptor of the file being imported.
        task: The agency import context.
        store: Destination store.
        bounds: Agency bounds accumulated by the files imported so far.
        chunk_size: Records per bulk write.
        metrics: Optional metrics collector.

    Returns:
        The file's FileImportResult, whose `bounds` includes this file's points.

    Raises:
        ParseError: If the file is malformed. Batches already written stay
            written.
    """
    filename = entity_type.filename
    agency_logger = task.logger_for(module_logger)
    result = FileImportResult(entity_type.filename_base, bounds=bounds)

    def flush(batch: List[Dict[str, Any]]) -> None:
        try:
            written = write_batch(store, entity_type, batch)
        except PersistenceError as e:
            written = e.inserted_count
            e.agency_key = task.agency_key
            result.failures.append(e)
            log_import(
                f"Importing - {filename} - batch {result.batch_count + 1} partly failed: {e}",
                "error",
                agency_logger,
            )
            if metrics:
                metrics.record_batch_failure(entity_type.filename_base)
        result.record_count += written
        result.batch_count += 1
        if metrics:
            metrics.record_batch(entity_type.filename_base, written)
        log_import(
            f"Importing - {filename} - {result.record_count} lines imported",
            "info",
            agency_logger,
            overwrite=True,
        )

    try:
        for raw_records in iter_raw_chunks(stream, filename, chunk_size):
            batch: List[Dict[str, Any]] = []
            for raw_record in raw_records:
                record = normalize_record(raw_record, task.agency_key, task.proj)
                if "loc" in record:
                    result.bounds = extend_bounds(result.bounds, record["loc"])
                batch.append(record)
            flush(batch)
    except ParseError as e:
        e.agency_key = task.agency_key
        log_import(f"Importing - {filename} - {e}", "error", agency_logger)
        raise

    if result.batch_count == 0:
        log_import(f"Importing - {filename} - 0 lines imported", "info", agency_logger)
    if result.failures:
        log_import(
            f"Importing - {filename} - {result.failed_record_count} records could not be written "
            f"in {len(result.failures)} batches",
            "warning",
            agency_logger,
        )
    return result


def import_entity_file(
    file_path: Path,
    entity_type: EntityType,
    task: ImportTask,
    store: FeedStore,
    bounds: Bounds = EMPTY_BOUNDS,
    chunk_size: int = CHUNK_SIZE,
    metrics: Optional[ImportMetrics] = None,
) -> FileImportResult:
    """Open `file_path` and import it with import_entity_stream."""
    log_import(f"Importing - {entity_type.filename}", "info", task.logger_for(module_logger))
    with open(file_path, "rb") as stream:
        return import_entity_stream(
            stream, entity_type, task, store, bounds, chunk_size, metrics
        )
