# processors/gtfs/resolve.py
# -*- coding: utf-8 -*-
"""
Post-load pass that links records to the records they name.

For every entity type with references, each of the agency's records is
read, every referenced natural key is looked up in the same agency, and
the ids found are written back onto the record. A key with no match
leaves that reference unset and is only counted.

Finally the agency record receives the bounds, centre and last-updated
time of the import.
"""
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from common.core_utils import AgencyLogAdapter, log_import

from .bounds import Bounds, bounds_center
from .entity_definitions import AGENCY_ENTITY, EntityType, entity_types_by_name
from .store import FeedStore, RecordId

module_logger = logging.getLogger(__name__)

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


@dataclass
class ResolutionResult:
    """What one relationship pass did."""
    filename_base: str
    record_count: int = 0
    updated_count: int = 0
    unresolved: Counter = field(default_factory=Counter)


def _title(entity_type: EntityType) -> str:
    return entity_type.filename_base.replace("_", " ").title()


def resolve_entity_references(
    store: FeedStore,
    entity_type: EntityType,
    targets: Dict[str, EntityType],
    agency_key: str,
) -> ResolutionResult:
    """
    Read-match-write pass for one referencing entity type.

    Args:
        store: The store holding the agency's freshly loaded records.
        entity_type: The referencing entity type.
        targets: Descriptors by filename base, used to find reference targets.
        agency_key: Only this agency's records are read, matched and written.

    Returns:
        Counts of records seen, records updated and misses per reference.
    """
    result = ResolutionResult(entity_type.filename_base)
    lookups: Dict[Tuple[str, str, Any], Optional[RecordId]] = {}

    for record_id, record in store.iter_records(entity_type, agency_key):
        result.record_count += 1
        updates: Dict[str, Any] = {}
        for reference in entity_type.references:
            value = record.get(reference.source_field)
            if value is None or (reference.skip_empty and value == ""):
                continue
            lookup_key = (reference.target, reference.target_field, value)
            if lookup_key not in lookups:
                lookups[lookup_key] = store.find_id(
                    targets[reference.target], agency_key, reference.target_field, value
                )
            target_id = lookups[lookup_key]
            if target_id is None:
                result.unresolved[reference.name] += 1
            else:
                updates[reference.name] = target_id
        if updates:
            store.update_record(entity_type, record_id, updates)
            result.updated_count += 1

    return result


def finalize_agency(
    store: FeedStore,
    agency_entity: EntityType,
    agency_key: str,
    bounds: Bounds,
    now_ms: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Write bounds, centre and last-updated time onto the agency's agency records.

    The centre is None when no coordinates were imported.

    Returns:
        The fields that were written.
    """
    fields = {
        "agency_bounds": bounds.as_dict(),
        "agency_center": bounds_center(bounds),
        "date_last_updated": now_ms if now_ms is not None else int(time.time() * 1000),
    }
    updated = store.update_agency_records(agency_entity, agency_key, fields)
    module_logger.debug(f"Finalized {updated} agency records for {agency_key}")
    return fields


def resolve_relationships(
    store: FeedStore,
    entity_types: Sequence[EntityType],
    agency_key: str,
    bounds: Bounds,
    current_logger: Optional[LoggerLike] = None,
) -> List[ResolutionResult]:
    """
    Run every relationship pass for one agency, then finalise the agency record.

    Args:
        store: The store holding the agency's records.
        entity_types: The ordered entity descriptors of the import.
        agency_key: Agency whose records are linked.
        bounds: Bounds accumulated while loading the agency's files.
        current_logger: Optional logger; defaults to the module logger
            tagged with the agency key.

    Returns:
        One ResolutionResult per entity type that has references.
    """
    logger_to_use = current_logger if current_logger else AgencyLogAdapter(module_logger, agency_key)
    targets = entity_types_by_name(tuple(entity_types))
    log_import("Post Processing data", "info", logger_to_use)

    results: List[ResolutionResult] = []
    for entity_type in entity_types:
        if not entity_type.references:
            continue
        log_import(f"Post Processing - {_title(entity_type)}", "info", logger_to_use, overwrite=True)
        result = resolve_entity_references(store, entity_type, targets, agency_key)
        for reference_name, misses in result.unresolved.items():
            log_import(
                f"Post Processing - {_title(entity_type)} - {misses} records with no matching {reference_name}",
                "debug",
                logger_to_use,
            )
        results.append(result)

    agency_entity = targets.get(AGENCY_ENTITY)
    if agency_entity is not None:
        log_import("Post Processing - Agencies", "info", logger_to_use, overwrite=True)
        finalize_agency(store, agency_entity, agency_key, bounds)

    log_import("Post Processing - Completed", "info", logger_to_use)
    return results


def ensure_all_indexes(
    store: FeedStore,
    entity_types: Sequence[EntityType],
    current_logger: Optional[LoggerLike] = None,
) -> None:
    """Make sure every entity collection has its indexes. Safe to repeat."""
    logger_to_use = current_logger if current_logger else module_logger
    for entity_type in entity_types:
        store.ensure_indexes(entity_type)
    log_import(f"Indexes ensured on {len(entity_types)} collections", "debug", logger_to_use)
