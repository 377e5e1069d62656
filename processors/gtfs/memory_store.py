# processors/gtfs/memory_store.py
# -*- coding: utf-8 -*-
"""
Dictionary-backed FeedStore, used for dry runs and by the test-suite.
"""
import copy
import itertools
import logging
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from .entity_definitions import EntityType
from .errors import PersistenceError
from .store import FeedStore, RecordId

module_logger = logging.getLogger(__name__)


class MemoryFeedStore(FeedStore):
    """Keeps records per table name in insertion order, keyed by an integer id."""

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self.indexes: Dict[str, Set[Tuple[str, ...]]] = {}
        self._ids = itertools.count(1)

    def _table(self, entity_type: EntityType) -> Dict[int, Dict[str, Any]]:
        return self.tables.setdefault(entity_type.table_name, {})

    def insert_many(self, entity_type: EntityType, records: List[Dict[str, Any]]) -> int:
        table = self._table(entity_type)
        inserted = 0
        errors: List[Dict[str, Any]] = []
        for index, record in enumerate(records):
            if not record.get("agency_key"):
                errors.append({"index": index, "error": "agency_key is required"})
                continue
            table[next(self._ids)] = copy.deepcopy(record)
            inserted += 1
        if errors:
            raise PersistenceError(
                f"{len(errors)} of {len(records)} records rejected by {entity_type.table_name}",
                inserted_count=inserted,
                errors=errors,
            )
        return inserted

    def delete_agency(self, entity_type: EntityType, agency_key: str) -> int:
        table = self._table(entity_type)
        doomed = [rid for rid, record in table.items() if record.get("agency_key") == agency_key]
        for rid in doomed:
            del table[rid]
        module_logger.debug(
            f"Deleted {len(doomed)} records from {entity_type.table_name} for agency {agency_key}"
        )
        return len(doomed)

    def iter_records(
        self, entity_type: EntityType, agency_key: str
    ) -> Iterator[Tuple[RecordId, Dict[str, Any]]]:
        # Snapshot so callers may update records while iterating.
        matches = [
            (rid, copy.deepcopy(record))
            for rid, record in self._table(entity_type).items()
            if record.get("agency_key") == agency_key
        ]
        yield from matches

    def find_id(
        self,
        entity_type: EntityType,
        agency_key: str,
        field_name: str,
        value: Any,
    ) -> Optional[RecordId]:
        for rid, record in self._table(entity_type).items():
            if record.get("agency_key") == agency_key and record.get(field_name) == value:
                return rid
        return None

    def update_record(
        self, entity_type: EntityType, record_id: RecordId, fields: Dict[str, Any]
    ) -> None:
        self._table(entity_type)[record_id].update(copy.deepcopy(fields))

    def update_agency_records(
        self, entity_type: EntityType, agency_key: str, fields: Dict[str, Any]
    ) -> int:
        updated = 0
        for record in self._table(entity_type).values():
            if record.get("agency_key") == agency_key:
                record.update(copy.deepcopy(fields))
                updated += 1
        return updated

    def ensure_indexes(self, entity_type: EntityType) -> None:
        wanted = {("agency_key",)} | {(name,) for name in entity_type.index_fields}
        self.indexes.setdefault(entity_type.table_name, set()).update(wanted)

    def get(self, entity_type: EntityType, record_id: RecordId) -> Dict[str, Any]:
        """Copy of one stored record."""
        return copy.deepcopy(self._table(entity_type)[record_id])

    def records(self, entity_type: EntityType, agency_key: Optional[str] = None) -> List[Dict[str, Any]]:
        """Copies of the stored records, optionally for one agency only."""
        return [
            copy.deepcopy(record)
            for record in self._table(entity_type).values()
            if agency_key is None or record.get("agency_key") == agency_key
        ]
