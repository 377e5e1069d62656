# processors/gtfs/store.py
# -*- coding: utf-8 -*-
"""
FeedStore - Abstract base class for the persistent store of GTFS records.

The import pipeline only needs a handful of operations per entity type:
unordered bulk insert, deletion by agency key, lookup by agency key plus
natural key, update by record id, and index creation. Records are plain
dictionaries; ids are opaque values chosen by the store.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Hashable, Iterator, List, Optional, Tuple

from .entity_definitions import EntityType

RecordId = Hashable


class FeedStore(ABC):
    """Storage operations used by the import pipeline."""

    @abstractmethod
    def insert_many(self, entity_type: EntityType, records: List[Dict[str, Any]]) -> int:
        """
        Insert `records` in one unordered bulk operation.

        A record that cannot be written does not stop the others.

        Returns:
            Number of records written.

        Raises:
            PersistenceError: If any record was rejected. Its `inserted_count`
                holds the number of records that were written.
        """

    @abstractmethod
    def delete_agency(self, entity_type: EntityType, agency_key: str) -> int:
        """Delete every record of `entity_type` for `agency_key`; return the count."""

    @abstractmethod
    def iter_records(
        self, entity_type: EntityType, agency_key: str
    ) -> Iterator[Tuple[RecordId, Dict[str, Any]]]:
        """Yield (id, record) for every record of `entity_type` for `agency_key`."""

    @abstractmethod
    def find_id(
        self,
        entity_type: EntityType,
        agency_key: str,
        field_name: str,
        value: Any,
    ) -> Optional[RecordId]:
        """Id of the first record whose `field_name` equals `value`, or None."""

    @abstractmethod
    def update_record(
        self, entity_type: EntityType, record_id: RecordId, fields: Dict[str, Any]
    ) -> None:
        """Set `fields` on the record with id `record_id`."""

    @abstractmethod
    def update_agency_records(
        self, entity_type: EntityType, agency_key: str, fields: Dict[str, Any]
    ) -> int:
        """Set `fields` on every record of `entity_type` for `agency_key`."""

    @abstractmethod
    def ensure_indexes(self, entity_type: EntityType) -> None:
        """Create the agency key and natural-key indexes if they are missing."""

    def close(self) -> None:
        """Release any connection held by the store."""

    def __enter__(self) -> "FeedStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
