# processors/gtfs/entity_definitions.py
# -*- coding: utf-8 -*-
"""
Static definitions of the GTFS entity files the importer knows about.

`GTFS_ENTITY_TYPES` is the import order: a file never refers, by natural
key, to an entity type that comes after it. Each entry also declares the
references the relationship pass resolves once every file is loaded.
"""
from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass(frozen=True)
class Reference:
    """
    A link from one entity type to another, resolved by natural key.

    Attributes:
        name: Field on the referencing record that receives the target's id.
        source_field: Field on the referencing record holding the natural key.
        target: filename base of the referenced entity type.
        target_field: Natural-key field on the referenced entity type.
        skip_empty: Leave the reference unset when the source field is ''.
    """
    name: str
    source_field: str
    target: str
    target_field: str
    skip_empty: bool = False


@dataclass(frozen=True)
class EntityType:
    """One GTFS file and the collection its records are stored in."""
    filename_base: str
    table_name: str
    natural_key: Tuple[str, ...]
    nonstandard: bool = False
    references: Tuple[Reference, ...] = field(default_factory=tuple)

    @property
    def filename(self) -> str:
        return f"{self.filename_base}.txt"

    @property
    def index_fields(self) -> Tuple[str, ...]:
        """Natural-key fields plus every field used to resolve a reference."""
        fields = list(self.natural_key)
        for reference in self.references:
            if reference.source_field not in fields:
                fields.append(reference.source_field)
        return tuple(fields)


GTFS_ENTITY_TYPES: Tuple[EntityType, ...] = (
    EntityType("agency", "gtfs_agency", ("agency_id",)),
    EntityType("calendar", "gtfs_calendar", ("service_id",)),
    EntityType(
        "calendar_dates", "gtfs_calendar_dates", ("service_id", "date"),
        references=(
            Reference("service", "service_id", "calendar", "service_id"),
        ),
    ),
    EntityType("fare_attributes", "gtfs_fare_attributes", ("fare_id",)),
    EntityType(
        "routes", "gtfs_routes", ("route_id",),
        references=(
            Reference("agency", "agency_id", "agency", "agency_id", skip_empty=True),
        ),
    ),
    EntityType(
        "fare_rules", "gtfs_fare_rules", ("fare_id",),
        references=(
            Reference("route", "route_id", "routes", "route_id", skip_empty=True),
            Reference("fare", "fare_id", "fare_attributes", "fare_id"),
        ),
    ),
    EntityType("feed_info", "gtfs_feed_info", ("feed_publisher_name",)),
    EntityType("stops", "gtfs_stops", ("stop_id",)),
    EntityType("shapes", "gtfs_shapes", ("shape_id",)),
    EntityType(
        "trips", "gtfs_trips", ("trip_id",),
        references=(
            Reference("route", "route_id", "routes", "route_id"),
            Reference("service", "service_id", "calendar", "service_id"),
        ),
    ),
    EntityType("stop_times", "gtfs_stop_times", ("trip_id", "stop_id")),
    EntityType(
        "frequencies", "gtfs_frequencies", ("trip_id",),
        references=(
            Reference("trip", "trip_id", "trips", "trip_id"),
        ),
    ),
    EntityType(
        "transfers", "gtfs_transfers", ("from_stop_id", "to_stop_id"),
        references=(
            Reference("from_stop", "from_stop_id", "stops", "stop_id"),
            Reference("to_stop", "to_stop_id", "stops", "stop_id"),
        ),
    ),
    EntityType(
        "stop_attributes", "gtfs_stop_attributes", ("stop_id",),
        nonstandard=True,
        references=(
            Reference("stop", "stop_id", "stops", "stop_id"),
        ),
    ),
    EntityType(
        "timetable_pages", "gtfs_timetable_pages", ("timetable_page_id",),
        nonstandard=True,
    ),
    EntityType(
        "timetables", "gtfs_timetables", ("timetable_id",),
        nonstandard=True,
        references=(
            Reference("route", "route_id", "routes", "route_id"),
            Reference("timetable_page", "timetable_page_id", "timetable_pages",
                      "timetable_page_id", skip_empty=True),
        ),
    ),
    EntityType(
        "timetable_stop_order", "gtfs_timetable_stop_order", ("timetable_id", "stop_id"),
        nonstandard=True,
        references=(
            Reference("stop", "stop_id", "stops", "stop_id"),
            Reference("timetable", "timetable_id", "timetables", "timetable_id"),
        ),
    ),
)

AGENCY_ENTITY = "agency"


def entity_types_by_name(
    entity_types: Tuple[EntityType, ...] = GTFS_ENTITY_TYPES,
) -> Dict[str, EntityType]:
    """Map filename base to descriptor, e.g. 'trips' -> EntityType(...)."""
    return {entity_type.filename_base: entity_type for entity_type in entity_types}


def validate_entity_order(entity_types: Tuple[EntityType, ...]) -> None:
    """
    Raise ValueError if a reference points at an unknown or later entity type.

    Args:
        entity_types: Ordered descriptors, as passed to the import orchestrator.
    """
    seen = set()
    for entity_type in entity_types:
        for reference in entity_type.references:
            if reference.target not in seen:
                raise ValueError(
                    f"'{entity_type.filename_base}' references '{reference.target}', "
                    "which is not imported before it."
                )
        seen.add(entity_type.filename_base)
