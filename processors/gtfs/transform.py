#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Field normalisation for GTFS records.

Turns one raw CSV row (column name -> text) into the record that is
stored: blank cells dropped, the agency key stamped, numeric columns
coerced, and a `loc` point ([lon, lat]) synthesised for stops and shape
points. Stop points are reprojected to WGS84 when the agency declares a
planar coordinate system; shape points are not.
"""

import logging
import math
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd
from pyproj import Transformer

module_logger = logging.getLogger(__name__)

INTEGER_FIELDS = frozenset([
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
    "start_date",
    "end_date",
    "date",
    "exception_type",
    "shape_pt_sequence",
    "payment_method",
    "transfers",
    "transfer_duration",
    "feed_start_date",
    "feed_end_date",
    "headway_secs",
    "exact_times",
    "route_type",
    "direction_id",
    "location_type",
    "wheelchair_boarding",
    "stop_sequence",
    "pickup_type",
    "drop_off_type",
    "use_stop_sequence",
    "transfer_type",
    "min_transfer_time",
    "wheelchair_accessible",
    "bikes_allowed",
    "timepoint",
    "timetable_sequence",
])

FLOAT_FIELDS = frozenset([
    "price",
    "shape_dist_traveled",
    "shape_pt_lat",
    "shape_pt_lon",
    "stop_lat",
    "stop_lon",
])

WGS84 = "EPSG:4326"

Number = Union[int, float]


def clean_string_field(value: Any) -> Optional[str]:
    """
    Strip a cell value. None, NaN and pd.NA become None; '' stays ''.
    """
    if value is None or pd.isna(value):
        return None
    return str(value).strip()


def to_int(value: str) -> Number:
    """Parse an integer field; '1.0' gives 1, anything unparsable (even '12abc') gives NaN."""
    try:
        return int(value)
    except ValueError:
        pass
    try:
        as_float = float(value)
    except ValueError:
        return math.nan
    return int(as_float) if math.isfinite(as_float) else math.nan


def to_float(value: str) -> float:
    """Parse a float field; anything unparsable gives NaN."""
    try:
        return float(value)
    except ValueError:
        return math.nan


def _zero_if_nan(value: float) -> float:
    return 0 if math.isnan(value) else value


@lru_cache(maxsize=None)
def get_transformer(proj: str) -> Transformer:
    """Cached transformer from `proj` (EPSG code or proj string) to WGS84 lon/lat."""
    module_logger.debug(f"Creating coordinate transformer from '{proj}' to {WGS84}")
    return Transformer.from_crs(proj, WGS84, always_xy=True)


def reproject_point(point: List[float], proj: str) -> List[float]:
    """Reproject an [x, y] point in `proj` to [lon, lat]."""
    lon, lat = get_transformer(proj).transform(point[0], point[1])
    return [lon, lat]


def normalize_record(
    raw_record: Mapping[str, Any],
    agency_key: str,
    proj: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Normalise one raw GTFS row for storage.

    The integer and float field sets are the same for every GTFS file, so
    the result depends only on the row, the agency key and the projection.
    An unparsable number becomes NaN rather than raising; it never blocks
    the record.

    Args:
        raw_record: Column name to cell text, as read from the file.
        agency_key: Key stamped on the record.
        proj: Optional planar CRS of stop coordinates.

    Returns:
        A new dictionary; `raw_record` is not modified.
    """
    record: Dict[str, Any] = {}
    for key, value in raw_record.items():
        cleaned = clean_string_field(value)
        if cleaned is not None:
            record[str(key).strip()] = cleaned

    record["agency_key"] = agency_key

    for field_name in INTEGER_FIELDS.intersection(record):
        if record[field_name] == "":
            del record[field_name]
        else:
            record[field_name] = to_int(record[field_name])

    for field_name in FLOAT_FIELDS.intersection(record):
        if record[field_name] == "":
            del record[field_name]
        else:
            record[field_name] = to_float(record[field_name])

    if "stop_lat" in record and "stop_lon" in record:
        loc = [_zero_if_nan(record["stop_lon"]), _zero_if_nan(record["stop_lat"])]
        if proj:
            loc = reproject_point(loc, proj)
            record["stop_lon"], record["stop_lat"] = loc
        record["loc"] = loc

    # Shape points keep the feed's own coordinates even when `proj` is set.
    if "shape_pt_lat" in record and "shape_pt_lon" in record:
        record["loc"] = [
            _zero_if_nan(record["shape_pt_lon"]),
            _zero_if_nan(record["shape_pt_lat"]),
        ]

    return record
