import math

import pytest

from processors.gtfs.transform import (
    clean_string_field,
    normalize_record,
    reproject_point,
    to_float,
    to_int,
)

# One degree of longitude at the equator, in EPSG:3857 metres.
ONE_DEGREE_MERCATOR = 111319.49079327357


class TestNormalizeRecord:

    def test_coerces_numeric_fields_and_adds_loc(self):
        record = normalize_record(
            {"monday": "1", "stop_lat": "45.5", "stop_lon": "-122.6"}, "demo"
        )

        assert record == {
            "monday": 1,
            "stop_lat": 45.5,
            "stop_lon": -122.6,
            "loc": [-122.6, 45.5],
            "agency_key": "demo",
        }

    def test_missing_stop_lon_gives_no_loc(self):
        record = normalize_record({"stop_id": "S1", "stop_lat": "45.5"}, "demo")

        assert "loc" not in record
        assert record["stop_lat"] == 45.5

    def test_empty_numeric_cell_is_dropped(self):
        record = normalize_record({"stop_id": "S1", "stop_lat": "", "stop_lon": "-122.6"}, "demo")

        assert "stop_lat" not in record
        assert "loc" not in record

    def test_empty_text_cell_is_kept(self):
        record = normalize_record({"route_id": "", "agency_id": " "}, "demo")

        assert record["route_id"] == ""
        assert record["agency_id"] == ""

    def test_missing_cells_and_keys_are_cleaned(self):
        record = normalize_record({" stop_id ": " S1 ", "stop_desc": math.nan, "zone_id": None}, "demo")

        assert record == {"stop_id": "S1", "agency_key": "demo"}

    def test_unparsable_numbers_become_nan_and_loc_uses_zero(self):
        record = normalize_record({"stop_lat": "north", "stop_lon": "-122.6", "route_type": "bus"}, "demo")

        assert math.isnan(record["stop_lat"])
        assert math.isnan(record["route_type"])
        assert record["loc"] == [-122.6, 0]

    def test_integer_field_written_as_float(self):
        record = normalize_record({"stop_sequence": "3.0", "pickup_type": "0"}, "demo")

        assert record["stop_sequence"] == 3
        assert isinstance(record["stop_sequence"], int)
        assert record["pickup_type"] == 0

    def test_agency_key_overrides_feed_column(self):
        record = normalize_record({"agency_key": "feed-value"}, "demo")

        assert record["agency_key"] == "demo"

    def test_input_is_not_modified(self):
        raw = {"stop_lat": "45.5", "stop_lon": "-122.6"}

        normalize_record(raw, "demo")

        assert raw == {"stop_lat": "45.5", "stop_lon": "-122.6"}

    def test_shape_points_get_loc(self):
        record = normalize_record(
            {"shape_id": "SH1", "shape_pt_lat": "45.5", "shape_pt_lon": "-122.6", "shape_pt_sequence": "1"},
            "demo",
        )

        assert record["loc"] == [-122.6, 45.5]
        assert record["shape_pt_sequence"] == 1


class TestProjection:

    def test_stop_points_are_reprojected(self):
        record = normalize_record(
            {"stop_lat": "0", "stop_lon": str(ONE_DEGREE_MERCATOR)}, "demo", proj="EPSG:3857"
        )

        assert record["loc"] == pytest.approx([1.0, 0.0], abs=1e-9)
        assert record["stop_lon"] == pytest.approx(1.0, abs=1e-9)
        assert record["stop_lat"] == pytest.approx(0.0, abs=1e-9)

    def test_shape_points_are_not_reprojected(self):
        # Shape points keep their planar coordinates while stops in the same
        # feed are converted. Kept as-is until the intended behaviour is settled.
        record = normalize_record(
            {"shape_pt_lat": "0", "shape_pt_lon": str(ONE_DEGREE_MERCATOR)}, "demo", proj="EPSG:3857"
        )

        assert record["loc"] == [ONE_DEGREE_MERCATOR, 0.0]
        assert record["shape_pt_lon"] == ONE_DEGREE_MERCATOR

    def test_reproject_point(self):
        assert reproject_point([0.0, 0.0], "EPSG:3857") == pytest.approx([0.0, 0.0], abs=1e-9)


class TestFieldParsers:

    def test_to_int(self):
        assert to_int("7") == 7
        assert to_int("1.0") == 1
        assert math.isnan(to_int("x"))
        assert math.isnan(to_int("inf"))
        assert math.isnan(to_int("12abc"))

    def test_to_float(self):
        assert to_float("-122.6") == -122.6
        assert math.isnan(to_float(""))

    def test_clean_string_field(self):
        assert clean_string_field("  R1 ") == "R1"
        assert clean_string_field("") == ""
        assert clean_string_field(None) is None
        assert clean_string_field(float("nan")) is None
