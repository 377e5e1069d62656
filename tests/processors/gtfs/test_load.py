import io

import pytest

from common.metrics import ImportMetrics
from processors.gtfs.bounds import EMPTY_BOUNDS, Bounds
from processors.gtfs.entity_definitions import entity_types_by_name
from processors.gtfs.errors import ParseError, PersistenceError
from processors.gtfs.load import (
    CHUNK_SIZE,
    import_entity_file,
    import_entity_stream,
    iter_raw_chunks,
    write_batch,
)
from processors.gtfs.memory_store import MemoryFeedStore
from processors.gtfs.task import ImportTask

ENTITIES = entity_types_by_name()
STOPS = ENTITIES["stops"]


@pytest.fixture
def task(tmp_path):
    return ImportTask(agency_key="demo", download_dir=tmp_path)


def _stops_csv(count):
    lines = ["stop_id,stop_name,stop_lat,stop_lon"]
    lines.extend(f"S{i},Stop {i},45.{i % 10},-122.{i % 10}" for i in range(count))
    return io.BytesIO(("\n".join(lines) + "\n").encode("utf-8"))


class RejectFirstStore(MemoryFeedStore):
    """Rejects the first record of every batch."""

    def insert_many(self, entity_type, records):
        inserted = super().insert_many(entity_type, records[1:])
        raise PersistenceError(
            "1 record rejected",
            inserted_count=inserted,
            errors=[{"index": 0, "error": "duplicate key"}],
        )


def test_chunking_25000_records(task, mocker):
    store = MemoryFeedStore()
    insert_spy = mocker.spy(store, "insert_many")
    mock_log_import = mocker.patch("processors.gtfs.load.log_import")

    result = import_entity_stream(_stops_csv(25000), STOPS, task, store)

    assert [len(c.args[1]) for c in insert_spy.call_args_list] == [10000, 10000, 5000]
    assert result.batch_count == 3
    assert result.record_count == 25000
    assert len(store.records(STOPS, "demo")) == 25000
    progress = [c.args[0] for c in mock_log_import.call_args_list if c.kwargs.get("overwrite")]
    assert progress == [
        "Importing - stops.txt - 10000 lines imported",
        "Importing - stops.txt - 20000 lines imported",
        "Importing - stops.txt - 25000 lines imported",
    ]


def test_chunk_size_constant():
    assert CHUNK_SIZE == 10000


def test_records_are_normalized_and_bounds_extended(task, memory_store):
    stream = io.BytesIO(
        b"stop_id,stop_name,stop_lat,stop_lon\n"
        b"S1,First,45.5,-122.6\n"
        b"S2,Second,45.6,-122.4\n"
    )
    start = Bounds(sw=(-123.0, 45.55), ne=(-123.0, 45.55))

    result = import_entity_stream(stream, STOPS, task, memory_store, bounds=start)

    records = memory_store.records(STOPS, "demo")
    assert records[0] == {
        "stop_id": "S1",
        "stop_name": "First",
        "stop_lat": 45.5,
        "stop_lon": -122.6,
        "loc": [-122.6, 45.5],
        "agency_key": "demo",
    }
    assert result.bounds == Bounds(sw=(-123.0, 45.5), ne=(-122.4, 45.6))


def test_file_without_coordinates_keeps_bounds(task, memory_store):
    stream = io.BytesIO(b"route_id,route_short_name\nR1,1\n")
    start = Bounds(sw=(1.0, 2.0), ne=(3.0, 4.0))

    result = import_entity_stream(stream, ENTITIES["routes"], task, memory_store, bounds=start)

    assert result.bounds == start
    assert result.record_count == 1


def test_byte_order_mark_and_spaces_in_header(task, memory_store):
    stream = io.BytesIO(b"\xef\xbb\xbfroute_id, route_short_name\nR1, 1\n")

    import_entity_stream(stream, ENTITIES["routes"], task, memory_store)

    assert memory_store.records(ENTITIES["routes"], "demo") == [
        {"route_id": "R1", "route_short_name": "1", "agency_key": "demo"}
    ]


def test_empty_file_imports_nothing(task, memory_store):
    result = import_entity_stream(io.BytesIO(b""), STOPS, task, memory_store)

    assert result.record_count == 0
    assert result.batch_count == 0
    assert result.bounds == EMPTY_BOUNDS


def test_header_only_file_imports_nothing(task, memory_store):
    result = import_entity_stream(io.BytesIO(b"stop_id,stop_name\n"), STOPS, task, memory_store)

    assert result.record_count == 0
    assert memory_store.records(STOPS) == []


def test_malformed_file_raises_parse_error(task, memory_store):
    stream = io.BytesIO(b'stop_id,stop_name\nS1,"Unterminated\n')

    with pytest.raises(ParseError) as exc_info:
        import_entity_stream(stream, STOPS, task, memory_store)

    assert exc_info.value.filename == "stops.txt"
    assert exc_info.value.agency_key == "demo"


def test_row_with_extra_field_raises_parse_error(task, memory_store):
    stream = io.BytesIO(b"stop_id,stop_name\nS1,First,EXTRA\nS2,Second\n")

    with pytest.raises(ParseError, match="line 2 has 3 fields, expected 2") as exc_info:
        import_entity_stream(stream, STOPS, task, memory_store)

    assert exc_info.value.filename == "stops.txt"
    assert memory_store.records(STOPS) == []


def test_row_with_missing_field_raises_parse_error(task, memory_store):
    stream = io.BytesIO(b"stop_id,stop_name,stop_desc\nS1,First,\nS2,Second\n")

    with pytest.raises(ParseError, match="line 3 has 2 fields, expected 3"):
        import_entity_stream(stream, STOPS, task, memory_store)


def test_iter_raw_chunks_trailing_empty_cell_is_kept():
    chunks = list(iter_raw_chunks(io.BytesIO(b"a,b,c\n1,2,\n\n3,4,5\n"), "x.txt"))

    assert chunks == [[{"a": "1", "b": "2", "c": ""}, {"a": "3", "b": "4", "c": "5"}]]


def test_partial_batch_failures_are_accumulated(task):
    store = RejectFirstStore()
    metrics = ImportMetrics()

    result = import_entity_stream(_stops_csv(5), STOPS, task, store, chunk_size=2, metrics=metrics)

    assert result.batch_count == 3
    assert result.record_count == 2
    assert len(result.failures) == 3
    assert result.failed_record_count == 3
    assert all(failure.agency_key == "demo" for failure in result.failures)
    assert len(store.records(STOPS, "demo")) == 2
    assert metrics.get_sample("gtfs_import_batch_failures_total", {"entity": "stops"}) == 3.0
    assert metrics.get_sample("gtfs_import_records_total", {"entity": "stops"}) == 2.0


def test_write_batch_empty_is_noop(mocker):
    store = mocker.MagicMock()

    assert write_batch(store, STOPS, []) == 0
    store.insert_many.assert_not_called()


def test_import_entity_file(task, memory_store, tmp_path):
    file_path = tmp_path / "stops.txt"
    file_path.write_text("stop_id,stop_lat,stop_lon\nS1,1.5,2.5\n", encoding="utf-8")

    result = import_entity_file(file_path, STOPS, task, memory_store)

    assert result.filename_base == "stops"
    assert result.record_count == 1
    assert result.bounds == Bounds(sw=(2.5, 1.5), ne=(2.5, 1.5))
