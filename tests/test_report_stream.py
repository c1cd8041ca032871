from __future__ import annotations

import json

import pytest

from sizereport.differ import diff_snapshots
from sizereport.errors import MalformedListingError
from sizereport.models import CODE_SYMBOL_TYPE, FileRecord, ReportHeader, ReportRecord
from sizereport.report_stream import read_ndjson, to_ndjson, transform_changes


def _records(stream) -> list[ReportRecord]:
    items = list(stream)
    assert isinstance(items[0], ReportHeader)
    assert all(isinstance(item, ReportRecord) for item in items[1:])
    return items[1:]


def test_header_comes_first_and_matches_record_count() -> None:
    result = diff_snapshots(
        [FileRecord("a.js", 100, 40), FileRecord("old.js", 1, 1), FileRecord("same.js", 3, 2)],
        [FileRecord("a.js", 150, 40), FileRecord("new.js", 2, 2), FileRecord("same.js", 3, 2)],
    )

    items = list(transform_changes(result))

    header = items[0]
    assert header == ReportHeader(total=4, diff_mode=True)
    assert len(items) - 1 == header.total


def test_changed_record_carries_deltas() -> None:
    result = diff_snapshots([FileRecord("dist/a.js", 100, 40)], [FileRecord("dist/a.js", 150, 40)])

    (record,) = _records(transform_changes(result))

    assert record.path == "dist/a.js"
    assert record.name == "a.js"
    assert (record.byte_delta, record.compressed_delta, record.unit) == (50, 0, 1)
    assert record.type == CODE_SYMBOL_TYPE


def test_added_and_removed_signs() -> None:
    added = _records(transform_changes(diff_snapshots([], [FileRecord("x.js", 200, 80)])))
    removed = _records(transform_changes(diff_snapshots([FileRecord("x.js", 200, 80)], [])))

    assert added[0].to_dict()["s"][0] == {"n": "x.js", "b": 200, "g": 80, "t": "t", "u": 1}
    assert removed[0].to_dict()["s"][0] == {"n": "x.js", "b": -200, "g": -80, "t": "t", "u": -1}


def test_unchanged_records_have_zero_deltas() -> None:
    files = [FileRecord("a.js", 10, 5), FileRecord("b.js", 20, 9)]

    records = _records(transform_changes(diff_snapshots(files, files)))

    assert [(r.byte_delta, r.compressed_delta, r.unit) for r in records] == [(0, 0, 1), (0, 0, 1)]


def test_records_grouped_in_emission_order() -> None:
    result = diff_snapshots(
        [FileRecord("changed.js", 1, 1), FileRecord("removed.js", 1, 1), FileRecord("same.js", 1, 1)],
        [FileRecord("changed.js", 2, 1), FileRecord("added.js", 1, 1), FileRecord("same.js", 1, 1)],
    )

    records = _records(transform_changes(result))

    assert [r.path for r in records] == ["added.js", "removed.js", "same.js", "changed.js"]


def test_stream_is_lazy_and_single_use() -> None:
    stream = transform_changes(diff_snapshots([], [FileRecord("a.js", 1, 1)]))

    assert next(stream) == ReportHeader(total=1)
    assert len(list(stream)) == 1
    assert list(stream) == []


def test_ndjson_lines_use_wire_shape() -> None:
    result = diff_snapshots([], [FileRecord("src/a.js", 10, 5)])

    lines = list(to_ndjson(transform_changes(result)))

    assert json.loads(lines[0]) == {"total": 1, "diff_mode": True}
    assert json.loads(lines[1]) == {
        "p": "src/a.js",
        "s": [{"n": "a.js", "b": 10, "g": 5, "t": "t", "u": 1}],
    }
    assert list(read_ndjson(lines)) == list(transform_changes(result))


def test_read_ndjson_rejects_missing_fields() -> None:
    lines = ['{"total": 1, "diff_mode": true}', '{"p": "a.js", "s": [{"n": "a.js", "b": 1}]}']

    with pytest.raises(MalformedListingError):
        list(read_ndjson(lines))


def test_read_ndjson_requires_header() -> None:
    with pytest.raises(MalformedListingError):
        list(read_ndjson(["", "  "]))


@pytest.mark.parametrize("value", ['"yes"', "1", "null"])
def test_read_ndjson_rejects_non_boolean_diff_mode(value: str) -> None:
    with pytest.raises(MalformedListingError, match="diff_mode"):
        list(read_ndjson([f'{{"total": 0, "diff_mode": {value}}}']))


def test_read_ndjson_header_without_diff_mode_is_absolute() -> None:
    (header,) = read_ndjson(['{"total": 0}'])

    assert header == ReportHeader(total=0, diff_mode=False)
