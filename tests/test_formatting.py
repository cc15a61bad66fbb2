import json
import time
from datetime import datetime, timezone

import pytest
from rich.table import Table

from agcoats.formatting import (
    MAX_COLUMN_WIDTH,
    build_table,
    format_date,
    format_value,
    mask_secret,
    print_json,
    render_detail,
    render_list,
    table_width,
)
from agcoats.models import EQUIPMENT_COLUMNS, EQUIPMENT_DETAIL, READING_COLUMNS, Column


def cells(table: Table, column_index: int):
    return [cell.plain for cell in table.columns[column_index].cells]


def test_build_table_headers_and_missing_fields():
    items = [{"id": "E1", "serialNumber": "SN1", "model": "MF 8S"}]
    table = build_table(items, EQUIPMENT_COLUMNS)

    assert [col.header for col in table.columns] == ["ID", "Serial Number", "Model", "Type", "Status"]
    assert [cells(table, i)[0] for i in range(5)] == ["E1", "SN1", "MF 8S", "N/A", "N/A"]


def test_column_width_is_longest_label_or_value():
    items = [{"id": "E-0000001"}, {"id": "E2"}]
    table = build_table(items, [Column("ID", "id"), Column("Status", "status")])
    assert table.columns[0].width == len("E-0000001")
    assert table.columns[1].width == len("Status")
    assert [col.min_width for col in table.columns] == [col.width for col in table.columns]
    assert all(col.no_wrap for col in table.columns)


def test_long_values_truncated_to_cap():
    long_model = "X" * 75
    table = build_table([{"id": "E1", "model": long_model}], EQUIPMENT_COLUMNS)

    model_cell = cells(table, 2)[0]
    assert model_cell == "X" * MAX_COLUMN_WIDTH
    assert len(model_cell) == 40
    assert table.columns[2].width == 40


def test_json_mode_keeps_long_values(capsys):
    long_model = "Y" * 75
    data = [{"id": "E1", "model": long_model}]
    print_json(data)
    out = capsys.readouterr().out
    assert out == json.dumps(data, indent=2) + "\n"
    assert long_model in out


def test_non_mapping_rows_render_placeholders():
    table = build_table(["oops", None], [Column("ID", "id")])
    assert cells(table, 0) == ["N/A", "N/A"]


def test_render_list_empty_prints_notice_only(capsys):
    render_list([], EQUIPMENT_COLUMNS, "equipment", title="Equipment")
    out = capsys.readouterr().out
    assert "No equipment found." in out
    assert "Serial Number" not in out


def test_table_width_counts_padding_and_borders():
    table = build_table([{"id": "E1", "model": "M" * 75}], EQUIPMENT_COLUMNS)
    widths = [col.width for col in table.columns]
    assert table_width(table) == sum(w + 2 for w in widths) + len(widths) + 1


def test_render_list_prints_table(capsys):
    render_list([{"id": "E1", "model": "MF"}], EQUIPMENT_COLUMNS, "equipment")
    out = capsys.readouterr().out
    assert "Serial Number" in out
    assert "E1" in out


def test_render_detail_substitutes_missing(capsys):
    render_detail({"id": "E1", "model": "MF 8S"}, EQUIPMENT_DETAIL, title="Equipment Details")
    out = capsys.readouterr().out
    assert "Equipment Details" in out
    assert "ID: E1" in out
    assert "Model: MF 8S" in out
    assert "Status: N/A" in out
    assert "Owner: N/A" in out


def test_render_detail_of_non_mapping(capsys):
    render_detail(None, EQUIPMENT_DETAIL)
    out = capsys.readouterr().out
    assert out.count("N/A") == len(EQUIPMENT_DETAIL)


def test_format_date_iso_and_zulu():
    expected = datetime(2024, 5, 17, 8, 30, 0).strftime("%c")
    assert format_date("2024-05-17T08:30:00") == expected
    utc = datetime(2024, 5, 17, 8, 30, 0, tzinfo=timezone.utc)
    assert format_date("2024-05-17T08:30:00Z") == utc.astimezone().strftime("%c")


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="time.tzset is POSIX only")
def test_format_date_converts_offsets_to_local_time(monkeypatch):
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    try:
        # 08:30 UTC is 04:30 EDT
        assert format_date("2024-05-17T08:30:00Z") == datetime(2024, 5, 17, 4, 30).strftime("%c")
        assert format_date("2024-05-17T10:30:00+02:00") == datetime(2024, 5, 17, 4, 30).strftime("%c")
    finally:
        monkeypatch.undo()
        time.tzset()


def test_format_date_leaves_unparseable_values():
    assert format_date("yesterday") == "yesterday"


def test_reading_timestamps_are_formatted_in_tables():
    table = build_table([{"timestamp": "2024-05-17T08:30:00", "value": 21.5, "unit": "C"}], READING_COLUMNS)
    assert cells(table, 0)[0] == datetime(2024, 5, 17, 8, 30).strftime("%c")
    assert cells(table, 1)[0] == "21.5"
    assert cells(table, 3)[0] == "N/A"


@pytest.mark.parametrize(
    "value, expected",
    [(None, "N/A"), ("", "N/A"), (0, "0"), (True, "Yes"), ({"a": 1}, '{"a": 1}'), ([1, 2], "[1, 2]")],
)
def test_format_value(value, expected):
    assert format_value(value) == expected


def test_mask_secret():
    assert mask_secret("short") == "****"
    assert mask_secret("abcdefghijkl") == "abcd…ijkl"

