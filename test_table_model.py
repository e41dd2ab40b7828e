import pandas as pd
import pytest

from table_errors import EmptyInputError, EmptyTableError
from table_model import (
    SEPARATOR,
    Table,
    create_blank,
    horizontal_concat,
    insert_separators,
    rectangularize,
    transpose,
    vertical_concat,
)


def test_counts_ignore_separators():
    table = Table([["a", "b"], SEPARATOR, ["c", "d"], ["e", "f"]])
    assert table.column_count() == 2
    assert table.data_row_count() == 3
    assert table.separator_count() == 1
    assert table.cell(2, 1) == "c"


def test_column_count_of_empty_table_is_zero():
    assert Table().column_count() == 0
    assert Table([SEPARATOR]).column_count() == 0


def test_transpose_drops_separators_and_swaps_axes():
    table = Table([["a", "b", "c"], SEPARATOR, ["d", "e", "f"]])
    assert transpose(table).rows == [["a", "d"], ["b", "e"], ["c", "f"]]


@pytest.mark.parametrize(
    "rows",
    [
        [["1"]],
        [["a", "b"], ["c", "d"]],
        [["a", "b", "c"], ["d", "e", "f"]],
    ],
)
def test_transpose_is_an_involution(rows):
    table = Table(rows)
    assert transpose(transpose(table)) == table


def test_transpose_of_table_without_data_fails():
    with pytest.raises(EmptyTableError):
        transpose(Table([SEPARATOR]))


def test_horizontal_concat_pads_shorter_tables():
    a = Table([["a1", "a2"], ["a3", "a4"]])
    b = Table([["b1", "b2"], ["b3", "b4"], ["b5", "b6"]])
    out = horizontal_concat([a, b], "-")
    assert len(out.rows) == 3
    assert out.rows[2] == ["-", "-", "b5", "b6"]


def test_vertical_concat_pads_narrow_rows_on_the_right():
    a = Table([["a"], SEPARATOR, ["b"]])
    b = Table([["c", "d", "e"]])
    out = vertical_concat([a, b], ".")
    assert out.rows == [["a", ".", "."], ["b", ".", "."], ["c", "d", "e"]]


def test_concat_of_nothing_fails():
    with pytest.raises(EmptyInputError):
        horizontal_concat([])
    with pytest.raises(EmptyInputError):
        vertical_concat([])


def test_insert_separators_applies_shifts_left_to_right():
    table = Table([["1"], ["2"], ["3"]])
    out = insert_separators(table, [2, 1])
    assert out.rows == [["1"], SEPARATOR, ["2"], SEPARATOR, ["3"]]
    assert table.rows == [["1"], ["2"], ["3"]]


def test_create_blank_and_rectangularize():
    assert create_blank(2, 3, "x").rows == [["x", "x", "x"], ["x", "x", "x"]]
    jagged = Table([["a"], SEPARATOR, ["b", "c"]])
    assert rectangularize(jagged).rows == [["a", ""], SEPARATOR, ["b", "c"]]


def test_frame_bridge_round_trip():
    df = pd.DataFrame({"name": ["x", "y"], "qty": [1, None]})
    table = Table.from_frame(df)
    assert table.rows[0] == ["name", "qty"]
    assert table.rows[1] == SEPARATOR
    assert table.rows[3] == ["y", ""]
    frame = table.to_frame()
    assert list(frame.columns) == ["c1", "c2"]
    assert frame.iloc[1, 0] == "x"


def test_copy_is_independent():
    table = Table([["a"]])
    clone = table.copy()
    clone.set_cell(1, 1, "b")
    assert table.cell(1, 1) == "a"
