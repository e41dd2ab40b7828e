import unittest

import pytest

from table_document import TableDocument
from table_errors import ParseError, TableNotFoundError
from table_model import SEPARATOR, Table
from table_text import format_table, parse_table, table_from_csv

DOC = """\
* Inventory
#+PROPERTY: tblfilter :namescol last
#+NAME: fruit
| name   | qty |
|--------+-----|
| apple  |   3 |
| banana |  12 |

Some prose.

#+NAME: veg
#+ATTR_HTML: :border 1
| leek | 4 |

| unnamed | table |
"""


def test_parse_table_reads_cells_and_separators():
    table = parse_table("| a | b |\n|---+---|\n| c |   |\n")
    assert table.rows == [["a", "b"], SEPARATOR, ["c", ""]]


def test_parse_table_rejects_non_table_lines():
    with pytest.raises(ParseError) as err:
        parse_table("| a |\nnot a table")
    assert err.value.fragment == "not a table"


def test_format_then_parse_keeps_content():
    table = Table([["name", "qty"], SEPARATOR, ["apple pie", "3"], ["", "12"]])
    text = format_table(table)
    assert text.splitlines()[1] == "|-----------+-----|"
    assert parse_table(text) == table


def test_table_from_csv(tmp_path):
    path = tmp_path / "data.csv"
    path.write_text("a,b\n1,\nx,y\n", encoding="utf-8")
    table = table_from_csv(str(path))
    assert table.rows == [["a", "b"], SEPARATOR, ["1", ""], ["x", "y"]]


class TableDocumentTests(unittest.TestCase):
    def setUp(self):
        self.doc = TableDocument(DOC)

    def test_named_tables_are_found(self):
        self.assertEqual(self.doc.names(), ["fruit", "veg"])
        fruit = self.doc.fetch_table("fruit")
        self.assertEqual(fruit.data_row_count(), 3)
        self.assertEqual(fruit.cell(3, 1), "banana")

    def test_keyword_lines_between_name_and_table_are_skipped(self):
        self.assertEqual(self.doc.fetch_table("veg").rows, [["leek", "4"]])

    def test_positional_reference(self):
        self.assertEqual(self.doc.fetch_table("$3").rows, [["unnamed", "table"]])

    def test_missing_table(self):
        with self.assertRaises(TableNotFoundError):
            self.doc.fetch_table("nope")
        with self.assertRaises(TableNotFoundError):
            self.doc.fetch_table("$9")

    def test_property_value(self):
        self.assertEqual(self.doc.property_value("tblfilter"), ":namescol last")
        self.assertIsNone(self.doc.property_value("other"))

    def test_table_at_line(self):
        table = self.doc.table_at_line(5)
        self.assertEqual(table.cell(1, 1), "name")
        with self.assertRaises(TableNotFoundError):
            self.doc.table_at_line(0)


if __name__ == "__main__":
    unittest.main()
