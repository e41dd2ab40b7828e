from dataclasses import dataclass, field
from typing import List

import pandas as pd

from table_errors import EmptyInputError, EmptyTableError

# Marker stored in place of a cell list for horizontal rules.
SEPARATOR = "hline"


def is_separator(row) -> bool:
    return isinstance(row, str) and row == SEPARATOR


@dataclass
class Table:
    """Ordered rows of a pipe table; each row is SEPARATOR or a list of cells."""

    rows: list = field(default_factory=list)

    @classmethod
    def from_rows(cls, rows) -> "Table":
        copied = []
        for row in rows:
            if is_separator(row):
                copied.append(SEPARATOR)
            else:
                copied.append(["" if cell is None else str(cell) for cell in row])
        return cls(copied)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, header: bool = True) -> "Table":
        rows = []
        if header:
            rows.append([str(col) for col in df.columns])
            rows.append(SEPARATOR)
        for values in df.itertuples(index=False, name=None):
            rows.append(["" if pd.isna(v) else str(v) for v in values])
        return cls(rows)

    def copy(self) -> "Table":
        return Table.from_rows(self.rows)

    def column_count(self) -> int:
        for row in self.rows:
            if not is_separator(row):
                return len(row)
        return 0

    def data_positions(self) -> List[int]:
        return [i for i, row in enumerate(self.rows) if not is_separator(row)]

    def data_rows(self) -> List[list]:
        return [row for row in self.rows if not is_separator(row)]

    def data_row_count(self) -> int:
        return len(self.data_positions())

    def separator_count(self) -> int:
        return len(self.rows) - self.data_row_count()

    def position_of(self, line: int) -> int:
        """Index into ``rows`` of the 1-based data line ``line``."""
        positions = self.data_positions()
        if line < 1 or line > len(positions):
            raise IndexError(f"data line {line} outside 1..{len(positions)}")
        return positions[line - 1]

    def cell(self, line: int, col: int) -> str:
        row = self.rows[self.position_of(line)]
        if col < 1 or col > len(row):
            raise IndexError(f"column {col} outside 1..{len(row)}")
        return row[col - 1]

    def set_cell(self, line: int, col: int, value) -> None:
        row = self.rows[self.position_of(line)]
        if col < 1 or col > len(row):
            raise IndexError(f"column {col} outside 1..{len(row)}")
        row[col - 1] = "" if value is None else str(value)

    def to_frame(self) -> pd.DataFrame:
        data = self.data_rows()
        width = max((len(row) for row in data), default=0)
        columns = [f"c{i}" for i in range(1, width + 1)]
        padded = [row + [""] * (width - len(row)) for row in data]
        return pd.DataFrame(padded, columns=columns, dtype=object)


def column_count(table: Table) -> int:
    return table.column_count()


def data_row_count(table: Table) -> int:
    return table.data_row_count()


def create_blank(rows: int, cols: int, fill: str = "") -> Table:
    return Table([[fill] * cols for _ in range(rows)])


def rectangularize(table: Table, padding: str = "") -> Table:
    """Pad short data rows on the right so all rows share one width."""
    width = max((len(row) for row in table.data_rows()), default=0)
    rows = []
    for row in table.rows:
        if is_separator(row):
            rows.append(SEPARATOR)
        else:
            rows.append(list(row) + [padding] * (width - len(row)))
    return Table(rows)


def transpose(table: Table) -> Table:
    data = table.data_rows()
    if not data:
        raise EmptyTableError("transpose: table has no data rows")
    width = len(data[0])
    return Table([[row[c] for row in data] for c in range(width)])


def horizontal_concat(tables, padding: str = "") -> Table:
    tables = list(tables)
    if not tables:
        raise EmptyInputError("horizontal_concat: no tables given")
    data = [t.data_rows() for t in tables]
    widths = [t.column_count() for t in tables]
    height = max(len(rows) for rows in data)
    out = []
    for r in range(height):
        joined = []
        for rows, width in zip(data, widths):
            if r < len(rows):
                joined.extend(rows[r])
            else:
                joined.extend([padding] * width)
        out.append(joined)
    return Table(out)


def vertical_concat(tables, padding: str = "") -> Table:
    tables = list(tables)
    if not tables:
        raise EmptyInputError("vertical_concat: no tables given")
    data = [row for t in tables for row in t.data_rows()]
    width = max((len(row) for row in data), default=0)
    return Table([list(row) + [padding] * (width - len(row)) for row in data])


def insert_separators(table: Table, positions) -> Table:
    """Insert separators after the first ``p`` original rows for each ``p``.

    Positions refer to the original table; they are sorted and applied left
    to right, shifting each later insertion by the separators already added.
    """
    rows = Table.from_rows(table.rows).rows
    for shift, pos in enumerate(sorted(positions)):
        pos = max(0, min(pos, len(table.rows)))
        rows.insert(pos + shift, SEPARATOR)
    return Table(rows)
