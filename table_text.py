import pandas as pd

from table_errors import ParseError
from table_model import SEPARATOR, Table, is_separator


def is_table_line(line: str) -> bool:
    return line.lstrip().startswith("|")


def is_separator_line(line: str) -> bool:
    return line.lstrip().startswith("|-")


def _split_cells(line: str):
    body = line.strip()
    if body.startswith("|"):
        body = body[1:]
    if body.endswith("|"):
        body = body[:-1]
    return [cell.strip() for cell in body.split("|")]


def parse_table(text: str) -> Table:
    """Parse pipe-table text into a Table; blank lines are ignored."""
    rows = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        if not is_table_line(line):
            raise ParseError(f"parse_table: line {lineno} is not a table line", line)
        if is_separator_line(line):
            rows.append(SEPARATOR)
        else:
            rows.append(_split_cells(line))
    return Table(rows)


def format_table(table: Table, indent: str = "") -> str:
    data = table.data_rows()
    width = max((len(row) for row in data), default=0)
    col_widths = [1] * width
    for row in data:
        for idx, cell in enumerate(row):
            col_widths[idx] = max(col_widths[idx], len(cell))

    lines = []
    for row in table.rows:
        if is_separator(row):
            if width == 0:
                lines.append(indent + "|-|")
            else:
                lines.append(
                    indent + "|" + "+".join("-" * (w + 2) for w in col_widths) + "|"
                )
            continue
        padded = list(row) + [""] * (width - len(row))
        cells = [f" {cell.ljust(col_widths[i])} " for i, cell in enumerate(padded)]
        lines.append(indent + "|" + "|".join(cells) + "|")
    return "\n".join(lines)


def table_from_csv(path: str, header: bool = True) -> Table:
    df = pd.read_csv(
        path,
        dtype=str,
        keep_default_na=False,
        header=0 if header else None,
    )
    return Table.from_frame(df, header=header)
