import math
from typing import Callable, List, Tuple

import numpy as np

from function_registry import parse_number
from table_errors import ParseError, PreconditionError
from table_model import Table, is_separator


def _numbers(values) -> List[float]:
    return [x for x in (parse_number(v) for v in values) if not math.isnan(x)]


def _numeric(fn):
    def _reduce(values):
        nums = _numbers(values)
        return fn(nums) if nums else ""

    return _reduce


def _nonempty(values):
    return [v for v in values if v]


REDUCERS = {
    "join": lambda values: " ".join(_nonempty(values)),
    "comma": lambda values: ", ".join(_nonempty(values)),
    "concat": lambda values: "".join(values),
    "sum": lambda values: float(np.sum(_numbers(values))),
    "mean": _numeric(lambda nums: float(np.mean(nums))),
    "min": _numeric(min),
    "max": _numeric(max),
    "count": lambda values: len(_nonempty(values)),
    "first": lambda values: next(iter(_nonempty(values)), ""),
    "last": lambda values: next(iter(reversed(_nonempty(values))), ""),
}


def get_reducer(reduce_fn) -> Callable[[List[str]], object]:
    if callable(reduce_fn):
        return reduce_fn
    try:
        return REDUCERS[reduce_fn]
    except KeyError:
        raise ParseError("unknown reduction", reduce_fn) from None


def format_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def infer_row_count(table: Table, line: int) -> int:
    """Data rows from ``line`` down to the next separator or the table end."""
    rows = table.rows
    pos = table.position_of(line)
    count = 0
    while pos < len(rows) and not is_separator(rows[pos]):
        count += 1
        pos += 1
    return count


def _flatten_rows(rows, pos: int, col: int, nrows: int, reduce) -> List[int]:
    """Flatten in place on a row list; returns consumed row positions."""
    step = 1 if nrows > 0 else -1
    wanted = max(1, abs(nrows))
    consumed = []
    p = pos
    while 0 <= p < len(rows) and len(consumed) < wanted:
        if not is_separator(rows[p]):
            consumed.append(p)
        p += step

    # values are collected in document order whichever way the run goes
    ordered = sorted(consumed)
    values = [rows[p][col - 1].strip() for p in ordered]
    for p in consumed[1:]:
        rows[p][col - 1] = ""
    rows[pos][col - 1] = format_value(reduce(values))
    return consumed


def _check_column(table: Table, col: int, op: str) -> None:
    width = table.column_count()
    if col < 1 or col > width:
        raise PreconditionError(f"{op}: column {col} outside 1..{width}")


def flatten_column(table: Table, start, nrows, reduce_fn) -> Tuple[Table, List[int]]:
    """Collapse ``abs(nrows)`` cells of one column into the start cell.

    Positive ``nrows`` runs downward, negative upward; separators are skipped
    without being counted. ``None`` flattens down to the next separator. The
    other consumed cells are blanked. Returns the new table and the consumed
    row positions (indices into ``rows``, start row first).
    """
    line, col = start
    _check_column(table, col, "flatten_column")
    try:
        pos = table.position_of(line)
    except IndexError as e:
        raise PreconditionError(f"flatten_column: {e}") from None
    if nrows is None:
        nrows = infer_row_count(table, line)

    result = table.copy()
    consumed = _flatten_rows(result.rows, pos, col, int(nrows), get_reducer(reduce_fn))
    return result, consumed


def _column_span(start_col: int, ncols, width: int) -> List[int]:
    if ncols is None:
        return list(range(start_col, width + 1))
    if ncols >= 0:
        return list(range(start_col, min(width, start_col + max(1, ncols) - 1) + 1))
    return list(range(max(1, start_col + ncols + 1), start_col + 1))


def flatten_columns(
    table: Table,
    start,
    nrows,
    ncols=None,
    reduce_fn="join",
    repetitions: int = 1,
) -> Table:
    """Flatten a span of columns from the start row, then drop emptied rows.

    ``nrows`` is one count for every column or a sequence with one count per
    column (``None`` entries flatten to the next separator). A consumed row
    is removed only if every one of its cells is blank afterwards. The whole
    step repeats ``repetitions`` times, each time from the first row past the
    rows consumed by the previous step.
    """
    line, col = start
    _check_column(table, col, "flatten_columns")
    cols = _column_span(col, ncols, table.column_count())
    if isinstance(nrows, (list, tuple)):
        counts = list(nrows)
        if len(counts) != len(cols):
            raise ParseError(
                f"flatten_columns: {len(counts)} row counts for {len(cols)} columns", nrows
            )
    else:
        counts = [nrows] * len(cols)

    reduce = get_reducer(reduce_fn)
    current = table.copy()
    try:
        pos = current.position_of(line)
    except IndexError as e:
        raise PreconditionError(f"flatten_columns: {e}") from None

    for _ in range(max(1, repetitions)):
        rows = current.rows
        here = sum(1 for p in current.data_positions() if p <= pos)
        consumed_all = set()
        resolved = [infer_row_count(current, here) if n is None else int(n) for n in counts]
        direction = -1 if resolved and resolved[0] < 0 else 1
        for c, n in zip(cols, resolved):
            consumed_all.update(_flatten_rows(rows, pos, c, n, reduce))

        deleted = sorted(
            p for p in consumed_all if p != pos and all(not cell.strip() for cell in rows[p])
        )
        boundary = max(consumed_all) if direction > 0 else min(consumed_all)
        if direction > 0:
            following = [p for p in current.data_positions() if p > boundary]
        else:
            following = [p for p in reversed(current.data_positions()) if p < boundary]

        for p in reversed(deleted):
            del rows[p]
        if not following:
            break
        nxt = following[0]
        pos = nxt - sum(1 for p in deleted if p < nxt)
    return current
