import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from narrowing_solver import NarrowingRequest
from table_errors import (
    EmptyTableError,
    NarrowingEngineError,
    NarrowingInfeasibleError,
    NarrowingUnavailableError,
    PreconditionError,
)
from table_model import SEPARATOR, Table, is_separator

logger = logging.getLogger(__name__)

Solver = Callable[[NarrowingRequest], Tuple[List[int], List[int]]]


@dataclass
class NarrowingPlan:
    maxwidth: int
    fixed_columns: List[int] = field(default_factory=list)
    widths: List[int] = field(default_factory=list)  # one per column
    rows: List[int] = field(default_factory=list)  # one per data row

    def total_rows(self) -> int:
        return int(sum(self.rows))


def wrap_text(text: str, width: int) -> List[str]:
    """Greedy word wrap; words are never split, so a long word overflows.

    Text that already fits is returned untouched, inner spacing included.
    """
    width = max(1, width)
    if len(text) <= width:
        return [text]
    words = text.split()
    if not words:
        return [""]
    lines = []
    current = ""
    for word in words:
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= width:
            current = f"{current} {word}"
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines


def _append_group(out: list, group: list, separators: bool, rows: list, idx: int) -> None:
    out.extend(group)
    if separators and len(group) > 1:
        at_end = idx + 1 >= len(rows)
        if not at_end and not is_separator(rows[idx + 1]):
            out.append(SEPARATOR)


def narrow_column(table: Table, col: int, width: int, separators: bool = False) -> Table:
    """Wrap over-wide cells of one column onto extra rows below their row."""
    ncols = table.column_count()
    if col < 1 or col > ncols:
        raise PreconditionError(f"narrow_column: column {col} outside 1..{ncols}")
    if width < 1:
        raise PreconditionError(f"narrow_column: width must be positive, got {width}")

    out = []
    for idx, row in enumerate(table.rows):
        if is_separator(row):
            out.append(SEPARATOR)
            continue
        cell = row[col - 1]
        lines = wrap_text(cell, width) if len(cell) > width else [cell]
        group = [list(row)]
        group[0][col - 1] = lines[0]
        for extra in lines[1:]:
            blank = [""] * len(row)
            blank[col - 1] = extra
            group.append(blank)
        _append_group(out, group, separators, table.rows, idx)
    return Table(out)


def _fit_lines(cell: str, width: int, rows: int) -> List[str]:
    # widen until the wrap fits in the allotted rows
    limit = max(width, len(cell), 1)
    lines = wrap_text(cell, width)
    while len(lines) > rows and width < limit:
        width += 1
        lines = wrap_text(cell, width)
    return lines


def plan_narrowing(
    table: Table,
    maxwidth: int,
    fixed_columns=(),
    solver: Optional[Solver] = None,
) -> NarrowingPlan:
    """Ask the optimizer for column widths and per-row row counts."""
    if solver is None:
        raise NarrowingUnavailableError("narrow_table: narrowing optimizer is not available")
    data = table.data_rows()
    if not data:
        raise EmptyTableError("narrow_table: table has no data rows")

    ncols = table.column_count()
    fixed = sorted(set(int(c) for c in fixed_columns))
    for c in fixed:
        if c < 1 or c > ncols:
            raise PreconditionError(f"narrow_table: fixed column {c} outside 1..{ncols}")
    narrowable = [c for c in range(1, ncols + 1) if c not in fixed]

    lengths = np.array([[len(cell) for cell in row] for row in data], dtype=int)
    col_max = lengths.max(axis=0)
    fixed_total = int(col_max[[c - 1 for c in fixed]].sum()) if fixed else 0
    budget = maxwidth - fixed_total

    widths = [int(w) for w in col_max]
    if not narrowable:
        if budget < 0:
            raise NarrowingInfeasibleError(
                f"narrow_table: fixed columns need {fixed_total} > {maxwidth} characters"
            )
        return NarrowingPlan(maxwidth, fixed, widths, [1] * len(data))
    if budget < len(narrowable):
        raise NarrowingInfeasibleError(
            f"narrow_table: {budget} characters left for {len(narrowable)} columns"
        )

    sub = lengths[:, [c - 1 for c in narrowable]]
    request = NarrowingRequest(len(data), len(narrowable), budget, sub)
    col_widths, row_counts = solver(request)

    if any(w <= 0 for w in col_widths):
        raise NarrowingInfeasibleError(
            f"narrow_table: no layout fits {maxwidth} characters"
        )
    if any(r < 1 for r in row_counts):
        raise NarrowingEngineError("narrow_table: optimizer returned a row count below 1")
    if sum(col_widths) > budget:
        raise NarrowingEngineError(
            f"narrow_table: optimizer widths sum to {sum(col_widths)} > {budget}"
        )
    allowed = np.outer(np.asarray(row_counts), np.asarray(col_widths))
    bad = np.argwhere(sub > allowed)
    if bad.size:
        r, c = bad[0]
        raise NarrowingEngineError(
            f"narrow_table: cell at row {r + 1}, column {narrowable[c]} does not fit the plan"
        )

    for c, w in zip(narrowable, col_widths):
        widths[c - 1] = int(w)
    logger.debug("narrow_table plan widths=%s rows=%s", widths, row_counts)
    return NarrowingPlan(maxwidth, fixed, widths, [int(r) for r in row_counts])


def apply_plan(table: Table, plan: NarrowingPlan, separators: bool = False) -> Table:
    out = []
    data_idx = 0
    for idx, row in enumerate(table.rows):
        if is_separator(row):
            out.append(SEPARATOR)
            continue
        rows_needed = plan.rows[data_idx]
        data_idx += 1
        if rows_needed <= 1:
            out.append(list(row))
            continue
        columns = [_fit_lines(cell, plan.widths[c], rows_needed) for c, cell in enumerate(row)]
        height = max(rows_needed, max(len(lines) for lines in columns))
        group = [
            [lines[k] if k < len(lines) else "" for lines in columns] for k in range(height)
        ]
        _append_group(out, group, separators, table.rows, idx)
    return Table(out)


def narrow_table(
    table: Table,
    maxwidth: int,
    fixed_columns=(),
    separators: bool = False,
    solver: Optional[Solver] = None,
) -> Table:
    """Narrow the whole table to ``maxwidth`` using the optimizer's plan.

    The input table is never modified; a new table is returned only after the
    optimizer's answer has been fully parsed and checked.
    """
    plan = plan_narrowing(table, maxwidth, fixed_columns, solver)
    return apply_plan(table, plan, separators)
