"""Condition-driven cursor navigation over a table.

A condition is one of:

* a preset name (looked up in the session's preset table),
* a regex string, matched against the current cell,
* ``(regex, row_offset, col_offset)``, matched against a neighbouring cell,
* ``(line, column)`` with ``None`` meaning "current", a direct jump,
* ``("and", c, ...)``, ``("or", c, ...)``, ``("not", c)``,
* ``("jmpseq", c, ...)``, one child per step, cycling through the sequence,
* ``("expr", "<expression>")`` evaluated with the jump function registry.

Conditions may call functions that modify cells or the session state, so
each candidate cell is evaluated exactly once.
"""

import logging
import re
from typing import Callable, Optional

from column_flattener import flatten_column
from filter_expression import Environment, Expression, compile_expression
from function_registry import FunctionRegistry, jump_registry
from jump_presets import build_preset_table, normalize_condition
from navigation import OPPOSITE, NavigationController, check_direction
from range_selector import resolve_index
from table_errors import ParseError, PreconditionError
from table_model import Table

logger = logging.getLogger(__name__)

_KEYWORDS = ("and", "or", "not", "jmpseq", "expr")
_MAX_PRESET_DEPTH = 32


class JumpState(dict):
    """Key-value state kept across jumps for one editing session."""

    def reset(self):
        self.clear()


class _Goto:
    def __init__(self, line, col):
        self.line = line
        self.col = col


def _is_offset(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_coordinate_part(value) -> bool:
    return value is None or _is_offset(value)


class JumpSession:
    """Cursor, condition and state for one table-editing session.

    The session works on its own copy of the table; read edits made by
    condition functions from ``session.table``.
    """

    def __init__(
        self,
        table: Table,
        line: int = 1,
        col: int = 1,
        state: Optional[JumpState] = None,
        presets: Optional[dict] = None,
        registry: Optional[FunctionRegistry] = None,
        set_status: Optional[Callable[[str, float], None]] = None,
        condition=None,
        direction: str = "right",
    ):
        self.table = table.copy()
        self.line = line
        self.col = col
        self.state = state if state is not None else JumpState()
        self.presets = presets if presets is not None else build_preset_table()
        self.registry = registry or jump_registry()
        self._set_status = set_status or (lambda _msg, _ttl=None: None)
        self.condition = normalize_condition(condition)
        self.direction = check_direction(direction)
        self._running = False

    @property
    def position(self):
        return self.line, self.col

    def reset(self):
        self.state.reset()
        self.condition = None
        self.direction = "right"

    # ---------- cell access for condition functions ----------
    def _dims(self):
        return self.table.data_row_count(), self.table.column_count()

    def _offset(self, rowoff, coloff):
        nlines, ncols = self._dims()
        line, col = self.line + rowoff, self.col + coloff
        if 1 <= line <= nlines and 1 <= col <= ncols:
            return line, col
        return None

    def get_field(self, rowoff=0, coloff=0):
        target = self._offset(rowoff, coloff)
        if target is None:
            return None
        return self.table.cell(*target)

    def set_field(self, value, rowoff=0, coloff=0) -> bool:
        target = self._offset(rowoff, coloff)
        if target is None:
            return False
        self.table.set_cell(target[0], target[1], value)
        return True

    def match_field(self, pattern, rowoff=0, coloff=0) -> bool:
        text = self.get_field(rowoff, coloff)
        if text is None:
            return False
        return re.search(pattern, text.strip()) is not None

    def flatten(self, nrows, reducer="join") -> bool:
        self.table, _ = flatten_column(self.table, self.position, nrows, reducer)
        return True

    # ---------- condition grammar ----------
    def _regex(self, pattern, rowoff=0, coloff=0):
        try:
            compiled = re.compile(pattern)
        except re.error as e:
            raise ParseError(f"invalid regex in jump condition ({e})", pattern) from None

        def _pred():
            target = self._offset(rowoff, coloff)
            if target is None:
                return False
            return compiled.search(self.table.cell(*target).strip()) is not None

        return _pred

    def _coordinate(self, line, col):
        nlines, ncols = self._dims()
        return _Goto(
            None if line is None else resolve_index(line, nlines),
            None if col is None else resolve_index(col, ncols),
        )

    def _sequence_child(self, cond, sign):
        children = cond[1:]
        if not children:
            raise ParseError("jmpseq needs at least one condition", cond)
        key = f"jmpseq:{cond!r}"
        idx = self.state.get(key)
        if idx is None:
            idx = 0 if sign > 0 else len(children) - 1
        else:
            idx = (idx + sign) % len(children)
        self.state[key] = idx
        return children[idx]

    def _compile(self, cond, sign, depth=0):
        """Resolve ``cond`` into a predicate or a direct jump target."""
        if depth > _MAX_PRESET_DEPTH:
            raise ParseError("jump condition nests too deeply (preset cycle?)", cond)
        cond = normalize_condition(cond)

        if isinstance(cond, Expression):
            expr = compile_expression(cond, self.registry)
            return lambda: expr.matches(Environment(session=self))

        if isinstance(cond, str):
            if cond in self.presets:
                return self._compile(self.presets[cond], sign, depth + 1)
            return self._regex(cond)

        if not isinstance(cond, tuple) or not cond:
            raise ParseError("invalid jump condition", cond)

        head = cond[0]
        if len(cond) == 3 and isinstance(head, str) and _is_offset(cond[1]) and _is_offset(cond[2]):
            return self._regex(head, cond[1], cond[2])

        if len(cond) == 2 and all(_is_coordinate_part(v) for v in cond):
            return self._coordinate(*cond)

        if head not in _KEYWORDS:
            raise ParseError("invalid jump condition", cond)

        if head == "jmpseq":
            return self._compile(self._sequence_child(cond, sign), sign, depth + 1)

        if head == "expr":
            if len(cond) != 2:
                raise ParseError("expr takes one expression string", cond)
            expr = compile_expression(cond[1], self.registry)
            return lambda: expr.matches(Environment(session=self))

        children = [self._predicate(c, sign, depth + 1) for c in cond[1:]]
        if not children:
            raise ParseError(f"{head} needs at least one condition", cond)
        if head == "not":
            if len(children) != 1:
                raise ParseError("not takes exactly one condition", cond)
            return lambda: not children[0]()
        if head == "and":
            return lambda: all(child() for child in children)
        return lambda: any(child() for child in children)

    def _predicate(self, cond, sign, depth):
        compiled = self._compile(cond, sign, depth)
        if isinstance(compiled, _Goto):
            goto = compiled
            return lambda: (goto.line is None or goto.line == self.line) and (
                goto.col is None or goto.col == self.col
            )
        return compiled

    # ---------- traversal ----------
    def jump_next(self, steps: int = 1, condition=None, direction: Optional[str] = None) -> bool:
        """Move ``steps`` matches forward (backward when negative).

        Returns False, with the cursor and table restored, when a full cycle
        over every cell finds no match.
        """
        if self._running:
            raise PreconditionError("jump_next: jumps cannot be nested inside a condition")
        if direction is not None:
            self.direction = check_direction(direction)
        if condition is not None:
            self.condition = normalize_condition(condition)
        check_direction(self.direction)
        if self.condition is None:
            raise PreconditionError("jump_next: no jump condition set")

        nlines, ncols = self._dims()
        if nlines == 0 or ncols == 0:
            raise PreconditionError("jump_next: not inside a table")
        if not (1 <= self.line <= nlines and 1 <= self.col <= ncols):
            raise PreconditionError(
                f"jump_next: cursor ({self.line}, {self.col}) is outside the table"
            )

        sign = 1 if steps >= 0 else -1
        direction = self.direction if sign > 0 else OPPOSITE[self.direction]
        start = self.position
        committed = self.table
        saved_state = dict(self.state)
        # conditions may edit cells; work on a copy until every step succeeds
        self.table = committed.copy()
        self._running = True
        try:
            for _ in range(abs(steps)):
                if not self._step(sign, direction):
                    self._restore(start, committed, saved_state)
                    self._set_status("No matching cell", 2)
                    logger.debug("jump_next: full cycle from %s without a match", start)
                    return False
        except Exception:
            self._restore(start, committed, saved_state)
            raise
        finally:
            self._running = False
        return True

    def jump_prev(self, steps: int = 1, condition=None, direction: Optional[str] = None) -> bool:
        return self.jump_next(-steps, condition, direction)

    def _step(self, sign, direction) -> bool:
        target = self._compile(self.condition, sign)
        if isinstance(target, _Goto):
            self.line = target.line if target.line is not None else self.line
            self.col = target.col if target.col is not None else self.col
            return True

        nav = NavigationController(*self._dims())
        for _ in range(nav.total_cells):
            self.line, self.col = nav.move(self.line, self.col, direction)
            if target():
                return True
        return False

    def _restore(self, position, table, state):
        self.line, self.col = position
        self.table = table
        self.state.clear()
        self.state.update(state)
