import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from range_selector import resolve_index

FILTER_CONTEXT = "filter"
JUMP_CONTEXT = "jump"

_TIMESTAMP_RE = re.compile(
    r"^[<\[]?\s*(\d{4}-\d{1,2}-\d{1,2})"
    r"(?:\s+[A-Za-z]{2,3}\.?)?"
    r"(?:\s+(\d{1,2}:\d{2}(?::\d{2})?))?\s*[>\]]?$"
)


@dataclass
class FunctionBinding:
    name: str
    arity: int
    description: str
    impl: Callable[..., Any]
    optional: int = 0

    def accepts(self, nargs: int) -> bool:
        return self.arity <= nargs <= self.arity + self.optional


class FunctionRegistry:
    """Named functions callable from expressions in one evaluation context.

    Implementations receive the evaluation environment as first argument.
    ``foreign_names`` lists functions that exist only in the other context so
    that using them can be rejected instead of reported as unknown.
    """

    def __init__(self, context: str, foreign_names=()):
        self.context = context
        self.foreign_names = set(foreign_names)
        self._bindings: Dict[str, FunctionBinding] = {}

    def add(self, binding: FunctionBinding) -> None:
        self._bindings[binding.name] = binding

    def register(self, name: str, arity: int, description: str, optional: int = 0):
        def _decorator(fn):
            self.add(FunctionBinding(name, arity, description, fn, optional))
            return fn

        return _decorator

    def get(self, name: str) -> Optional[FunctionBinding]:
        return self._bindings.get(name)

    def is_foreign(self, name: str) -> bool:
        return name in self.foreign_names and name not in self._bindings

    def names(self) -> List[str]:
        return sorted(self._bindings)

    def describe(self) -> List[str]:
        return [
            f"{b.name}/{b.arity}: {b.description}"
            for b in sorted(self._bindings.values(), key=lambda b: b.name)
        ]

    def copy(self) -> "FunctionRegistry":
        clone = FunctionRegistry(self.context, self.foreign_names)
        clone._bindings = dict(self._bindings)
        return clone

    def __contains__(self, name) -> bool:
        return name in self._bindings


# ---------- value helpers ----------
def parse_number(value) -> float:
    """Numeric value of a cell, or NaN when it does not parse."""
    if value is None:
        return float("nan")
    if isinstance(value, (int, float, np.number)):
        return float(value)
    text = str(value).strip()
    if not text:
        return float("nan")
    return float(pd.to_numeric(text, errors="coerce"))


def parse_timestamp(value) -> Optional[pd.Timestamp]:
    if value is None:
        return None
    match = _TIMESTAMP_RE.match(str(value).strip())
    if not match:
        return None
    date, time = match.group(1), match.group(2)
    stamp = pd.to_datetime(f"{date} {time}" if time else date, errors="coerce")
    return None if pd.isna(stamp) else stamp


def _is_plain_number(value) -> bool:
    return isinstance(value, (int, float, np.number)) and not isinstance(value, bool)


def _text(value) -> str:
    return "" if value is None else str(value)


def _sign(a, b) -> int:
    return (a > b) - (a < b)


def compare_values(a, b) -> Optional[int]:
    """Three-way compare: numeric, then timestamp, then lexicographic.

    Numeric comparison applies when either side is a number or both sides are
    number-shaped text. Returns None when a numeric comparison hits NaN.
    """
    if _is_plain_number(a) or _is_plain_number(b):
        x, y = parse_number(a), parse_number(b)
        if math.isnan(x) or math.isnan(y):
            return None
        return _sign(x, y)

    sa, sb = _text(a), _text(b)
    x, y = parse_number(sa), parse_number(sb)
    if not math.isnan(x) and not math.isnan(y):
        return _sign(x, y)

    ta, tb = parse_timestamp(sa), parse_timestamp(sb)
    if ta is not None and tb is not None:
        return _sign(ta, tb)

    return _sign(sa, sb)


def between(value, low, high) -> bool:
    lo = compare_values(value, low)
    hi = compare_values(value, high)
    return lo is not None and hi is not None and lo >= 0 and hi <= 0


# ---------- filter-context functions ----------
_FILTER = FunctionRegistry(FILTER_CONTEXT)


@_FILTER.register("between", 3, "true when low <= value <= high")
def _between(env, value, low, high):
    return between(value, low, high)


@_FILTER.register("match", 2, "regex search in a value")
def _match(env, pattern, value):
    return re.search(pattern, _text(value)) is not None


@_FILTER.register("contains", 2, "substring test")
def _contains(env, value, sub):
    return _text(sub) in _text(value)


@_FILTER.register("isempty", 1, "value is absent or blank")
def _isempty(env, value):
    return value is None or _text(value).strip() == ""


@_FILTER.register("num", 1, "numeric parse, NaN on failure")
def _num(env, value):
    return parse_number(value)


@_FILTER.register("cell", 1, "cell of the current row by index, 0/negative from end")
def _cell(env, index):
    row = env.row or []
    if not row:
        return None
    return row[resolve_index(int(index), len(row)) - 1]


@_FILTER.register("anycell", 1, "any cell of the current row matches a regex")
def _anycell(env, pattern):
    return any(re.search(pattern, cell) for cell in env.row or [])


@_FILTER.register("rowsum", 0, "sum of the numeric cells of the current row")
def _rowsum(env):
    values = [parse_number(cell) for cell in env.row or []]
    return float(np.nansum(values)) if values else 0.0


@_FILTER.register("lower", 1, "lowercase text")
def _lower(env, value):
    return _text(value).lower()


@_FILTER.register("upper", 1, "uppercase text")
def _upper(env, value):
    return _text(value).upper()


@_FILTER.register("strip", 1, "strip surrounding whitespace")
def _strip(env, value):
    return _text(value).strip()


@_FILTER.register("length", 1, "length of the text")
def _length(env, value):
    return len(_text(value))


# ---------- jump-context functions ----------
_JUMP = FunctionRegistry(JUMP_CONTEXT)


@_JUMP.register("getfield", 0, "cell content at a row/column offset", optional=2)
def _getfield(env, rowoff=0, coloff=0):
    return env.session.get_field(int(rowoff), int(coloff))


@_JUMP.register("setfield", 1, "replace cell content at a row/column offset", optional=2)
def _setfield(env, value, rowoff=0, coloff=0):
    return env.session.set_field(value, int(rowoff), int(coloff))


@_JUMP.register("matchfield", 1, "regex search in the cell at an offset", optional=2)
def _matchfield(env, pattern, rowoff=0, coloff=0):
    return env.session.match_field(pattern, int(rowoff), int(coloff))


@_JUMP.register("line", 0, "current data line")
def _line(env):
    return env.session.line


@_JUMP.register("column", 0, "current column")
def _column(env):
    return env.session.col


@_JUMP.register("getvar", 1, "read persistent jump state", optional=1)
def _getvar(env, name, default=None):
    return env.session.state.get(name, default)


@_JUMP.register("setvar", 2, "write persistent jump state, returns true")
def _setvar(env, name, value):
    env.session.state[name] = value
    return True


@_JUMP.register("checkvar", 2, "persistent jump state equals a value")
def _checkvar(env, name, value):
    return env.session.state.get(name) == value


@_JUMP.register("incvar", 1, "add to a persistent counter and return it", optional=1)
def _incvar(env, name, step=1):
    value = env.session.state.get(name, 0) + step
    env.session.state[name] = value
    return value


@_JUMP.register("flatten", 1, "flatten cells below (or above) into this one", optional=1)
def _flatten(env, nrows, reducer="join"):
    return env.session.flatten(nrows, reducer)


_FILTER.foreign_names = set(_JUMP.names())
_JUMP.foreign_names = set(_FILTER.names())


def filter_registry() -> FunctionRegistry:
    return _FILTER.copy()


def jump_registry() -> FunctionRegistry:
    return _JUMP.copy()
