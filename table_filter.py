import logging
import shlex
from dataclasses import dataclass, field, fields
from typing import List, Optional

from filter_expression import bind, compile_expression
from function_registry import FunctionRegistry, filter_registry
from range_selector import resolve
from table_document import TableDocument
from table_errors import EvaluationError, ParseError, PreconditionError
from table_model import Table, vertical_concat

logger = logging.getLogger(__name__)

NAMESCOL_CHOICES = ("none", "first", "last")
_FALSE_WORDS = {"nil", "no", "false", "f", "0", "off"}


def filter_list(
    table: Table,
    rows=None,
    cols=None,
    filter_expr=None,
    noerrors: bool = False,
    registry: Optional[FunctionRegistry] = None,
) -> Table:
    """Select rows, keep those matching ``filter_expr``, then project columns.

    ``n`` counts every selected row considered by the filter, matching or not.
    With ``noerrors`` a row whose evaluation fails is dropped instead of
    aborting the whole filter.
    """
    data = table.data_rows()
    ncols = table.column_count()
    selected = [data[i - 1] for i in resolve(rows, len(data))]

    if filter_expr is not None and str(filter_expr).strip():
        expr = compile_expression(filter_expr, registry or filter_registry())
        kept = []
        for counter, row in enumerate(selected, start=1):
            env = bind(row, counter, ncols)
            try:
                keep = expr.matches(env)
            except EvaluationError as e:
                if not noerrors:
                    raise EvaluationError(f"filter_list: row {counter}: {e}") from e
                logger.debug("filter_list: dropping row %d: %s", counter, e)
                keep = False
            if keep:
                kept.append(row)
        selected = kept

    col_idx = resolve(cols, ncols)
    return Table([[row[c - 1] if c <= len(row) else "" for c in col_idx] for row in selected])


def fetch_remote_table(name_or_id: str, document: TableDocument) -> Table:
    return document.fetch_table(name_or_id)


def merge_named(
    table_refs,
    document: TableDocument,
    names_col: Optional[str] = None,
    padding: str = "",
) -> Table:
    """Stack the named tables, optionally tagging each row with its source."""
    refs = list(table_refs or [])
    placement = (names_col or "none").lower()
    if placement not in NAMESCOL_CHOICES:
        raise ParseError("namescol must be none, first or last", names_col)

    tables = [fetch_remote_table(ref, document) for ref in refs]
    merged = vertical_concat(tables, padding)
    if placement == "none":
        return merged

    width = merged.column_count()
    sources = [ref for ref, t in zip(refs, tables) for _ in t.data_rows()]
    rows = []
    for ref, row in zip(sources, merged.rows):
        row = list(row) + [padding] * (width - len(row))
        rows.append([ref] + row if placement == "first" else row + [ref])
    return Table(rows)


@dataclass
class FilterBlockParams:
    tblnames: List[str] = field(default_factory=list)
    rows: Optional[str] = None
    cols: Optional[str] = None
    filter: Optional[str] = None
    noerrors: bool = False
    namescol: str = "none"

    @classmethod
    def from_layers(cls, *layers) -> "FilterBlockParams":
        """Merge parameter mappings; later layers take precedence."""
        merged = {}
        for layer in layers:
            for key, value in (layer or {}).items():
                if value is not None:
                    merged[key] = value
        params = cls()
        known = {f.name for f in fields(cls)}
        for key, value in merged.items():
            if key not in known:
                logger.warning("ignoring unknown tblfilter parameter %r", key)
                continue
            setattr(params, key, value)
        params.tblnames = _as_list(params.tblnames)
        params.noerrors = _as_bool(params.noerrors)
        params.namescol = str(params.namescol or "none").lower()
        if params.namescol not in NAMESCOL_CHOICES:
            raise ParseError("namescol must be none, first or last", params.namescol)
        return params


def _as_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    return [str(v) for v in value]


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_WORDS
    return bool(value)


def parse_block_params(text: str) -> dict:
    """Parse ``:key value ...`` parameter text with shell-style quoting.

    ``tblnames`` keeps every value as a list; a key with no value is true.
    """
    try:
        tokens = shlex.split(text or "")
    except ValueError as e:
        raise ParseError(f"invalid block parameters ({e})", text) from None

    params = {}
    key = None
    values: List[str] = []

    def _flush():
        if key is None:
            return
        if key == "tblnames":
            params[key] = list(values)
        elif not values:
            params[key] = True
        else:
            params[key] = " ".join(values)

    for token in tokens:
        if token.startswith(":") and len(token) > 1:
            _flush()
            key = token[1:].lower()
            values = []
        elif key is None:
            raise ParseError("parameter value without a key", token)
        else:
            values.append(token)
    _flush()
    return params


def inherited_params(document: TableDocument, defaults: Optional[dict] = None) -> list:
    """Default layers for a filter block: config defaults, then document property."""
    layers = [dict(defaults or {})]
    prop = document.property_value("tblfilter")
    if prop:
        layers.append(parse_block_params(prop))
    return layers


def run_filter_block(
    params,
    document: TableDocument,
    defaults: Optional[dict] = None,
    padding: str = "",
    registry: Optional[FunctionRegistry] = None,
) -> Table:
    if isinstance(params, str):
        params = parse_block_params(params)
    if isinstance(params, dict):
        params = FilterBlockParams.from_layers(*inherited_params(document, defaults), params)
    if not params.tblnames:
        raise PreconditionError("tblfilter: no table given in :tblnames")

    merged = merge_named(params.tblnames, document, params.namescol, padding)
    return filter_list(
        merged,
        rows=params.rows,
        cols=params.cols,
        filter_expr=params.filter,
        noerrors=params.noerrors,
        registry=registry,
    )
