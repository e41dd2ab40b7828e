import argparse
import logging
import sys

from column_flattener import REDUCERS, flatten_columns
from config_paths import load_config
from jump_engine import JumpSession
from jump_presets import build_preset_table, parse_condition_literal
from narrowing import narrow_column, narrow_table
from narrowing_solver import solver_from_config
from table_document import TableDocument
from table_errors import TableError
from table_filter import parse_block_params, run_filter_block
from table_model import transpose
from table_text import format_table, table_from_csv

try:
    from _version import __version__
except Exception:
    __version__ = "0.0.0"


def _build_parser():
    parser = argparse.ArgumentParser(
        prog="tabjump", description="pipe-table filtering, reshaping and navigation"
    )
    parser.add_argument("-v", "--version", action="store_true", help="print the version")
    parser.add_argument("--verbose", action="store_true", help="log debug output to stderr")
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("filter", help="run a tblfilter over named tables")
    p.add_argument("document")
    p.add_argument("--params", help="':tblnames a b :rows 1:3 ...' parameter text")
    p.add_argument("--tblnames", nargs="+")
    p.add_argument("--rows")
    p.add_argument("--cols")
    p.add_argument("--filter")
    p.add_argument("--noerrors", action="store_true", default=None)
    p.add_argument("--namescol", choices=["none", "first", "last"])

    p = sub.add_parser("transpose", help="transpose a named table")
    p.add_argument("document")
    p.add_argument("table")

    p = sub.add_parser("narrow", help="narrow a named table")
    p.add_argument("document")
    p.add_argument("table")
    p.add_argument("--width", type=int, required=True)
    p.add_argument("--column", type=int, help="wrap only this column to --width")
    p.add_argument("--fixed", type=int, nargs="*", default=[])
    p.add_argument("--separators", action="store_true")

    p = sub.add_parser("flatten", help="flatten columns of a named table")
    p.add_argument("document")
    p.add_argument("table")
    p.add_argument("--start", type=int, nargs=2, metavar=("LINE", "COL"), default=[1, 1])
    p.add_argument("--nrows", type=int, nargs="*", help="one count, or one per column")
    p.add_argument("--ncols", type=int)
    p.add_argument("--reduce", choices=sorted(REDUCERS), default="join")
    p.add_argument("--repeat", type=int, default=1)

    p = sub.add_parser("jump", help="run jumps on a named table and print the cursor")
    p.add_argument("document")
    p.add_argument("table")
    p.add_argument("--start", type=int, nargs=2, metavar=("LINE", "COL"), default=[1, 1])
    p.add_argument("--condition", required=True, help="preset name, regex or literal")
    p.add_argument("--steps", type=int, default=1)
    p.add_argument("--direction", default="right")
    p.add_argument("--repeat", type=int, default=1, help="number of jump invocations")

    p = sub.add_parser("import-csv", help="print a CSV file as a pipe table")
    p.add_argument("path")
    p.add_argument("--no-header", action="store_true")
    return parser


def _cmd_filter(args, cfg):
    document = TableDocument.from_path(args.document)
    params = parse_block_params(args.params) if args.params else {}
    for key in ("tblnames", "rows", "cols", "filter", "noerrors", "namescol"):
        value = getattr(args, key)
        if value is not None:
            params[key] = value
    table = run_filter_block(
        params, document, defaults=cfg.get("FILTER_DEFAULTS"), padding=cfg.get("PADDING", "")
    )
    print(format_table(table))


def _cmd_transpose(args, cfg):
    document = TableDocument.from_path(args.document)
    print(format_table(transpose(document.fetch_table(args.table))))


def _cmd_narrow(args, cfg):
    document = TableDocument.from_path(args.document)
    table = document.fetch_table(args.table)
    if args.column:
        result = narrow_column(table, args.column, args.width, args.separators)
    else:
        result = narrow_table(
            table,
            args.width,
            fixed_columns=args.fixed,
            separators=args.separators,
            solver=solver_from_config(cfg),
        )
    print(format_table(result))


def _cmd_flatten(args, cfg):
    document = TableDocument.from_path(args.document)
    table = document.fetch_table(args.table)
    nrows = args.nrows or [None]
    result = flatten_columns(
        table,
        tuple(args.start),
        nrows[0] if len(nrows) == 1 else nrows,
        ncols=args.ncols,
        reduce_fn=args.reduce,
        repetitions=args.repeat,
    )
    print(format_table(result))


def _cmd_jump(args, cfg):
    document = TableDocument.from_path(args.document)
    table = document.fetch_table(args.table)
    messages = []
    session = JumpSession(
        table,
        line=args.start[0],
        col=args.start[1],
        presets=build_preset_table(cfg.get("JUMP_PRESETS")),
        set_status=lambda msg, _ttl=None: messages.append(msg),
        condition=parse_condition_literal(args.condition),
        direction=args.direction,
    )
    for _ in range(max(1, args.repeat)):
        session.jump_next(args.steps)
        print(f"{session.line} {session.col}")
    for msg in messages:
        print(msg, file=sys.stderr)
    if session.table != table:
        print(format_table(session.table))


def _cmd_import_csv(args, cfg):
    print(format_table(table_from_csv(args.path, header=not args.no_header)))


_COMMANDS = {
    "filter": _cmd_filter,
    "transpose": _cmd_transpose,
    "narrow": _cmd_narrow,
    "flatten": _cmd_flatten,
    "jump": _cmd_jump,
    "import-csv": _cmd_import_csv,
}


def main(argv=None):
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return 0
    if not args.command:
        parser.print_help()
        return 0
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    cfg = load_config()
    try:
        _COMMANDS[args.command](args, cfg)
    except TableError as e:
        print(f"{args.command}: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"{args.command}: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
