"""Boundary to the external optimizer that plans table narrowing.

Request (written to the optimizer's stdin) is whitespace separated integers::

    <nrows> <ncols> <maxwidth>
    <len r1c1> <len r1c2> ...
    ...

The response on stdout has two lines, ``Widths: <ncols ints>`` and
``Rows: <nrows ints>``; stderr must contain the configured success marker.
"""

import logging
import shutil
import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from table_errors import NarrowingEngineError, NarrowingUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_SUCCESS_MARKER = "SOLVED"


@dataclass
class NarrowingRequest:
    nrows: int
    ncols: int
    maxwidth: int
    lengths: np.ndarray  # shape (nrows, ncols)


def format_request(request: NarrowingRequest) -> str:
    lines = [f"{request.nrows} {request.ncols} {request.maxwidth}"]
    for row in np.asarray(request.lengths, dtype=int).reshape(request.nrows, request.ncols):
        lines.append(" ".join(str(int(v)) for v in row))
    return "\n".join(lines) + "\n"


def _parse_ints(label: str, text: str, expected: int, diagnostic: str) -> List[int]:
    try:
        values = [int(tok) for tok in text.split()]
    except ValueError:
        raise NarrowingEngineError(f"optimizer returned non-integer {label}", diagnostic) from None
    if len(values) != expected:
        raise NarrowingEngineError(
            f"optimizer returned {len(values)} {label}, expected {expected}", diagnostic
        )
    return values


def parse_response(output: str, nrows: int, ncols: int, diagnostic: str = "") -> Tuple[List[int], List[int]]:
    widths_text = rows_text = None
    for line in output.splitlines():
        stripped = line.strip()
        if stripped.startswith("Widths:"):
            widths_text = stripped[len("Widths:"):]
        elif stripped.startswith("Rows:"):
            rows_text = stripped[len("Rows:"):]
    if widths_text is None or rows_text is None:
        raise NarrowingEngineError(
            "optimizer output lacks Widths/Rows lines", diagnostic or output
        )
    widths = _parse_ints("widths", widths_text, ncols, diagnostic or output)
    rows = _parse_ints("row counts", rows_text, nrows, diagnostic or output)
    return widths, rows


class SubprocessSolver:
    """Runs the optimizer as a child process with a deadline."""

    def __init__(
        self,
        argv: Sequence[str],
        timeout_seconds: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
        success_marker: Optional[str] = DEFAULT_SUCCESS_MARKER,
    ):
        self.argv = list(argv)
        self.timeout_seconds = timeout_seconds or DEFAULT_TIMEOUT_SECONDS
        self.success_marker = success_marker

    def available(self) -> bool:
        return bool(self.argv) and shutil.which(self.argv[0]) is not None

    def __call__(self, request: NarrowingRequest) -> Tuple[List[int], List[int]]:
        if not self.argv:
            raise NarrowingUnavailableError("no narrowing optimizer configured")
        payload = format_request(request)
        logger.debug("running optimizer %s on %dx%d", self.argv, request.nrows, request.ncols)
        started = time.monotonic()
        try:
            proc = subprocess.run(
                self.argv,
                input=payload,
                text=True,
                capture_output=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError:
            raise NarrowingUnavailableError(
                f"narrowing optimizer not found: {self.argv[0]}"
            ) from None
        except subprocess.TimeoutExpired as e:
            stderr = e.stderr.decode("utf-8", "replace") if isinstance(e.stderr, bytes) else (e.stderr or "")
            raise NarrowingEngineError(
                f"optimizer timed out after {self.timeout_seconds}s", stderr
            ) from None
        logger.debug("optimizer finished in %.2fs rc=%s", time.monotonic() - started, proc.returncode)

        diagnostic = (proc.stderr or "").strip()
        if proc.returncode != 0:
            raise NarrowingEngineError(
                f"optimizer exited with status {proc.returncode}",
                diagnostic or (proc.stdout or "").strip(),
            )
        if self.success_marker and self.success_marker not in (proc.stderr or ""):
            raise NarrowingEngineError(
                "optimizer did not report success", diagnostic or (proc.stdout or "").strip()
            )
        return parse_response(proc.stdout or "", request.nrows, request.ncols, diagnostic)


def solver_from_config(cfg: Optional[dict]) -> Optional[SubprocessSolver]:
    solver_cfg = (cfg or {}).get("NARROW_SOLVER") or {}
    argv = solver_cfg.get("argv")
    if not argv:
        return None
    return SubprocessSolver(
        argv,
        timeout_seconds=solver_cfg.get("timeout_seconds"),
        success_marker=solver_cfg.get("success_marker", DEFAULT_SUCCESS_MARKER),
    )
