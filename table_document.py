import re
from typing import List, Optional, Tuple

from table_errors import TableNotFoundError
from table_model import Table
from table_text import is_table_line, parse_table

_NAME_RE = re.compile(r"^\s*#\+(?:NAME|TBLNAME):\s*(\S.*?)\s*$", re.IGNORECASE)
_PROPERTY_RE = re.compile(r"^\s*#\+PROPERTY:\s*(\S+)\s*(.*?)\s*$", re.IGNORECASE)


class TableDocument:
    """Plain-text document holding pipe tables, optionally named by markers.

    A table is named by a ``#+NAME: <name>`` line placed before it; other
    ``#+`` keyword lines may sit between the marker and the table. Tables can
    also be addressed by position as ``$1``, ``$2``...
    """

    def __init__(self, text: str):
        self.text = text
        self.lines = text.splitlines()

    @classmethod
    def from_path(cls, path: str) -> "TableDocument":
        with open(path, "r", encoding="utf-8") as f:
            return cls(f.read())

    def table_spans(self) -> List[Tuple[Optional[str], int, int]]:
        """Return ``(name, start, end)`` for each table; ``end`` is exclusive."""
        spans = []
        pending_name = None
        idx = 0
        while idx < len(self.lines):
            line = self.lines[idx]
            match = _NAME_RE.match(line)
            if match:
                pending_name = match.group(1)
                idx += 1
                continue
            if is_table_line(line):
                start = idx
                while idx < len(self.lines) and is_table_line(self.lines[idx]):
                    idx += 1
                spans.append((pending_name, start, idx))
                pending_name = None
                continue
            if line.strip() and not line.lstrip().startswith("#+"):
                pending_name = None
            idx += 1
        return spans

    def names(self) -> List[str]:
        return [name for name, _, _ in self.table_spans() if name]

    def find_span(self, name_or_id: str) -> Tuple[int, int]:
        spans = self.table_spans()
        ref = str(name_or_id).strip()
        if ref.startswith("$") and ref[1:].isdigit():
            pos = int(ref[1:])
            if 1 <= pos <= len(spans):
                _, start, end = spans[pos - 1]
                return start, end
        for name, start, end in spans:
            if name == ref:
                return start, end
        raise TableNotFoundError(f"no table named {ref!r} in document")

    def table_text(self, name_or_id: str) -> str:
        start, end = self.find_span(name_or_id)
        return "\n".join(self.lines[start:end])

    def fetch_table(self, name_or_id: str) -> Table:
        return parse_table(self.table_text(name_or_id))

    def table_at_line(self, lineno: int) -> Table:
        """Parse the table covering 0-based line ``lineno``."""
        for _, start, end in self.table_spans():
            if start <= lineno < end:
                return parse_table("\n".join(self.lines[start:end]))
        raise TableNotFoundError(f"line {lineno + 1} is not inside a table")

    def property_value(self, key: str) -> Optional[str]:
        value = None
        for line in self.lines:
            match = _PROPERTY_RE.match(line)
            if match and match.group(1).lower() == key.lower():
                value = match.group(2)
        return value
