import re
from typing import List

from table_errors import ParseError

_SPLIT_RE = re.compile(r"[,\s]+")


def resolve_index(value: int, length: int) -> int:
    """Map a signed selector to a 1-based index: 0 is last, -1 is last, -2 before it."""
    if value == 0:
        idx = length
    elif value < 0:
        idx = length + value + 1
    else:
        idx = value
    return max(1, min(length, idx))


def _arithmetic(start: int, end: int, step: int) -> List[int]:
    if step > 0:
        return list(range(start, end + 1, step))
    return list(range(start, end - 1, step))


def resolve(spec, length: int) -> List[int]:
    """Resolve a range spec against ``length`` into ordered 1-based indices.

    Order and duplicates are preserved so specs can reorder or repeat rows and
    columns. An empty spec selects everything in order.
    """
    atoms = coerce_range_spec(spec)
    if length <= 0:
        return []
    if not atoms:
        return list(range(1, length + 1))

    out: List[int] = []
    for atom in atoms:
        if isinstance(atom, tuple):
            start, end, step = atom
            if step == 0:
                raise ParseError("range step must not be zero", atom)
            out.extend(
                _arithmetic(resolve_index(start, length), resolve_index(end, length), step)
            )
        else:
            out.append(resolve_index(atom, length))
    return out


def _parse_int(text: str, atom: str, default: int) -> int:
    if text == "":
        return default
    try:
        return int(text)
    except ValueError:
        raise ParseError("invalid range selector", atom) from None


def parse_range_spec(text: str) -> list:
    """Parse ``"1,3:5,-1,2:10:2"`` style selectors.

    ``a:b`` is an inclusive range, ``a:b:s`` adds a step; an omitted start is 1
    and an omitted end is the last element.
    """
    atoms = []
    for atom in _SPLIT_RE.split((text or "").strip()):
        if not atom:
            continue
        parts = atom.split(":")
        if len(parts) == 1:
            atoms.append(_parse_int(parts[0], atom, 0))
        elif len(parts) in (2, 3):
            start = _parse_int(parts[0], atom, 1)
            end = _parse_int(parts[1], atom, 0)
            step = _parse_int(parts[2], atom, 1) if len(parts) == 3 else 1
            if step == 0:
                raise ParseError("range step must not be zero", atom)
            atoms.append((start, end, step))
        else:
            raise ParseError("invalid range selector", atom)
    return atoms


def coerce_range_spec(spec) -> list:
    """Accept None, text, a single int, or a sequence of ints and tuples."""
    if spec is None:
        return []
    if isinstance(spec, str):
        return parse_range_spec(spec)
    if isinstance(spec, bool):
        raise ParseError("invalid range selector", spec)
    if isinstance(spec, int):
        return [spec]
    atoms = []
    for atom in spec:
        if isinstance(atom, bool):
            raise ParseError("invalid range selector", atom)
        if isinstance(atom, int):
            atoms.append(atom)
        elif isinstance(atom, (tuple, list)) and len(atom) in (2, 3):
            start, end = atom[0], atom[1]
            step = atom[2] if len(atom) == 3 and atom[2] is not None else 1
            atoms.append((1 if start is None else start, 0 if end is None else end, step))
        else:
            raise ParseError("invalid range selector", atom)
    return atoms
