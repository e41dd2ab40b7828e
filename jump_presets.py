import ast
from dataclasses import dataclass
from typing import Dict, List, Optional

EMPTY = r"^\s*$"
NONEMPTY = r"\S"
NUMERIC = r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?\s*$"

# description -> condition
BUILTIN_PRESETS = {
    "empty": EMPTY,
    "nonempty": NONEMPTY,
    "numeric": NUMERIC,
    "first-column": (None, 1),
    "last-column": (None, 0),
    "first-line": (1, None),
    "last-line": (0, None),
    "top-left": (1, 1),
    "empty-after-content": ("and", EMPTY, (NONEMPTY, 0, -1)),
    "empty-below-content": ("and", EMPTY, (NONEMPTY, -1, 0)),
    "content-after-empty": ("and", NONEMPTY, (EMPTY, 0, -1)),
}


@dataclass
class PresetEntry:
    description: str
    condition: object
    source: str


def _split_condition_description(text: str):
    """Split at the first ``#`` outside quotes."""
    in_single = False
    in_double = False
    escape = False
    for idx, ch in enumerate(text):
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if ch == "'" and not in_double:
            in_single = not in_single
            continue
        if ch == '"' and not in_single:
            in_double = not in_double
            continue
        if ch == "#" and not in_single and not in_double:
            return text[:idx], text[idx + 1 :]
    return text, ""


def normalize_condition(value):
    """Turn JSON-ish lists into the tuple forms conditions use."""
    if isinstance(value, list):
        return tuple(normalize_condition(v) for v in value)
    if isinstance(value, tuple):
        return tuple(normalize_condition(v) for v in value)
    return value


def parse_condition_literal(text: str):
    """Read a condition written as a Python literal; bare text is a string."""
    stripped = (text or "").strip()
    if not stripped:
        return None
    try:
        value = ast.literal_eval(stripped)
    except (ValueError, SyntaxError):
        return stripped
    return normalize_condition(value)


def parse_preset_entry(raw) -> Optional[PresetEntry]:
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    cond_part, desc_part = _split_condition_description(text)
    description = desc_part.strip()
    condition = parse_condition_literal(cond_part)
    if condition is None or not description:
        return None
    return PresetEntry(description=description, condition=condition, source=text)


def parse_preset_register(entries) -> List[PresetEntry]:
    parsed: List[PresetEntry] = []
    for raw in entries or []:
        entry = parse_preset_entry(raw)
        if entry:
            parsed.append(entry)
    return parsed


def build_preset_table(entries=None) -> Dict[str, object]:
    """Built-in presets overlaid with user register entries."""
    table = dict(BUILTIN_PRESETS)
    for entry in parse_preset_register(entries):
        table[entry.description] = entry.condition
    return table
