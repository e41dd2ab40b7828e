import json
import logging
import os

logger = logging.getLogger(__name__)

HOME = os.path.expanduser("~")
XDG_CONFIG_HOME = os.environ.get("XDG_CONFIG_HOME")
CONFIG_HOME = XDG_CONFIG_HOME if XDG_CONFIG_HOME else os.path.join(HOME, ".config")
CONFIG_DIR = os.path.join(CONFIG_HOME, "tabjump")
CONFIG_JSON = os.path.join(CONFIG_DIR, "config.json")

# default settings
JUMP_PRESETS_DEFAULT = []
NARROW_SOLVER_DEFAULT = {
    "argv": None,
    "timeout_seconds": 30,
    "success_marker": "SOLVED",
}
FILTER_DEFAULTS_DEFAULT = {}
PADDING_DEFAULT = ""


def ensure_config_dirs():
    os.makedirs(CONFIG_DIR, exist_ok=True)


def load_config():
    cfg = {
        "JUMP_PRESETS": list(JUMP_PRESETS_DEFAULT),
        "NARROW_SOLVER": dict(NARROW_SOLVER_DEFAULT),
        "FILTER_DEFAULTS": dict(FILTER_DEFAULTS_DEFAULT),
        "PADDING": PADDING_DEFAULT,
    }

    if not os.path.exists(CONFIG_JSON):
        return cfg

    try:
        with open(CONFIG_JSON, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("ignoring unreadable config %s: %s", CONFIG_JSON, e)
        return cfg
    if not isinstance(data, dict):
        logger.warning("ignoring config %s: top level is not an object", CONFIG_JSON)
        return cfg

    jump = data.get("jump")
    presets = jump.get("presets") if isinstance(jump, dict) else None
    if isinstance(presets, list):
        cfg["JUMP_PRESETS"] = [str(item) for item in presets if isinstance(item, str)]

    narrow = data.get("narrow")
    solver = narrow.get("solver") if isinstance(narrow, dict) else None
    if isinstance(solver, dict):
        argv = solver.get("argv")
        if isinstance(argv, list) and argv and all(isinstance(x, str) for x in argv):
            cfg["NARROW_SOLVER"]["argv"] = argv
        elif argv is not None:
            logger.warning("narrow.solver.argv must be a list of strings")
        timeout = solver.get("timeout_seconds")
        if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout > 0:
            cfg["NARROW_SOLVER"]["timeout_seconds"] = timeout
        marker = solver.get("success_marker")
        if isinstance(marker, str) or (marker is None and "success_marker" in solver):
            cfg["NARROW_SOLVER"]["success_marker"] = marker

    filt = data.get("filter")
    defaults = filt.get("defaults") if isinstance(filt, dict) else None
    if isinstance(defaults, dict):
        cfg["FILTER_DEFAULTS"] = {
            str(k): v for k, v in defaults.items() if isinstance(v, (str, bool, list))
        }

    padding = data.get("padding")
    if isinstance(padding, str):
        cfg["PADDING"] = padding

    return cfg
