import json
import tempfile
from pathlib import Path

import config_paths


def _load_with(cfg_dir, cfg_path):
    orig_dir = config_paths.CONFIG_DIR
    orig_json = config_paths.CONFIG_JSON
    try:
        config_paths.CONFIG_DIR = str(cfg_dir)
        config_paths.CONFIG_JSON = str(cfg_path)
        return config_paths.load_config()
    finally:
        config_paths.CONFIG_DIR = orig_dir
        config_paths.CONFIG_JSON = orig_json


def test_load_config_defaults_without_json():
    with tempfile.TemporaryDirectory() as tmp:
        cfg_dir = Path(tmp) / "tabjump"
        cfg_dir.mkdir(parents=True, exist_ok=True)
        cfg = _load_with(cfg_dir, cfg_dir / "config.json")
        assert cfg["JUMP_PRESETS"] == []
        assert cfg["NARROW_SOLVER"] == {
            "argv": None,
            "timeout_seconds": 30,
            "success_marker": "SOLVED",
        }
        assert cfg["FILTER_DEFAULTS"] == {}
        assert cfg["PADDING"] == ""


def test_defaults_are_not_shared_between_loads():
    with tempfile.TemporaryDirectory() as tmp:
        cfg_dir = Path(tmp)
        first = _load_with(cfg_dir, cfg_dir / "config.json")
        first["NARROW_SOLVER"]["argv"] = ["x"]
        first["JUMP_PRESETS"].append("'a' # a")
        second = _load_with(cfg_dir, cfg_dir / "config.json")
        assert second["NARROW_SOLVER"]["argv"] is None
        assert second["JUMP_PRESETS"] == []


def test_load_config_reads_json_overrides():
    with tempfile.TemporaryDirectory() as tmp:
        cfg_dir = Path(tmp) / "tabjump"
        cfg_dir.mkdir(parents=True, exist_ok=True)
        cfg_path = cfg_dir / "config.json"
        cfg_path.write_text(
            json.dumps(
                {
                    "jump": {"presets": ["'^TODO' # todo", 42]},
                    "narrow": {
                        "solver": {
                            "argv": ["/usr/bin/minizinc", "narrow.mzn"],
                            "timeout_seconds": 5,
                            "success_marker": None,
                        }
                    },
                    "filter": {"defaults": {"noerrors": True, "cols": "1:2", "bad": 3}},
                    "padding": "-",
                }
            )
        )
        cfg = _load_with(cfg_dir, cfg_path)
        assert cfg["JUMP_PRESETS"] == ["'^TODO' # todo"]
        assert cfg["NARROW_SOLVER"]["argv"] == ["/usr/bin/minizinc", "narrow.mzn"]
        assert cfg["NARROW_SOLVER"]["timeout_seconds"] == 5
        assert cfg["NARROW_SOLVER"]["success_marker"] is None
        assert cfg["FILTER_DEFAULTS"] == {"noerrors": True, "cols": "1:2"}
        assert cfg["PADDING"] == "-"


def test_invalid_values_fall_back_to_defaults(caplog):
    with tempfile.TemporaryDirectory() as tmp:
        cfg_path = Path(tmp) / "config.json"
        cfg_path.write_text(
            json.dumps({"narrow": {"solver": {"argv": "minizinc", "timeout_seconds": -1}}})
        )
        cfg = _load_with(tmp, cfg_path)
        assert cfg["NARROW_SOLVER"]["argv"] is None
        assert cfg["NARROW_SOLVER"]["timeout_seconds"] == 30
        assert "argv" in caplog.text


def test_unreadable_json_is_ignored(caplog):
    with tempfile.TemporaryDirectory() as tmp:
        cfg_path = Path(tmp) / "config.json"
        cfg_path.write_text("{not json")
        cfg = _load_with(tmp, cfg_path)
        assert cfg["PADDING"] == ""
        assert "ignoring" in caplog.text

        cfg_path.write_text("[1, 2]")
        assert _load_with(tmp, cfg_path)["JUMP_PRESETS"] == []


def test_ensure_config_dirs(monkeypatch, tmp_path):
    target = tmp_path / "nested" / "tabjump"
    monkeypatch.setattr(config_paths, "CONFIG_DIR", str(target))
    config_paths.ensure_config_dirs()
    assert target.is_dir()
