from __future__ import annotations

from pathlib import Path

import pytest

from barlib.configLoader import buildConfig, loadConfigFile
from barlib.utils import deepMerge, parseOptBool, parseOptFloat

SAMPLE = """
pluginDirectory = "plugins"
maxWorkers = 2
timeoutSec = 5
terminal = "TMUX"
runInTerminal = false

[terminalParams.tmux]
windowName = "bar"

[env]
API_HOST = "example.test"
DEBUG = true

[plugins."cpu.10s.sh"]
everySec = 2.5
env = { UNITS = "c" }

[plugins."noisy.sh"]
enabled = false
"""


def test_defaults_without_file() -> None:
    cfg = loadConfigFile(None)
    assert cfg.pluginDirectory == Path("~/.scriptbar/plugins").expanduser()
    assert cfg.maxWorkers == 4
    assert cfg.timeoutSec == 30.0
    assert cfg.terminal == "xterm"
    assert cfg.runInTerminal is True
    assert cfg.plugins == {}


def test_missing_file_gives_defaults(tmp_path) -> None:
    cfg = loadConfigFile(tmp_path / "absent.toml")
    assert cfg.maxWorkers == 4
    assert cfg.sourcePath == tmp_path / "absent.toml"


def test_load_sample(tmp_path) -> None:
    cfgPath = tmp_path / "scriptbar.toml"
    cfgPath.write_text(SAMPLE, encoding="utf-8")
    cfg = loadConfigFile(cfgPath)

    assert cfg.pluginDirectory == tmp_path / "plugins"
    assert cfg.maxWorkers == 2
    assert cfg.timeoutSec == 5.0
    assert cfg.terminal == "tmux"
    assert cfg.runInTerminal is False
    assert cfg.terminalParams == {"tmux": {"windowName": "bar"}}
    assert cfg.env == {"API_HOST": "example.test", "DEBUG": "true"}

    cpu = cfg.plugins["cpu.10s.sh"]
    assert cpu.everySec == 2.5
    assert cpu.enabled is None
    assert cpu.env == {"UNITS": "c"}

    noisy = cfg.plugins["noisy.sh"]
    assert noisy.enabled is False
    assert noisy.everySec is None


def test_invalid_toml_raises(tmp_path) -> None:
    cfgPath = tmp_path / "broken.toml"
    cfgPath.write_text("maxWorkers = = 3\n", encoding="utf-8")
    with pytest.raises(RuntimeError, match="broken.toml"):
        loadConfigFile(cfgPath)


def test_bad_values_fall_back() -> None:
    cfg = buildConfig({"maxWorkers": "lots", "timeoutSec": -1, "terminal": "", "plugins": {"x": "nope"}})
    assert cfg.maxWorkers == 4
    assert cfg.timeoutSec == 0.1
    assert cfg.terminal == "xterm"
    assert cfg.plugins == {}


def test_absolute_plugin_directory_is_kept(tmp_path) -> None:
    cfg = buildConfig({"pluginDirectory": str(tmp_path)}, sourcePath=Path("/etc/scriptbar.toml"))
    assert cfg.pluginDirectory == tmp_path


def test_deep_merge() -> None:
    merged = deepMerge({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}, "c": 4})
    assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}


def test_optional_parsers() -> None:
    assert parseOptBool(None) is None
    assert parseOptBool("off") is False
    assert parseOptBool(True) is True
    assert parseOptBool("maybe") is None
    assert parseOptFloat("2") == 2.0
    assert parseOptFloat(True) is None
    assert parseOptFloat("x") is None
