from __future__ import annotations

import pytest

from barlib.config import PluginConfig
from barlib.pluginLoader import (
    PluginRegistry,
    TerminalLauncher,
    TerminalRegistry,
    intervalFromFileName,
    parseIntervalToken,
)
from barlib.terminals import tmux, xterm


@pytest.mark.parametrize(
    "fileName, expected",
    [
        ("cpu.10s.sh", 10.0),
        ("fast.500ms.py", 0.5),
        ("weather.2m.rb", 120.0),
        ("backup.1h.sh", 3600.0),
        ("daily.1d.sh", 86400.0),
        ("mixed.5m.10s.sh", 10.0),
        ("manual.sh", None),
        ("noext", None),
        ("zero.0s.sh", None),
        ("10s", None),
    ],
)
def test_interval_from_file_name(fileName, expected) -> None:
    assert intervalFromFileName(fileName) == expected


def test_parse_interval_token() -> None:
    assert parseIntervalToken("1.5s") == 1.5
    assert parseIntervalToken("5S") == 5.0
    assert parseIntervalToken("sh") is None
    assert parseIntervalToken("") is None


def test_scan_directory(tmp_path, makeScript) -> None:
    makeScript("b.10s.sh", "echo b")
    makeScript("a.sh", "echo a")
    makeScript("notes.txt", "not a plugin", executable=False)
    makeScript(".hidden.5s.sh", "echo hidden")
    (tmp_path / "subdir").mkdir()

    reg = PluginRegistry()
    found = reg.scanDirectory(tmp_path)

    assert [s.name for s in found] == ["a.sh", "b.10s.sh"]
    assert found[0].everySec is None
    assert found[1].everySec == 10.0
    assert reg.resolve("b.10s.sh") is found[1]
    assert reg.listNames() == ["a.sh", "b.10s.sh"]


def test_missing_directory_finds_nothing(tmp_path) -> None:
    assert PluginRegistry().scanDirectory(tmp_path / "missing") == []


def test_overrides_apply(tmp_path, makeScript) -> None:
    makeScript("a.10s.sh", "echo a")
    makeScript("b.sh", "echo b")

    overrides = {
        "a.10s.sh": PluginConfig(name="a.10s.sh", everySec=0, env={"TOKEN": "t"}),
        "b.sh": PluginConfig(name="b.sh", enabled=False, everySec=30),
    }
    reg = PluginRegistry()
    a, b = reg.scanDirectory(tmp_path, overrides=overrides)

    assert a.everySec is None
    assert a.env == {"TOKEN": "t"}
    assert not b.enabled
    assert b.everySec == 30.0
    assert not b.isScheduled


def test_set_enabled_and_interval(tmp_path, makeScript) -> None:
    makeScript("a.sh", "echo a")
    reg = PluginRegistry()
    reg.scanDirectory(tmp_path)

    assert reg.setInterval("a.sh", 5).everySec == 5
    assert reg.resolve("a.sh").isScheduled
    assert reg.setInterval("a.sh", 0).everySec is None
    assert not reg.setEnabled("a.sh", False).enabled
    assert reg.setEnabled("ghost", True) is None

    assert reg.remove("a.sh") is not None
    assert reg.listSources() == []


def test_terminal_registry_loads_package() -> None:
    reg = TerminalRegistry()
    reg.loadTerminalsFromPackage("barlib.terminals")
    assert reg.listTypes() == ["tmux", "xterm"]
    assert reg.resolve(" XTerm ").meta.typeName == "xterm"
    assert reg.resolve("konsole") is None


def test_launcher_merges_params() -> None:
    calls = []
    reg = TerminalRegistry()
    reg.loadTerminalsFromPackage("barlib.terminals")
    loaded = reg.resolve("xterm")
    reg.terminalsByType["xterm"] = type(loaded)(
        moduleName=loaded.moduleName,
        meta=loaded.meta,
        openTerminal=lambda cmd, params: calls.append((cmd, params)),
    )

    launcher = TerminalLauncher(reg, params={"xterm": {"program": "uxterm"}})
    launcher.launch("echo hi", "xterm")

    cmd, params = calls[0]
    assert cmd == "echo hi"
    assert params["program"] == "uxterm"
    assert params["execFlag"] == "-e"


def test_launcher_unknown_terminal() -> None:
    launcher = TerminalLauncher(TerminalRegistry())
    with pytest.raises(RuntimeError, match="Unknown terminal"):
        launcher.launch("echo hi", "nope")


def test_xterm_args() -> None:
    args = xterm.buildArgs("echo hi", dict(xterm.terminalMeta.defaultParams))
    assert args[:4] == ["xterm", "-e", "/bin/sh", "-c"]
    assert args[4].startswith("echo hi; ")
    assert "read _" in args[4]

    args = xterm.buildArgs("echo hi", {"program": "kitty", "holdOpen": False, "extraArgs": ["--hold"]})
    assert args == ["kitty", "--hold", "-e", "/bin/sh", "-c", "echo hi"]


def test_tmux_args() -> None:
    assert tmux.buildArgs("top", {}) == ["tmux", "new-window", "-n", "scriptbar", "top"]
    assert tmux.buildArgs("top", {"windowName": "bar"})[3] == "bar"
