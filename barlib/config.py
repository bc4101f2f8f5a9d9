"""
Configuration data classes for BarApp.

PluginConfig overrides one plugin file: enable flag, refresh interval (wins over
the interval in the file name) and extra environment variables.

BarConfig holds the plugin directory, the UI tick rate, the worker pool size,
the script timeout and the terminal used for interactive runs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class PluginConfig:
    name: str
    enabled: bool | None = None
    everySec: float | None = None
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class BarConfig:
    pluginDirectory: Path | None = None
    refreshRateSec: float = 0.05
    maxWorkers: int = 4
    timeoutSec: float = 30.0
    terminal: str = "xterm"
    runInTerminal: bool = True
    terminalParams: dict[str, dict[str, Any]] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)
    plugins: dict[str, PluginConfig] = field(default_factory=dict)
    sourcePath: Path | None = None
