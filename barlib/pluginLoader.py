from __future__ import annotations

import importlib
import os
import pkgutil
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from .pluginApi import PluginSource, TerminalMeta

OpenTerminalFn = Callable[[str, dict[str, Any]], None]

# name.10s.sh, name.500ms.py, name.1h.rb
_reInterval = re.compile(r"^(?P<num>\d+(?:\.\d+)?)(?P<unit>ms|s|m|h|d)$")
_unitSec = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, "d": 86400.0}


def parseIntervalToken(token: str) -> float | None:
    m = _reInterval.match(str(token or "").strip().lower())
    if not m:
        return None
    sec = float(m.group("num")) * _unitSec[m.group("unit")]
    return sec if sec > 0 else None


def intervalFromFileName(fileName: str) -> float | None:
    parts = str(fileName).split(".")
    # rightmost dotted part that reads as an interval wins
    for token in reversed(parts[1:]):
        sec = parseIntervalToken(token)
        if sec is not None:
            return sec
    return None


def isPluginFile(pathObj: Path) -> bool:
    if pathObj.name.startswith("."):
        return False
    if not pathObj.is_file():
        return False
    return os.access(pathObj, os.X_OK)


class PluginRegistry:
    """Owns the PluginSource objects of one plugin directory."""

    def __init__(self) -> None:
        self.pluginsByName: dict[str, PluginSource] = {}
        self.lock = threading.Lock()

    def resolve(self, name: str) -> PluginSource | None:
        with self.lock:
            return self.pluginsByName.get(str(name or "").strip())

    def add(self, source: PluginSource) -> PluginSource:
        with self.lock:
            self.pluginsByName[source.name] = source
        return source

    def remove(self, name: str) -> PluginSource | None:
        with self.lock:
            return self.pluginsByName.pop(name, None)

    def scanDirectory(
        self,
        pluginDir: str | Path,
        *,
        overrides: dict[str, Any] | None = None,
    ) -> list[PluginSource]:
        dirPath = Path(pluginDir).expanduser()
        overridesObj = dict(overrides or {})
        found: list[PluginSource] = []

        if not dirPath.is_dir():
            return found

        for pathObj in sorted(dirPath.iterdir(), key=lambda p: p.name.lower()):
            if not isPluginFile(pathObj):
                continue

            source = PluginSource(
                name=pathObj.name,
                path=pathObj,
                everySec=intervalFromFileName(pathObj.name),
            )
            cfg = overridesObj.get(pathObj.name)
            if cfg is not None:
                applyOverride(source, cfg)

            found.append(self.add(source))
        return found

    def setEnabled(self, name: str, enabled: bool) -> PluginSource | None:
        source = self.resolve(name)
        if source is not None:
            source.enabled = bool(enabled)
        return source

    def setInterval(self, name: str, everySec: float | None) -> PluginSource | None:
        source = self.resolve(name)
        if source is not None:
            source.everySec = everySec if everySec and everySec > 0 else None
        return source

    def listNames(self) -> list[str]:
        with self.lock:
            return list(self.pluginsByName.keys())

    def listSources(self) -> list[PluginSource]:
        with self.lock:
            return list(self.pluginsByName.values())


def applyOverride(source: PluginSource, cfg: Any) -> None:
    """cfg is a PluginConfig (see config.py)."""
    if getattr(cfg, "enabled", None) is not None:
        source.enabled = bool(cfg.enabled)
    if getattr(cfg, "everySec", None) is not None:
        sec = float(cfg.everySec)
        source.everySec = sec if sec > 0 else None
    envObj = getattr(cfg, "env", None)
    if isinstance(envObj, dict):
        source.env = {str(k): str(v) for k, v in envObj.items()}


@dataclass(frozen=True)
class LoadedTerminal:
    moduleName: str
    meta: TerminalMeta
    openTerminal: OpenTerminalFn


class TerminalRegistry:
    def __init__(self) -> None:
        self.terminalsByType: dict[str, LoadedTerminal] = {}

    def resolve(self, typeName: str) -> LoadedTerminal | None:
        key = str(typeName or "").strip().lower()
        return self.terminalsByType.get(key)

    def loadTerminalModule(self, moduleName: str) -> None:
        mod = importlib.import_module(moduleName)

        metaObj = getattr(mod, "terminalMeta", None)
        if not isinstance(metaObj, TerminalMeta):
            return

        openFn = getattr(mod, "openTerminal", None)
        if not callable(openFn):
            return

        key = str(metaObj.typeName or "").strip().lower()
        if not key:
            return

        self.terminalsByType[key] = LoadedTerminal(
            moduleName=moduleName,
            meta=metaObj,
            openTerminal=openFn,
        )

    def loadTerminalsFromPackage(self, packageName: str) -> None:
        pkg = importlib.import_module(packageName)
        pkgPath = getattr(pkg, "__path__", None)
        if pkgPath is None:
            return

        for modInfo in pkgutil.iter_modules(pkgPath, pkg.__name__ + "."):
            self.loadTerminalModule(modInfo.name)

    def listTypes(self) -> list[str]:
        return sorted(self.terminalsByType.keys())


class TerminalLauncher:
    """Hands a finished command line to the configured terminal program."""

    def __init__(self, registry: TerminalRegistry, *, params: dict[str, dict[str, Any]] | None = None) -> None:
        self.registry = registry
        self.params = dict(params or {})

    def launch(self, commandLine: str, terminalId: str) -> None:
        loaded = self.registry.resolve(terminalId)
        if loaded is None:
            raise RuntimeError(f"Unknown terminal '{terminalId}'")

        paramsObj = dict(loaded.meta.defaultParams or {})
        paramsObj.update(self.params.get(loaded.meta.typeName, {}) or {})
        loaded.openTerminal(commandLine, paramsObj)
