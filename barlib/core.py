from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from .pluginApi import *


@dataclass
class PluginState:
    source: PluginSource
    tree: MenuNode | None = None
    updatedTs: float = 0.0
    refreshCount: int = 0

    @property
    def name(self) -> str:
        return self.source.name

    @property
    def title(self) -> str:
        if not self.source.enabled:
            return "-"
        if self.tree is None:
            return "..."
        return self.tree.text or "-"

    @property
    def severity(self) -> str:
        if not self.source.enabled:
            return "info"
        if self.tree is None:
            return "info"
        return "bad" if self.tree.isUnavailable else "ok"


HOST_COMMANDS = [
    CommandSpec(key="N", label="select"),
    CommandSpec(key="o 1.2", label="activate"),
    CommandSpec(key="r", label="refresh"),
    CommandSpec(key="ra", label="refresh all"),
    CommandSpec(key="d/e", label="disable/enable"),
    CommandSpec(key="t", label="terminal"),
    CommandSpec(key="every S", label="interval"),
    CommandSpec(key="reload", label="config"),
]


def parseItemPath(text: str) -> list[int] | None:
    s = str(text or "").strip()
    if not s or s == "0":
        return []
    out: list[int] = []
    for part in s.split("."):
        if not part.isdigit():
            return None
        out.append(int(part))
    return out


class BarCore:
    def __init__(self, *, pluginRegistry: Any) -> None:
        self.pluginRegistry = pluginRegistry
        self.statesByName: dict[str, PluginState] = {}
        self.pluginOrder: list[str] = []
        self.selectedIndex: int = 0
        self.commandLog: list[str] = []
        self.maxLogLines: int = 512
        self.statusMsg: str = "ready"
        self.logLock = threading.Lock()

        self.scheduler: Any = None
        self.dispatcher: Any = None
        self.runner: Any = None
        self.reloadFn: Callable[[], None] | None = None

    def attach(self, *, scheduler: Any, dispatcher: Any, runner: Any) -> None:
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.runner = runner

    def writeLog(self, msg: str) -> None:
        tsStr = time.strftime("%H:%M:%S")
        with self.logLock:
            for ln in str(msg).splitlines() or [""]:
                self.commandLog.append(f"[{tsStr}] {ln}")
            if len(self.commandLog) > self.maxLogLines:
                self.commandLog = self.commandLog[-self.maxLogLines :]

    def ensureState(self, source: PluginSource) -> PluginState:
        st = self.statesByName.get(source.name)
        if st is None:
            st = PluginState(source=source)
            self.statesByName[source.name] = st
            self.pluginOrder.append(source.name)
        else:
            st.source = source
        return st

    def selectedName(self) -> str | None:
        if not self.pluginOrder:
            return None
        self.selectedIndex = max(0, min(self.selectedIndex, len(self.pluginOrder) - 1))
        return self.pluginOrder[self.selectedIndex]

    def selectedState(self) -> PluginState | None:
        name = self.selectedName()
        return self.statesByName.get(name) if name else None

    def selectByNumber(self, n1: int) -> bool:
        idx = int(n1) - 1
        if 0 <= idx < len(self.pluginOrder):
            self.selectedIndex = idx
            return True
        return False

    def onTree(self, name: str, tree: MenuNode) -> None:
        st = self.statesByName.get(name)
        if st is None:
            return
        # whole reference swap, readers never see a half built tree
        st.tree = tree
        st.updatedTs = time.time()
        st.refreshCount += 1

    def registerPlugin(self, source: PluginSource, *, reason: str = "initial") -> PluginState:
        st = self.ensureState(source)
        st.tree = None

        if not source.enabled:
            self.scheduler.unregister(source.name)
            return st

        self.scheduler.register(source)
        self.scheduler.subscribe(source.name, self.onTree)
        self.scheduler.requestRefresh(source.name, reason)
        return st

    def removePlugin(self, name: str) -> None:
        self.scheduler.unregister(name)
        self.statesByName.pop(name, None)
        if name in self.pluginOrder:
            self.pluginOrder.remove(name)
        self.selectedName()

    def setEnabled(self, name: str, enabled: bool) -> bool:
        source = self.pluginRegistry.setEnabled(name, enabled)
        if source is None:
            return False
        self.registerPlugin(source, reason="enable")
        self.writeLog(f"{name}: {'enabled' if enabled else 'disabled'}")
        return True

    def setInterval(self, name: str, everySec: float | None) -> bool:
        source = self.pluginRegistry.setInterval(name, everySec)
        if source is None:
            return False
        self.registerPlugin(source, reason="interval")
        self.writeLog(f"{name}: every {source.everySec or 0:g}s")
        return True

    def activatePath(self, name: str, path: list[int]) -> str | None:
        st = self.statesByName.get(name)
        if st is None or st.tree is None:
            self.writeLog(f"{name}: no menu yet")
            return None

        node = st.tree.child(path)
        if node is None:
            self.writeLog(f"{name}: no item {'.'.join(map(str, path)) or '0'}")
            return None

        action = self.dispatcher.activate(node)
        if action is None:
            self.writeLog(f"{name}: '{node.text}' has no action")
        return action

    def runInTerminal(self, name: str) -> None:
        source = self.pluginRegistry.resolve(name)
        if source is None:
            return
        resObj = self.runner.execute(source, MODE_TERMINAL)
        if not resObj.ok:
            self.writeLog(f"{name}: terminal FAIL {resObj.describe()}")

    def execCommand(self, rawCmd: str) -> None:
        cmdStr = (rawCmd or "").strip()

        if not cmdStr:
            self.statusMsg = "ready"
            return

        parts = cmdStr.split()
        cmdKey = parts[0].lower()

        if cmdKey == "++":
            self.runner.logRuns = True
            return

        if cmdKey == "--":
            self.runner.logRuns = False
            return

        if cmdKey == "ra":
            started = self.scheduler.refreshAll("manual")
            self.writeLog(f"refresh all: {started} started")
            return

        if cmdKey == "reload":
            if self.reloadFn is not None:
                self.reloadFn()
            return

        if cmdStr.isdigit():
            self.selectByNumber(int(cmdStr))
            return

        name = self.selectedName()
        if not name:
            return

        if cmdKey == "r":
            if not self.scheduler.requestRefresh(name, "manual"):
                self.writeLog(f"{name}: refresh queued")
            return

        if cmdKey in ("d", "e"):
            self.setEnabled(name, cmdKey == "e")
            return

        if cmdKey == "t":
            self.runInTerminal(name)
            return

        if cmdKey == "every":
            secStr = parts[1] if len(parts) > 1 else ""
            try:
                everySec = float(secStr)
            except ValueError:
                self.writeLog(f"{name}: bad interval '{secStr}'")
                return
            self.setInterval(name, everySec)
            return

        if cmdKey == "o":
            path = parseItemPath(parts[1] if len(parts) > 1 else "")
            if path is None:
                self.writeLog(f"{name}: bad item path '{parts[1]}'")
                return
            self.activatePath(name, path)
            return

        self.writeLog(f"unknown command: {cmdStr}")
