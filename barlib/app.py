from __future__ import annotations

from typing import Any

from .config import *
from .configLoader import loadConfigFile
from .core import *
from .dispatcher import ActionDispatcher
from .pluginLoader import *
from .runner import ScriptRunner
from .scheduler import RefreshScheduler
from .ui import RichUi


class BarApp:
    def __init__(
        self,
        config: BarConfig,
        *,
        terminalPackage: str = "barlib.terminals",
        ui: Any = None,
        dispatcherKwargs: dict[str, Any] | None = None,
    ) -> None:

        self.config = config
        self.pluginRegistry = PluginRegistry()
        self.terminalRegistry = TerminalRegistry()
        self.terminalRegistry.loadTerminalsFromPackage(terminalPackage)
        self.core = BarCore(pluginRegistry=self.pluginRegistry)
        self.core.reloadFn = self.reloadConfig

        self.terminalLauncher = TerminalLauncher(self.terminalRegistry, params=config.terminalParams)
        self.runner = ScriptRunner(
            timeoutSec=config.timeoutSec,
            terminalLauncher=self.terminalLauncher,
            terminalId=config.terminal,
            pluginDirectory=config.pluginDirectory,
            logFn=self.core.writeLog,
        )
        self.scheduler = RefreshScheduler(
            self.runner,
            maxWorkers=config.maxWorkers,
            logFn=self.core.writeLog,
        )
        self.dispatcher = ActionDispatcher(
            self.runner,
            self.scheduler,
            runInTerminal=config.runInTerminal,
            logFn=self.core.writeLog,
            **dict(dispatcherKwargs or {}),
        )
        self.core.attach(scheduler=self.scheduler, dispatcher=self.dispatcher, runner=self.runner)
        self.ui = ui

    def applyGlobalEnv(self, source: PluginSource) -> PluginSource:
        envObj = dict(self.config.env or {})
        envObj.update(source.env or {})
        source.env = envObj
        return source

    def buildPluginsFromConfig(self) -> list[PluginSource]:
        if self.config.pluginDirectory is None:
            raise RuntimeError("no plugin directory configured")

        if self.terminalRegistry.resolve(self.config.terminal) is None:
            self.core.writeLog(f"unknown terminal '{self.config.terminal}', have: {', '.join(self.terminalRegistry.listTypes())}")

        sources = self.pluginRegistry.scanDirectory(
            self.config.pluginDirectory,
            overrides=self.config.plugins,
        )
        if not sources:
            self.core.writeLog(f"no executable plugins in {self.config.pluginDirectory}")

        for source in sources:
            self.applyGlobalEnv(source)
        return sources

    def start(self) -> None:
        for source in self.buildPluginsFromConfig():
            self.core.registerPlugin(source)

    def stop(self) -> None:
        try:
            self.scheduler.shutdown(wait=False)
        except Exception as exc:
            self.core.writeLog(f"shutdown EXC {type(exc).__name__}: {exc}")

    def reloadConfig(self) -> None:
        if self.config.sourcePath is None:
            self.core.writeLog("reload: no config file")
            return

        try:
            newConfig = loadConfigFile(self.config.sourcePath)
        except Exception as exc:
            self.core.writeLog(f"reload EXC {type(exc).__name__}: {exc}")
            return

        if newConfig.pluginDirectory is None:
            newConfig.pluginDirectory = self.config.pluginDirectory
        self.config = newConfig
        self.runner.timeoutSec = newConfig.timeoutSec
        self.runner.terminalId = newConfig.terminal
        self.runner.pluginDirectory = newConfig.pluginDirectory
        self.terminalLauncher.params = dict(newConfig.terminalParams)
        self.dispatcher.runInTerminal = newConfig.runInTerminal

        oldByName = {s.name: (s.enabled, s.everySec, dict(s.env)) for s in self.pluginRegistry.listSources()}
        newSources = self.buildPluginsFromConfig()
        newNames = {s.name for s in newSources}

        for name in oldByName:
            if name not in newNames:
                self.pluginRegistry.remove(name)
                self.core.removePlugin(name)

        changed = 0
        for source in newSources:
            if oldByName.get(source.name) != (source.enabled, source.everySec, dict(source.env)):
                self.core.registerPlugin(source, reason="config")
                changed += 1
            else:
                self.core.ensureState(source)
        self.core.writeLog(f"reload: {len(newSources)} plugins, {changed} re-registered")

    def run(self) -> None:
        if self.ui is None:
            self.ui = RichUi(self.core, refreshRateSec=float(self.config.refreshRateSec))

        self.start()
        try:
            self.ui.runLoop()
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()
