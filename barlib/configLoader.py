from __future__ import annotations

from pathlib import Path

from .config import *
from .utils import *

DEFAULTS: dict[str, Any] = {
    "pluginDirectory": "~/.scriptbar/plugins",
    "refreshRateSec": 0.05,
    "maxWorkers": 4,
    "timeoutSec": 30.0,
    "terminal": "xterm",
    "runInTerminal": True,
    "terminalParams": {},
    "env": {},
    "plugins": {},
}


def loadPluginConfigs(pluginsVal: Any) -> dict[str, PluginConfig]:
    out: dict[str, PluginConfig] = {}
    if not isinstance(pluginsVal, dict):
        return out

    for fileName, sectionVal in pluginsVal.items():
        nameStr = parseStr(fileName)
        if not nameStr or not isinstance(sectionVal, dict):
            continue
        out[nameStr] = PluginConfig(
            name=nameStr,
            enabled=parseOptBool(sectionVal.get("enabled")),
            everySec=parseOptFloat(sectionVal.get("everySec")),
            env=parseEnv(sectionVal.get("env")),
        )
    return out


def buildConfig(cfgObj: dict[str, Any], *, sourcePath: Path | None = None) -> BarConfig:
    mergedObj = deepMerge(dict(DEFAULTS), dict(cfgObj or {}))

    terminalParams: dict[str, dict[str, Any]] = {}
    tpVal = mergedObj.get("terminalParams")
    if isinstance(tpVal, dict):
        for k, v in tpVal.items():
            if isinstance(v, dict):
                terminalParams[str(k).strip().lower()] = dict(v)

    pluginDir = parsePath(mergedObj.get("pluginDirectory"))
    if pluginDir is not None and sourcePath is not None and not pluginDir.is_absolute():
        pluginDir = sourcePath.parent / pluginDir

    return BarConfig(
        pluginDirectory=pluginDir,
        refreshRateSec=max(0.01, parseFloat(mergedObj.get("refreshRateSec"), 0.05)),
        maxWorkers=max(1, parseInt(mergedObj.get("maxWorkers"), 4)),
        timeoutSec=max(0.1, parseFloat(mergedObj.get("timeoutSec"), 30.0)),
        terminal=parseStrLower(mergedObj.get("terminal")) or "xterm",
        runInTerminal=parseBool(mergedObj.get("runInTerminal"), True),
        terminalParams=terminalParams,
        env=parseEnv(mergedObj.get("env")),
        plugins=loadPluginConfigs(mergedObj.get("plugins")),
        sourcePath=sourcePath,
    )


def loadConfigFile(configPath: str | Path | None) -> BarConfig:
    if configPath is None:
        return buildConfig({})

    cfgPath = Path(configPath).expanduser()
    if not cfgPath.exists():
        return buildConfig({}, sourcePath=cfgPath)

    return buildConfig(loadToml(cfgPath), sourcePath=cfgPath)
