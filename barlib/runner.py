from __future__ import annotations

import os
import shlex
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import Any, Callable, Sequence

from .pluginApi import (
    FAIL_EXIT_STATUS,
    FAIL_NOT_FOUND,
    FAIL_SIGNAL,
    FAIL_SPAWN,
    FAIL_TIMEOUT,
    MODE_BACKGROUND,
    MODE_SYNC,
    MODE_TERMINAL,
    ExecutionResult,
    PluginSource,
)

LogFn = Callable[[str], None]
DoneFn = Callable[[ExecutionResult], None]

VERSION = "0.3.0"


def envExportString(env: dict[str, str]) -> str:
    if not env:
        return ""
    pairs = " ".join(f"{k}={shlex.quote(str(v))}" for k, v in env.items())
    return f"export {pairs}"


def buildCommandLine(argv: Sequence[str], env: dict[str, str] | None = None) -> str:
    cmdStr = " ".join(shlex.quote(str(a)) for a in argv)
    exportStr = envExportString(dict(env or {}))
    return f"{exportStr}; {cmdStr}" if exportStr else cmdStr


def mergeEnv(overlay: dict[str, str] | None) -> dict[str, str]:
    envObj = dict(os.environ)
    for k, v in (overlay or {}).items():
        envObj[str(k)] = str(v)
    return envObj


def decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")


def classifyExit(returnCode: int) -> tuple[str | None, str]:
    if returnCode == 0:
        return None, ""
    if returnCode < 0:
        sigNum = -returnCode
        try:
            sigName = signal.Signals(sigNum).name
        except ValueError:
            sigName = str(sigNum)
        return FAIL_SIGNAL, sigName
    return FAIL_EXIT_STATUS, f"rc={returnCode}"


def killTree(proc: subprocess.Popen) -> None:
    # the plugin runs in its own session, take its children down with it
    if os.name != "nt":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except OSError:
            pass
    proc.kill()


class ScriptRunner:
    def __init__(
        self,
        *,
        timeoutSec: float = 30.0,
        terminalLauncher: Any = None,
        terminalId: str = "xterm",
        pluginDirectory: Path | None = None,
        logFn: LogFn | None = None,
    ) -> None:
        self.timeoutSec = float(timeoutSec)
        self.terminalLauncher = terminalLauncher
        self.terminalId = terminalId
        self.pluginDirectory = pluginDirectory
        self.logFn = logFn
        self.logRuns = False

    def writeLog(self, text: str) -> None:
        if self.logFn is not None:
            self.logFn(text)

    def pluginEnv(self, source: PluginSource, reason: str = "") -> dict[str, str]:
        pluginsPath = self.pluginDirectory or source.path.parent
        envObj = {
            "SCRIPTBAR": "1",
            "SCRIPTBAR_VERSION": VERSION,
            "SCRIPTBAR_PLUGIN_PATH": str(source.path),
            "SCRIPTBAR_PLUGINS_PATH": str(pluginsPath),
        }
        if reason:
            envObj["SCRIPTBAR_PLUGIN_REFRESH_REASON"] = reason
        envObj.update(source.env or {})
        return envObj

    def execute(
        self,
        source: PluginSource,
        mode: str = MODE_SYNC,
        env: dict[str, str] | None = None,
        *,
        reason: str = "",
        doneFn: DoneFn | None = None,
    ) -> ExecutionResult:
        envObj = self.pluginEnv(source, reason)
        envObj.update(env or {})
        return self.runCommand(
            [str(source.path)],
            mode,
            envObj,
            label=source.name,
            cwd=source.path.parent,
            doneFn=doneFn,
        )

    def runCommand(
        self,
        argv: Sequence[str],
        mode: str = MODE_SYNC,
        env: dict[str, str] | None = None,
        *,
        label: str = "",
        cwd: Path | None = None,
        doneFn: DoneFn | None = None,
    ) -> ExecutionResult:
        argsList = [str(a) for a in argv]
        labelStr = label or (argsList[0] if argsList else "?")

        if mode == MODE_TERMINAL:
            return self.handOffToTerminal(argsList, env or {}, labelStr, doneFn)

        if mode == MODE_BACKGROUND:
            threading.Thread(
                target=self._runBackgroundThread,
                args=(argsList, dict(env or {}), labelStr, cwd, doneFn),
                daemon=True,
            ).start()
            return ExecutionResult(plugin=labelStr)

        resObj = self.runSync(argsList, env or {}, labelStr, cwd)
        if doneFn is not None:
            doneFn(resObj)
        return resObj

    def runSync(
        self,
        argsList: list[str],
        env: dict[str, str],
        labelStr: str,
        cwd: Path | None,
    ) -> ExecutionResult:
        startTs = time.time()
        try:
            proc = subprocess.Popen(
                argsList,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=mergeEnv(env),
                cwd=str(cwd) if cwd else None,
                start_new_session=(os.name != "nt"),
            )
        except FileNotFoundError as exc:
            return ExecutionResult(plugin=labelStr, ts=startTs, failure=FAIL_NOT_FOUND, detail=str(exc))
        except OSError as exc:
            return ExecutionResult(
                plugin=labelStr, ts=startTs, failure=FAIL_SPAWN, detail=f"{type(exc).__name__}: {exc}"
            )

        try:
            outBytes, errBytes = proc.communicate(timeout=max(0.1, self.timeoutSec))
        except subprocess.TimeoutExpired:
            killTree(proc)
            outBytes, errBytes = proc.communicate()
            return ExecutionResult(
                plugin=labelStr,
                text=decode(outBytes),
                stderr=decode(errBytes),
                exitCode=proc.returncode,
                ts=startTs,
                failure=FAIL_TIMEOUT,
                detail=f"{self.timeoutSec:g}s",
            )

        failure, detail = classifyExit(int(proc.returncode))
        resObj = ExecutionResult(
            plugin=labelStr,
            text=decode(outBytes),
            stderr=decode(errBytes),
            exitCode=int(proc.returncode),
            ts=startTs,
            failure=failure,
            detail=detail,
        )
        if self.logRuns:
            self.writeLog(f"{labelStr}: {resObj.describe()} in {time.time() - startTs:.2f}s")
        return resObj

    def _runBackgroundThread(
        self,
        argsList: list[str],
        env: dict[str, str],
        labelStr: str,
        cwd: Path | None,
        doneFn: DoneFn | None,
    ) -> None:
        self.writeLog(f"{labelStr} -> {' '.join(argsList)}")
        try:
            resObj = self.runSync(argsList, env, labelStr, cwd)
            if resObj.ok:
                self.writeLog(f"{labelStr} OK")
            else:
                self.writeLog(f"{labelStr} FAIL {resObj.describe()}")

            outStr = (resObj.stderr + "\n" + resObj.text).strip()
            if outStr:
                self.writeLog(outStr)

            if doneFn is not None:
                doneFn(resObj)
        except Exception as exc:
            self.writeLog(f"{labelStr} EXC {type(exc).__name__}: {exc}")

    def handOffToTerminal(
        self,
        argsList: list[str],
        env: dict[str, str],
        labelStr: str,
        doneFn: DoneFn | None,
    ) -> ExecutionResult:
        commandLine = buildCommandLine(argsList, env)
        if self.terminalLauncher is None:
            self.writeLog(f"{labelStr}: no terminal launcher, cannot run: {commandLine}")
            return ExecutionResult(plugin=labelStr, failure=FAIL_SPAWN, detail="no terminal launcher")

        try:
            self.terminalLauncher.launch(commandLine, self.terminalId)
        except Exception as exc:
            self.writeLog(f"{labelStr}: terminal EXC {type(exc).__name__}: {exc}")
            return ExecutionResult(plugin=labelStr, failure=FAIL_SPAWN, detail=str(exc))

        resObj = ExecutionResult(plugin=labelStr)
        if doneFn is not None:
            doneFn(resObj)
        return resObj
