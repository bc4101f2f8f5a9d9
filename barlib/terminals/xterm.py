from __future__ import annotations

import subprocess
from typing import Any

from barlib.pluginApi import TerminalMeta
from barlib.utils import parseBool, parseStr, parseStrList

typeName = "xterm"

terminalMeta = TerminalMeta(
    typeName="xterm",
    defaultParams={
        "program": "xterm",
        "execFlag": "-e",
        "shell": "/bin/sh",
        "holdOpen": True,
        "extraArgs": [],
    },
)


def buildArgs(commandLine: str, params: dict[str, Any]) -> list[str]:
    program = parseStr(params.get("program")) or "xterm"
    execFlag = parseStr(params.get("execFlag")) or "-e"
    shellPath = parseStr(params.get("shell")) or "/bin/sh"

    scriptStr = commandLine
    if parseBool(params.get("holdOpen"), True):
        # keep the window around so the user can read the output
        scriptStr = f"{commandLine}; printf '\\n[done] '; read _"

    argsList = [program]
    argsList += parseStrList(params.get("extraArgs"))
    argsList += [execFlag, shellPath, "-c", scriptStr]
    return argsList


def openTerminal(commandLine: str, params: dict[str, Any]) -> None:
    subprocess.Popen(
        buildArgs(commandLine, params),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
