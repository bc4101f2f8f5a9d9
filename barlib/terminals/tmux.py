from __future__ import annotations

import subprocess
from typing import Any

from barlib.pluginApi import TerminalMeta
from barlib.utils import parseStr

typeName = "tmux"

terminalMeta = TerminalMeta(
    typeName="tmux",
    defaultParams={
        "windowName": "scriptbar",
    },
)


def buildArgs(commandLine: str, params: dict[str, Any]) -> list[str]:
    windowName = parseStr(params.get("windowName")) or "scriptbar"
    return ["tmux", "new-window", "-n", windowName, commandLine]


def openTerminal(commandLine: str, params: dict[str, Any]) -> None:
    resObj = subprocess.run(
        buildArgs(commandLine, params),
        stdin=subprocess.DEVNULL,
        capture_output=True,
        text=True,
    )
    if resObj.returncode != 0:
        raise RuntimeError((resObj.stderr or "").strip() or f"tmux rc={resObj.returncode}")
