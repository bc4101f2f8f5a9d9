"""
Action dispatcher: turns an activated MenuNode into exactly one side effect.

Precedence when a line carries several actions: href, then bash, then copy,
then refresh. ``bash`` together with ``refresh=true`` refreshes the owning
plugin once the command has finished.
"""
from __future__ import annotations

import shutil
import subprocess
import webbrowser
from typing import Callable

from .pluginApi import MODE_BACKGROUND, MODE_TERMINAL, NODE_ITEM, NODE_ROOT, ExecutionResult, MenuNode

LogFn = Callable[[str], None]
OpenUrlFn = Callable[[str], bool]
ClipboardFn = Callable[[str], None]

ACTION_HREF = "href"
ACTION_BASH = "bash"
ACTION_COPY = "copy"
ACTION_REFRESH = "refresh"

CLIPBOARD_COMMANDS = (
    ["pbcopy"],
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
)


def systemClipboard(text: str) -> None:
    for argsList in CLIPBOARD_COMMANDS:
        if shutil.which(argsList[0]) is None:
            continue
        subprocess.run(argsList, input=text, text=True, check=True, capture_output=True)
        return
    raise RuntimeError("no clipboard command found")


def openUrl(url: str) -> bool:
    return bool(webbrowser.open(url, new=2))


def pickAction(node: MenuNode) -> str | None:
    if node.kind not in (NODE_ITEM, NODE_ROOT):
        return None
    if node.textValue("href"):
        return ACTION_HREF
    if node.textValue("bash"):
        return ACTION_BASH
    if node.has("copy") and node.value("copy") is not False:
        return ACTION_COPY
    if node.flag("refresh"):
        return ACTION_REFRESH
    return None


class ActionDispatcher:
    def __init__(
        self,
        runner,
        scheduler,
        *,
        runInTerminal: bool = True,
        openUrlFn: OpenUrlFn = openUrl,
        clipboardFn: ClipboardFn = systemClipboard,
        logFn: LogFn | None = None,
    ) -> None:
        self.runner = runner
        self.scheduler = scheduler
        self.runInTerminal = bool(runInTerminal)
        self.openUrlFn = openUrlFn
        self.clipboardFn = clipboardFn
        self.logFn = logFn

    def writeLog(self, text: str) -> None:
        if self.logFn is not None:
            self.logFn(text)

    def activate(self, node: MenuNode) -> str | None:
        action = pickAction(node)
        if action is None:
            return None

        label = f"{node.plugin or '?'}: {node.text or action}"
        try:
            if action == ACTION_HREF:
                self.doHref(node, label)
            elif action == ACTION_BASH:
                self.doBash(node, label)
            elif action == ACTION_COPY:
                self.doCopy(node, label)
            else:
                self.doRefresh(node)
        except Exception as exc:
            self.writeLog(f"{label}: {action} EXC {type(exc).__name__}: {exc}")
        return action

    def doHref(self, node: MenuNode, label: str) -> None:
        url = node.textValue("href") or ""
        self.writeLog(f"{label}: open {url}")
        if not self.openUrlFn(url):
            self.writeLog(f"{label}: could not open {url}")

    def doBash(self, node: MenuNode, label: str) -> None:
        argsList = [node.textValue("bash") or ""] + node.params()
        inTerminal = node.flag("terminal", self.runInTerminal)
        wantsRefresh = node.flag("refresh")

        doneFn = None
        if wantsRefresh and node.plugin:
            pluginName = node.plugin

            def doneFn(_res: ExecutionResult) -> None:
                self.scheduler.requestRefresh(pluginName, "action")

        mode = MODE_TERMINAL if inTerminal else MODE_BACKGROUND
        resObj = self.runner.runCommand(argsList, mode, {}, label=label, doneFn=doneFn)
        if mode == MODE_TERMINAL and not resObj.ok:
            self.writeLog(f"{label}: terminal FAIL {resObj.describe()}")

    def doCopy(self, node: MenuNode, label: str) -> None:
        d = node.directives.get("copy")
        textStr = node.text if d is None or d.raw is None or d.value is True else d.asText()
        self.clipboardFn(textStr)
        self.writeLog(f"{label}: copied {len(textStr)} chars")

    def doRefresh(self, node: MenuNode) -> None:
        if not node.plugin:
            return
        self.scheduler.requestRefresh(node.plugin, "action")
