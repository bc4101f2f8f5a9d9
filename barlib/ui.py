from __future__ import annotations

import textwrap
import time
from typing import Any, Callable

from rich import box
from rich.console import Console
from rich.errors import StyleSyntaxError
from rich.layout import Layout
from rich.live import Live
from rich.padding import Padding
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text

from .core import *
from .keyReader import BACKSPACE, ENTER, ESC, KeyReader

PANES = ("plugins", "menu", "log")

HELP_TEXT = """
SCRIPTBAR Help

Panes
--------------------------------
h / l, TAB   focus plugins / menu / log
k / j        move up / down in the focused pane
g / G        first / last
ENTER        activate (title line or menu item)

Plugins
--------------------------------
r / R        refresh selected / all
t            run selected in terminal
+ / -        log every run / quiet

Command Mode
--------------------------------
:N           select plugin N
:o 2.1       activate menu item 2.1
:d  :e       disable / enable plugin
:every 30    refresh every 30s (0 = manual)
:reload      reload config file
.            repeat last command
F1 / ?       this help, any key closes
"""


def safeStyle(node: MenuNode) -> str:
    """rich style from the color/disabled hints; hints rich cannot parse are dropped."""
    parts: list[str] = []
    colorStr = node.textValue("color")
    if colorStr:
        # "light,dark" pairs: the terminal gets the first one
        parts.append(colorStr.split(",", 1)[0].strip())
    if node.flag("disabled"):
        parts.append("dim")

    styleStr = " ".join(p for p in parts if p)
    if not styleStr:
        return ""
    try:
        Style.parse(styleStr)
    except (StyleSyntaxError, ValueError):
        return "dim" if node.flag("disabled") else ""
    return styleStr


def menuLines(node: MenuNode, prefix: str = "", indent: int = 0) -> list[tuple[str, str, str | None]]:
    """(text, style, path) rows, e.g. ('2.1   More', '', '2.1'); separators have no path."""
    rows: list[tuple[str, str, str | None]] = []
    num = 0
    pad = "  " * indent
    for c in node.children:
        if c.kind == NODE_SEPARATOR:
            rows.append((pad + "─" * 12, "dim", None))
            continue
        num += 1
        path = f"{prefix}{num}"
        mark = "✓ " if c.flag("checked") else ""
        arrow = " ▸" if c.isSubmenu else ""
        rows.append((f"{pad}{path:<6}{mark}{c.text}{arrow}", safeStyle(c), path))
        if c.children:
            rows.extend(menuLines(c, prefix=f"{path}.", indent=indent + 1))
    return rows


class RichUi:
    def __init__(
        self,
        core: BarCore,
        *,
        refreshRateSec: float = 0.05,
        console: Console | None = None,
    ) -> None:

        self.core = core
        self.refreshRateSec = float(refreshRateSec)
        self.console = console or Console()
        self.keyReader = KeyReader()

        self.styleHeader = "bold black on cyan"
        self.styleFooter = "bright white on blue"
        self.styleFooterCmd = "black on white"
        self.styleCursor = "reverse"
        self.severityStyle = {"ok": "green", "bad": "red", "info": "dim"}

        self.showHelp = False
        self.commandMode = False
        self.commandBuf = ""
        self.commandLast = ""

        self.focusPane = "plugins"
        self.menuCursor = 0
        self.logOffset = 0  # lines scrolled up from the tail
        self.logMaxOffset = 0

        self.bindings: dict[str, Callable[[], None]] = {
            "KEY_F1": self.toggleHelp,
            "?": self.toggleHelp,
            ":": self.enterCommandMode,
            "\t": lambda: self.cycleFocus(+1),
            "h": lambda: self.cycleFocus(-1),
            "KEY_LEFT": lambda: self.cycleFocus(-1),
            "l": lambda: self.cycleFocus(+1),
            "KEY_RIGHT": lambda: self.cycleFocus(+1),
            "k": lambda: self.moveCursor(-1),
            "KEY_UP": lambda: self.moveCursor(-1),
            "j": lambda: self.moveCursor(+1),
            "KEY_DOWN": lambda: self.moveCursor(+1),
            "g": lambda: self.moveCursor(-(10**6)),
            "G": lambda: self.moveCursor(10**6),
            ENTER: self.activateFocused,
            "r": lambda: self.runCommand("r"),
            "R": lambda: self.runCommand("ra"),
            "t": lambda: self.runCommand("t"),
            "+": lambda: self.runCommand("++"),
            "-": lambda: self.runCommand("--"),
            ".": self.repeatCommand,
        }

    # input

    def toggleHelp(self) -> None:
        self.showHelp = not self.showHelp

    def enterCommandMode(self) -> None:
        self.commandMode = True
        self.commandBuf = ""
        self.keyReader.enableTyping = True
        self.core.statusMsg = "cmd"

    def leaveCommandMode(self) -> None:
        self.commandMode = False
        self.commandBuf = ""
        self.keyReader.enableTyping = False
        self.core.statusMsg = "ready"

    def cycleFocus(self, delta: int) -> None:
        idx = PANES.index(self.focusPane)
        self.focusPane = PANES[(idx + delta) % len(PANES)]

    def menuPaths(self) -> list[str]:
        st = self.core.selectedState()
        if st is None or st.tree is None or st.tree.isUnavailable:
            return []
        return [path for _text, _style, path in menuLines(st.tree) if path]

    def moveCursor(self, delta: int) -> None:
        if self.focusPane == "log":
            # up scrolls back in time
            self.logOffset = max(0, min(self.logMaxOffset, self.logOffset - delta))
            return

        if self.focusPane == "menu":
            paths = self.menuPaths()
            self.menuCursor = max(0, min(len(paths) - 1, self.menuCursor + delta)) if paths else 0
            return

        if self.core.pluginOrder:
            lastIdx = len(self.core.pluginOrder) - 1
            self.core.selectedIndex = max(0, min(lastIdx, self.core.selectedIndex + delta))
        self.menuCursor = 0

    def activateFocused(self) -> None:
        if self.focusPane == "menu":
            paths = self.menuPaths()
            if paths:
                self.runCommand(f"o {paths[min(self.menuCursor, len(paths) - 1)]}")
            return
        if self.focusPane == "plugins":
            self.runCommand("o")

    def runCommand(self, cmdStr: str) -> None:
        try:
            self.core.execCommand(cmdStr)
        except Exception as exc:
            self.core.writeLog(f":{cmdStr} EXC {type(exc).__name__}: {exc}")
        self.commandLast = cmdStr

    def repeatCommand(self) -> None:
        if self.commandLast:
            self.runCommand(self.commandLast)

    def handleCommandKey(self, ch: str) -> None:
        if ch == ENTER:
            cmdStr = self.commandBuf.strip()
            self.leaveCommandMode()
            if cmdStr:
                self.runCommand(cmdStr)
                self.menuCursor = 0
        elif ch == BACKSPACE:
            self.commandBuf = self.commandBuf[:-1]
        elif ch == ESC:
            self.leaveCommandMode()
        elif ch.isprintable():
            self.commandBuf += ch

    def handleKeys(self) -> None:
        ch = self.keyReader.readCharNonBlocking()
        if ch is None:
            return

        if self.showHelp:
            self.showHelp = False
            return

        if self.commandMode:
            self.handleCommandKey(ch)
            return

        fn = self.bindings.get(ch)
        if fn is not None:
            fn()

    # rendering

    def paneBox(self, pane: str):
        return box.DOUBLE if self.focusPane == pane else box.SQUARE

    def paneStyle(self, pane: str) -> str:
        return "" if self.focusPane == pane else "dim"

    def renderHeader(self) -> Text:
        width = self.console.size.width
        total = len(self.core.pluginOrder)
        bad = sum(1 for st in list(self.core.statesByName.values()) if st.severity == "bad")

        left = f"  SCRIPTBAR  {total} plugins"
        if bad:
            left += f", {bad} unavailable"
        right = f"{time.strftime('%H:%M:%S')}  "
        return Text(left.ljust(max(len(left) + 1, width - len(right))) + right, style=self.styleHeader)

    def renderFooter(self) -> Text:
        width = self.console.size.width
        if self.commandMode:
            return Text(f":{self.commandBuf}"[:width].ljust(width), style=self.styleFooterCmd)

        hints = "   ".join(f":{c.key} {c.label}" for c in HOST_COMMANDS)
        status = f" {self.core.statusMsg} "
        return Text((status + "  " + hints)[:width].ljust(width), style=self.styleFooter)

    def renderHelp(self) -> Panel:
        return Panel(
            Padding(Text(HELP_TEXT.strip("\n")), (1, 2)),
            title="HELP",
            subtitle="any key closes",
            box=box.DOUBLE,
            style="bright_white on black",
        )

    def renderPlugins(self) -> Panel:
        tableObj = Table(expand=True, box=None, pad_edge=False, header_style="bold cyan")
        tableObj.add_column("#", justify="right", no_wrap=True, width=3)
        tableObj.add_column("PLUGIN", ratio=3, no_wrap=True, overflow="ellipsis")
        tableObj.add_column("TITLE", ratio=4, no_wrap=True, overflow="ellipsis")
        tableObj.add_column("EVERY", no_wrap=True, width=7)

        for idx, name in enumerate(list(self.core.pluginOrder)):
            st = self.core.statesByName.get(name)
            if st is None:
                continue
            selected = idx == self.core.selectedIndex
            everyStr = f"{st.source.everySec:g}s" if st.source.everySec else "manual"
            tableObj.add_row(
                str(idx + 1),
                st.name,
                Text(st.title, style=self.severityStyle.get(st.severity, "")),
                everyStr,
                style="bold on blue" if selected else "",
            )

        body: Any = tableObj if self.core.pluginOrder else Text("no plugins", style="dim")
        return Panel(body, title="PLUGINS", box=self.paneBox("plugins"), style=self.paneStyle("plugins"))

    def renderMenu(self) -> Panel:
        st = self.core.selectedState()
        title = f"MENU {st.name}" if st else "MENU"

        if st is None:
            body: Any = Text("")
        elif not st.source.enabled:
            body = Text("disabled  (:e to enable)", style="dim")
        elif st.tree is None:
            body = Text("loading ...", style="dim")
        elif st.tree.isUnavailable:
            body = Text(f"{st.tree.text} unavailable: {st.tree.note}", style="red")
        else:
            rowsList = menuLines(st.tree)
            paths = [path for _t, _s, path in rowsList if path]
            cursorPath = paths[min(self.menuCursor, len(paths) - 1)] if paths else None

            body = Text()
            body.append(f"0     {st.tree.text}", style=safeStyle(st.tree) or "bold")
            for lineStr, styleStr, path in rowsList:
                if self.focusPane == "menu" and path is not None and path == cursorPath:
                    styleStr = f"{styleStr} {self.styleCursor}".strip()
                body.append("\n")
                body.append(lineStr, style=styleStr)

        return Panel(body, title=title, box=self.paneBox("menu"), style=self.paneStyle("menu"))

    def renderLog(self, height: int, width: int) -> Panel:
        windowHeight = max(1, height - 2)
        with self.core.logLock:
            logLines = list(self.core.commandLog)

        wrapped: list[str] = []
        for ln in logLines:
            clean = " ".join(str(ln).replace("\r", "").splitlines()).strip()
            wrapped.extend(textwrap.wrap(clean, width=max(10, width - 4), break_long_words=True) or [""])

        self.logMaxOffset = max(0, len(wrapped) - windowHeight)
        self.logOffset = min(self.logOffset, self.logMaxOffset)
        end = len(wrapped) - self.logOffset
        visible = wrapped[max(0, end - windowHeight) : end]

        title = f"LOG  -{self.logOffset}" if self.logOffset else "LOG"
        return Panel(Text("\n".join(visible)), title=title, box=self.paneBox("log"), style=self.paneStyle("log"))

    def buildLayout(self) -> Layout:
        layoutObj = Layout(name="root")
        content = Layout(name="content")

        if self.showHelp:
            content.update(self.renderHelp())
        else:
            height = max(6, self.console.size.height - 2)
            logHeight = max(4, height // 3)
            top = Layout(name="top")
            top.split_row(
                Layout(self.renderPlugins(), name="plugins", ratio=1),
                Layout(self.renderMenu(), name="menu", ratio=1),
            )
            content.split_column(
                top,
                Layout(self.renderLog(logHeight, self.console.size.width), name="log", size=logHeight),
            )

        layoutObj.split_column(
            Layout(self.renderHeader(), name="header", size=1),
            content,
            Layout(self.renderFooter(), name="footer", size=1),
        )
        return layoutObj

    def runLoop(self) -> None:
        with Live(console=self.console, auto_refresh=False, screen=True) as live:
            try:
                while True:
                    self.handleKeys()
                    live.update(self.buildLayout(), refresh=True)
                    time.sleep(self.refreshRateSec)
            finally:
                self.keyReader.stop()
