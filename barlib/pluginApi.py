from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

# execution modes
MODE_SYNC = "sync"
MODE_BACKGROUND = "background"
MODE_TERMINAL = "terminal"

# failure reasons carried by ExecutionResult.failure
FAIL_NOT_FOUND = "notFound"
FAIL_EXIT_STATUS = "exitStatus"
FAIL_SIGNAL = "signal"
FAIL_TIMEOUT = "timeout"
FAIL_SPAWN = "spawnError"

# node kinds
NODE_ROOT = "root"
NODE_ITEM = "item"
NODE_SEPARATOR = "separator"
NODE_UNAVAILABLE = "unavailable"

UNAVAILABLE_TITLE = "⚠️"

# keys the core interprets itself; everything else is passed through
ACTION_KEYS = ("href", "bash", "terminal", "refresh", "copy")
LAYOUT_KEYS = ("dropdown", "trim")


@dataclass
class PluginSource:
    name: str
    path: Path
    everySec: float | None = None  # None -> manual refresh only
    enabled: bool = True
    env: dict[str, str] = field(default_factory=dict)

    @property
    def isScheduled(self) -> bool:
        return bool(self.enabled and self.everySec and self.everySec > 0)


@dataclass(frozen=True)
class ExecutionResult:
    plugin: str
    text: str = ""
    stderr: str = ""
    exitCode: int | None = None
    ts: float = field(default_factory=time.time)
    failure: str | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    def describe(self) -> str:
        if self.failure is None:
            return f"rc={self.exitCode}"
        if self.detail:
            return f"{self.failure} ({self.detail})"
        return self.failure


@dataclass(frozen=True)
class Directive:
    key: str
    value: Any
    raw: str | None = None  # None for a bare key

    def asText(self) -> str:
        if self.raw is not None:
            return self.raw
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return str(self.value)


@dataclass
class MenuNode:
    kind: str = NODE_ITEM
    text: str = ""
    children: list[MenuNode] = field(default_factory=list)
    directives: dict[str, Directive] = field(default_factory=dict)
    lineNo: int = 0
    depth: int = 0
    plugin: str = ""
    note: str = ""

    @property
    def isSubmenu(self) -> bool:
        return bool(self.children)

    @property
    def isUnavailable(self) -> bool:
        return self.kind == NODE_UNAVAILABLE

    def has(self, key: str) -> bool:
        return key in self.directives

    def value(self, key: str, defaultVal: Any = None) -> Any:
        d = self.directives.get(key)
        return defaultVal if d is None else d.value

    def flag(self, key: str, defaultVal: bool = False) -> bool:
        d = self.directives.get(key)
        if d is None:
            return bool(defaultVal)
        if isinstance(d.value, bool):
            return d.value
        return bool(defaultVal)

    def textValue(self, key: str) -> str | None:
        d = self.directives.get(key)
        return None if d is None else d.asText()

    def params(self) -> list[str]:
        """Positional ``paramN`` arguments of a bash directive, ordered by N."""
        numbered: list[tuple[int, str]] = []
        for key, d in self.directives.items():
            if not key.startswith("param"):
                continue
            suffix = key[len("param"):]
            if suffix.isdigit():
                numbered.append((int(suffix), d.asText()))
        return [v for _n, v in sorted(numbered)]

    def passThrough(self) -> dict[str, Any]:
        """Presentation directives for the renderer, unknown keys included."""
        out: dict[str, Any] = {}
        for key, d in self.directives.items():
            if key in ACTION_KEYS or key in LAYOUT_KEYS:
                continue
            if key.startswith("param") and key[len("param"):].isdigit():
                continue
            out[key] = d.value
        return out

    def child(self, path: list[int]) -> MenuNode | None:
        node: MenuNode = self
        for idx in path:
            items = [c for c in node.children if c.kind != NODE_SEPARATOR]
            if not 1 <= idx <= len(items):
                return None
            node = items[idx - 1]
        return node


def walk(node: MenuNode) -> Iterator[MenuNode]:
    yield node
    for c in node.children:
        yield from walk(c)


@dataclass(frozen=True)
class TerminalMeta:
    typeName: str
    defaultParams: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CommandSpec:
    key: str
    label: str
    payload: dict[str, Any] = field(default_factory=dict)
