"""
Output compiler: raw plugin output -> MenuNode tree.

Output is split on the first horizontal rule (a line of three or more
dashes). The first header line is the title, further header lines become
top-level entries. Body lines nest by leading ``--`` pairs.
"""
from __future__ import annotations

import re
from typing import Callable

from .lineParser import ParsedLine, parseLine
from .pluginApi import (
    NODE_ITEM,
    NODE_ROOT,
    NODE_SEPARATOR,
    NODE_UNAVAILABLE,
    UNAVAILABLE_TITLE,
    ExecutionResult,
    MenuNode,
)

LogFn = Callable[[str], None]

DEPTH_MARKER = "--"

_reRule = re.compile(r"^\s*-{3,}\s*$")


def isRule(line: str) -> bool:
    return bool(_reRule.match(line))


def splitOutput(text: str) -> tuple[list[tuple[int, str]], list[tuple[int, str]]]:
    """Header and body as (lineNo, line) lists, blank lines dropped."""
    header: list[tuple[int, str]] = []
    body: list[tuple[int, str]] = []
    target = header
    seenRule = False

    for idx, line in enumerate(str(text or "").splitlines(), start=1):
        if not seenRule and isRule(line):
            seenRule = True
            target = body
            continue
        if not line.strip():
            continue
        target.append((idx, line))

    return header, body


def unavailableTree(plugin: str = "", note: str = "") -> MenuNode:
    return MenuNode(kind=NODE_UNAVAILABLE, text=UNAVAILABLE_TITLE, plugin=plugin, note=note)


def bodyDepth(line: str) -> tuple[int, str, bool]:
    """(depth, text without markers, isSeparator)."""
    stripped = line.strip()
    if stripped and set(stripped) == {"-"} and len(stripped) >= 3:
        return (len(stripped) - 3) // 2, "", True

    depth = 0
    rest = line
    while rest.startswith(DEPTH_MARKER):
        depth += 1
        rest = rest[len(DEPTH_MARKER):]
    return depth, rest, False


def buildNode(parsed: ParsedLine, *, lineNo: int, depth: int, plugin: str) -> MenuNode:
    directives = parsed.asDict()
    node = MenuNode(
        kind=NODE_ITEM,
        text=parsed.text,
        directives=directives,
        lineNo=lineNo,
        depth=depth,
        plugin=plugin,
    )
    if node.flag("trim", True):
        node.text = node.text.strip()
    return node


def parseWithLog(line: str, lineNo: int, plugin: str, logFn: LogFn | None) -> ParsedLine:
    parsed = parseLine(line)
    if parsed.degraded and logFn is not None:
        logFn(f"{plugin or '?'}: line {lineNo}: {parsed.reason}, kept as text")
    return parsed


def compileOutput(text: str, *, plugin: str = "", logFn: LogFn | None = None) -> MenuNode:
    if not str(text or "").strip():
        return unavailableTree(plugin, "empty output")

    header, body = splitOutput(text)

    root = MenuNode(kind=NODE_ROOT, plugin=plugin)
    if header:
        lineNo, line = header[0]
        titleNode = buildNode(parseWithLog(line, lineNo, plugin, logFn), lineNo=lineNo, depth=0, plugin=plugin)
        root.text = titleNode.text
        root.directives = titleNode.directives
        root.lineNo = lineNo

    for lineNo, line in header[1:]:
        node = buildNode(parseWithLog(line, lineNo, plugin, logFn), lineNo=lineNo, depth=0, plugin=plugin)
        if node.flag("dropdown", True):
            root.children.append(node)

    if body:
        root.children.append(MenuNode(kind=NODE_SEPARATOR, plugin=plugin))

    # ancestors[d] is the parent for a node at depth d, None under a hidden line
    ancestors: list[MenuNode | None] = [root]
    for lineNo, line in body:
        rawDepth, rest, isSep = bodyDepth(line)
        depth = min(rawDepth, len(ancestors) - 1)
        parent = ancestors[depth]
        del ancestors[depth + 1 :]

        if isSep:
            if parent is not None:
                parent.children.append(MenuNode(kind=NODE_SEPARATOR, lineNo=lineNo, depth=depth, plugin=plugin))
            continue

        node = buildNode(parseWithLog(rest, lineNo, plugin, logFn), lineNo=lineNo, depth=depth, plugin=plugin)
        if parent is None or not node.flag("dropdown", True):
            # a hidden line takes its whole subtree with it
            ancestors.append(None)
            continue

        parent.children.append(node)
        ancestors.append(node)

    return root


def compileResult(result: ExecutionResult, *, logFn: LogFn | None = None) -> MenuNode:
    if not result.ok:
        return unavailableTree(result.plugin, result.describe())
    return compileOutput(result.text, plugin=result.plugin, logFn=logFn)
