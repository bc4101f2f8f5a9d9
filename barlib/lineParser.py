"""
Line directive parser.

One protocol line is ``text|key=value key2="quoted value" bareKey``. The first
unescaped ``|`` ends the display text, ``\\|`` is a literal pipe and
``\\\\`` a literal backslash. Values that look boolean (true/false/1/0)
are coerced to bool, everything else stays a string. Parsing never raises:
a malformed token ends directive parsing and the rest of the line is kept
as display text.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

from .pluginApi import Directive

_reKey = re.compile(r"[A-Za-z_][A-Za-z0-9_.\-]*\Z")
_reNeedsQuote = re.compile(r"[\s\"'|]")

TRUE_WORDS = ("true", "1")
FALSE_WORDS = ("false", "0")


@dataclass
class ParsedLine:
    text: str
    directives: list[Directive] = field(default_factory=list)
    degraded: bool = False
    reason: str = ""

    def asDict(self) -> dict[str, Directive]:
        return {d.key: d for d in self.directives}


def coerceValue(raw: str) -> bool | str:
    low = raw.strip().lower()
    if low in TRUE_WORDS:
        return True
    if low in FALSE_WORDS:
        return False
    return raw


def splitDisplay(line: str) -> tuple[str, str | None]:
    out: list[str] = []
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == "\\" and i + 1 < n and line[i + 1] in ("|", "\\"):
            out.append(line[i + 1])
            i += 2
            continue
        if ch == "|":
            return "".join(out), line[i + 1 :]
        out.append(ch)
        i += 1
    return "".join(out), None


def parseDirectives(part: str) -> tuple[list[Directive], int | None, str]:
    """Returns (directives, offset of the malformed remainder or None, reason)."""
    out: list[Directive] = []
    pos = 0
    lastEnd = 0
    n = len(part)

    while True:
        while pos < n and part[pos].isspace():
            pos += 1
        if pos >= n:
            return out, None, ""

        start = pos
        while pos < n and not part[pos].isspace() and part[pos] != "=":
            pos += 1
        key = part[start:pos]
        if not _reKey.match(key):
            return out, lastEnd, f"bad key {key!r}"

        if pos >= n or part[pos].isspace():
            out.append(Directive(key=key, value=True, raw=None))
            lastEnd = pos
            continue

        pos += 1  # '='
        if pos < n and part[pos] in ("\"", "'"):
            quote = part[pos]
            pos += 1
            buf: list[str] = []
            closed = False
            while pos < n:
                ch = part[pos]
                if ch == "\\" and pos + 1 < n and part[pos + 1] in (quote, "\\"):
                    buf.append(part[pos + 1])
                    pos += 2
                    continue
                if ch == quote:
                    closed = True
                    pos += 1
                    break
                buf.append(ch)
                pos += 1
            if not closed:
                return out, lastEnd, f"unterminated quote in {key}"
            if pos < n and not part[pos].isspace():
                return out, lastEnd, f"garbage after quoted {key}"
            raw = "".join(buf)
        else:
            valStart = pos
            while pos < n and not part[pos].isspace():
                pos += 1
            raw = part[valStart:pos]

        out.append(Directive(key=key, value=coerceValue(raw), raw=raw))
        lastEnd = pos


def parseLine(line: str) -> ParsedLine:
    line = line.rstrip("\r\n")
    text, part = splitDisplay(line)
    if part is None:
        return ParsedLine(text=text)

    directives, badAt, reason = parseDirectives(part)
    if badAt is None:
        return ParsedLine(text=text, directives=directives)

    return ParsedLine(
        text=text + "|" + part[badAt:],
        directives=directives,
        degraded=True,
        reason=reason,
    )


def serializeValue(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    s = str(value)
    if s and not _reNeedsQuote.search(s):
        return s
    return "\"" + s.replace("\\", "\\\\").replace("\"", "\\\"") + "\""


def serializeDirectives(directives: list[Directive]) -> str:
    parts: list[str] = []
    for d in directives:
        if d.raw is None and d.value is True:
            parts.append(d.key)
        else:
            parts.append(f"{d.key}={serializeValue(d.value)}")
    return " ".join(parts)


def serializeLine(text: str, directives: list[Directive]) -> str:
    escaped = text.replace("\\", "\\\\").replace("|", "\\|")
    if not directives:
        return escaped
    return f"{escaped}|{serializeDirectives(directives)}"
