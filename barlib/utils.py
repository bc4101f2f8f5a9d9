from __future__ import annotations

import shlex
from pathlib import Path
from typing import Any, Callable

import tomli

BOOL_TRUE = ("1", "true", "yes", "y", "on", "enabled")
BOOL_FALSE = ("0", "false", "no", "n", "off", "disabled")


def safeStr(val: Any) -> str:
    try:
        return str(val)
    except Exception:
        return ""


def parseStr(val: Any) -> str | None:
    if val is None:
        return None
    s = safeStr(val).strip()
    return s or None


def parseStrLower(val: Any) -> str | None:
    s = parseStr(val)
    return s.lower() if s else None


def _parseNumber(val: Any, castFn: Callable[[str], Any]) -> Any:
    # bools are ints to python but never a number in a config file
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return castFn(val)
    s = parseStr(val)
    if s is None:
        return None
    try:
        return castFn(float(s)) if castFn is int and any(ch in s for ch in ".eE") else castFn(s)
    except (TypeError, ValueError, OverflowError):
        return None


def parseInt(val: Any, defaultVal: int) -> int:
    out = _parseNumber(val, int)
    return int(defaultVal) if out is None else out


def parseFloat(val: Any, defaultVal: float) -> float:
    out = parseOptFloat(val)
    return float(defaultVal) if out is None else out


def parseOptFloat(val: Any) -> float | None:
    return _parseNumber(val, float)


def parseOptBool(val: Any) -> bool | None:
    if isinstance(val, bool):
        return val
    if isinstance(val, (int, float)):
        return bool(val)
    s = parseStrLower(val)
    if s in BOOL_TRUE:
        return True
    if s in BOOL_FALSE:
        return False
    return None


def parseBool(val: Any, defaultVal: bool) -> bool:
    out = parseOptBool(val)
    return bool(defaultVal) if out is None else out


def parseStrList(val: Any) -> list[str]:
    """A TOML array, or one string split the way a shell would."""
    if isinstance(val, (list, tuple)):
        return [s for s in (parseStr(x) for x in val) if s]
    s = parseStr(val)
    if not s:
        return []
    try:
        return shlex.split(s)
    except ValueError:
        return [s]


def parseEnv(val: Any) -> dict[str, str]:
    """[env] tables: values become strings, TOML booleans as true/false."""
    if not isinstance(val, dict):
        return {}
    out: dict[str, str] = {}
    for k, v in val.items():
        keyStr = parseStr(k)
        if not keyStr or v is None:
            continue
        if isinstance(v, bool):
            out[keyStr] = "true" if v else "false"
        else:
            out[keyStr] = safeStr(v)
    return out


def parsePath(val: Any) -> Path | None:
    s = parseStr(val)
    return Path(s).expanduser() if s else None


def loadToml(pathObj: Path) -> dict[str, Any]:
    try:
        dataObj = tomli.loads(pathObj.read_text(encoding="utf-8"))
    except tomli.TOMLDecodeError as exc:
        raise RuntimeError(f"{pathObj.name}: {exc}") from exc
    if not isinstance(dataObj, dict):
        raise RuntimeError(f"{pathObj.name}: invalid toml root")
    return dataObj


def deepMerge(baseObj: dict[str, Any], overrideObj: dict[str, Any]) -> dict[str, Any]:
    """Nested tables merge key by key, anything else is replaced."""
    outObj = dict(baseObj)
    for k, v in overrideObj.items():
        cur = outObj.get(k)
        if isinstance(cur, dict) and isinstance(v, dict):
            outObj[k] = deepMerge(cur, v)
        else:
            outObj[k] = v
    return outObj
